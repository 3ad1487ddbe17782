# Schemas module for Reachstakes
# Organizes all Pydantic schemas in a modular structure

from schemas.marketplace import (
    # Enums
    RegisterableUserType,
    BrandReviewAction,
    LedgerSortField,

    # Auth schemas
    UserRegister,
    UserLogin,
    UserResponse,

    # Brand & campaign schemas
    BrandProfileUpdate,
    BrandProfileResponse,
    CampaignCreate,
    CampaignUpdate,
    CampaignResponse,

    # Collaboration schemas
    Milestone,
    CollaborationApply,
    CollaborationAccept,
    ContentSubmission,
    BrandReviewRequest,
    CollaborationResponse,

    # Managed approval schemas
    ManagedApprovalToggle,
    CMDecisionRequest,
    CMQueueItem,
    CMStatsResponse,

    # Payment schemas
    FeeCalculationRequest,
    FeeBreakdown,
    CheckoutRequest,
    CheckoutResponse,
    TransactionResponse,
    PaymentStatusResponse,

    # Escrow schemas
    VaultDepositRequest,
    VaultWithdrawRequest,
    FundCampaignRequest,
    ReleaseMilestoneRequest,
    RefundRequest,

    # Document schemas
    DocumentCreate,
    DocumentUpdate,
    DocumentResponse,
    MarkSignedRequest,

    # Social & notification schemas
    SocialAccountLink,
    SocialAccountResponse,
    NotificationResponse,
)

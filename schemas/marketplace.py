# Pydantic Schemas for the Reachstakes escrow & approval API
# Money fields are integer cents throughout

from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum

from database.models import UserType, SocialPlatform
from database.marketplace_models import (
    CampaignStatusDB, CampaignEscrowStatusDB, ManagedApprovalModeDB,
    CollaborationStatusDB, ApprovalStatusDB, EscalationReasonDB, CollaborationEscrowStatusDB,
    TransactionTypeDB, TransactionStatusDB, DocumentTypeDB, DocumentStatusDB,
)


# ============================================================================
# ENUMS
# ============================================================================

class RegisterableUserType(str, Enum):
    BRAND = "brand"
    CREATOR = "creator"


class BrandReviewAction(str, Enum):
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    REJECT = "reject"


class LedgerSortField(str, Enum):
    DATE = "date"
    AMOUNT = "amount"


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class UserRegister(BaseModel):
    email: EmailStr
    password: str
    name: str
    user_type: RegisterableUserType = RegisterableUserType.BRAND

    @validator('password')
    def password_strength(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters long')
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    user_type: UserType
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# BRAND SCHEMAS
# ============================================================================

class BrandProfileUpdate(BaseModel):
    company_name: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = Field(None, max_length=500)
    industry: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = None


class BrandProfileResponse(BaseModel):
    id: str
    user_id: str
    company_name: Optional[str] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None
    location: Optional[str] = None

    class Config:
        from_attributes = True


# ============================================================================
# CAMPAIGN SCHEMAS
# ============================================================================

class CampaignCreate(BaseModel):
    """Schema for creating a campaign. Budget is in cents."""
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    platform: Optional[str] = None
    deliverables: Optional[List[str]] = None
    target_budget: int = Field(..., gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_managed_approval: bool = False
    managed_approval_mode: ManagedApprovalModeDB = ManagedApprovalModeDB.MANUAL

    @validator('end_date')
    def end_after_start(cls, v, values):
        start = values.get('start_date')
        if v and start and v < start:
            raise ValueError('end_date must be after start_date')
        return v


class CampaignUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    platform: Optional[str] = None
    deliverables: Optional[List[str]] = None
    target_budget: Optional[int] = Field(None, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class CampaignResponse(BaseModel):
    id: str
    brand_id: str
    title: str
    description: Optional[str] = None
    platform: Optional[str] = None
    deliverables: Optional[List[str]] = None
    target_budget: int
    total_funded: int = 0
    escrow_balance: int = 0
    total_released: int = 0
    total_refunded: int = 0
    remaining_budget: int = 0
    funding_progress: float = 0.0
    currency: str = "USD"
    status: CampaignStatusDB
    escrow_status: CampaignEscrowStatusDB
    is_managed_approval: bool = False
    managed_approval_mode: ManagedApprovalModeDB
    escrow_funded_at: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# COLLABORATION SCHEMAS
# ============================================================================

class Milestone(BaseModel):
    id: str
    title: str
    amount: int = Field(..., gt=0)
    due_date: Optional[str] = None
    status: str = "pending"


class CollaborationApply(BaseModel):
    pitch: Optional[str] = None
    proposed_price: Optional[int] = Field(None, gt=0)


class CollaborationAccept(BaseModel):
    agreed_price: int = Field(..., gt=0)
    milestones: Optional[List[Milestone]] = None

    @validator('milestones')
    def milestones_within_price(cls, v, values):
        price = values.get('agreed_price')
        if v and price is not None and sum(m.amount for m in v) > price:
            raise ValueError('Milestone amounts exceed the agreed price')
        return v


class ContentSubmission(BaseModel):
    submission_url: str = Field(..., min_length=5, max_length=500)
    platform: Optional[str] = None
    title: Optional[str] = None
    video_id: Optional[str] = None


class BrandReviewRequest(BaseModel):
    action: BrandReviewAction
    feedback: Optional[str] = None


class CollaborationResponse(BaseModel):
    id: str
    campaign_id: str
    creator_id: str
    agreed_price: int = 0
    pitch: Optional[str] = None
    status: CollaborationStatusDB
    approval_status: Optional[ApprovalStatusDB] = None
    submission_url: Optional[str] = None
    submission_title: Optional[str] = None
    submission_platform: Optional[str] = None
    video_id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    revision_count: int = 0
    approval_deadline: Optional[datetime] = None
    warning_sent_at: Optional[datetime] = None
    escalated_at: Optional[datetime] = None
    escalated_reason: Optional[EscalationReasonDB] = None
    approved_by: Optional[str] = None
    approved_by_role: Optional[str] = None
    decided_at: Optional[datetime] = None
    managed_note: Optional[str] = None
    feedback_notes: Optional[str] = None
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    engagement_rate: float = 0.0
    metrics_verified_at: Optional[datetime] = None
    milestones: Optional[List[dict]] = None
    payout_released: bool = False
    payout_date: Optional[datetime] = None
    escrow_status: Optional[CollaborationEscrowStatusDB] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# MANAGED APPROVAL SCHEMAS
# ============================================================================

class ManagedApprovalToggle(BaseModel):
    enabled: bool
    mode: Optional[ManagedApprovalModeDB] = None


class CMDecisionRequest(BaseModel):
    feedback: Optional[str] = None
    note: Optional[str] = None


class CMQueueItem(CollaborationResponse):
    campaign_title: Optional[str] = None
    brand_id: Optional[str] = None
    hours_in_queue: Optional[float] = None


class CMStatsResponse(BaseModel):
    pending_escalated: int
    in_review: int
    approved_today: int
    avg_response_time_hours: float
    total_pending: int


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class FeeCalculationRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Amount in cents")


class FeeBreakdown(BaseModel):
    amount: int
    platform_fee: int
    processing_fee: int
    total: int
    platform_fee_percent: float
    processing_fee_percent: float


class CheckoutRequest(BaseModel):
    campaign_id: str
    amount: int = Field(..., gt=0, description="Amount to place in escrow, in cents")
    country: str = Field("US", min_length=2, max_length=2)


class CheckoutResponse(BaseModel):
    message: str
    url: Optional[str] = None
    transaction_id: str
    fees: FeeBreakdown


class TransactionResponse(BaseModel):
    id: str
    user_id: str
    campaign_id: Optional[str] = None
    collaboration_id: Optional[str] = None
    type: TransactionTypeDB
    status: TransactionStatusDB
    amount: int
    platform_fee: int = 0
    processing_fee: int = 0
    net_amount: int
    currency: Optional[str] = None
    provider: Optional[str] = None
    external_reference_id: Optional[str] = None
    checkout_url: Optional[str] = None
    gateway_status: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentStatusResponse(BaseModel):
    status: TransactionStatusDB
    message: str


# ============================================================================
# ESCROW VAULT SCHEMAS
# ============================================================================

class VaultDepositRequest(BaseModel):
    amount: int = Field(..., gt=0)
    method: str = "Wire"


class VaultWithdrawRequest(BaseModel):
    amount: int = Field(..., gt=0)


class FundCampaignRequest(BaseModel):
    campaign_id: str
    amount: int = Field(..., gt=0)


class ReleaseMilestoneRequest(BaseModel):
    campaign_id: str
    amount: int = Field(..., gt=0)
    milestone_id: Optional[str] = None
    collaboration_id: Optional[str] = None


class RefundRequest(BaseModel):
    campaign_id: str
    amount: Optional[int] = Field(None, gt=0)


# ============================================================================
# DOCUMENT SCHEMAS
# ============================================================================

class DocumentCreate(BaseModel):
    type: DocumentTypeDB
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    file_url: Optional[str] = None
    tax_year: Optional[int] = Field(None, ge=2000, le=2100)
    campaign_id: Optional[str] = None
    collaboration_id: Optional[str] = None


class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    file_url: Optional[str] = None
    tax_year: Optional[int] = Field(None, ge=2000, le=2100)


class MarkSignedRequest(BaseModel):
    signed_by_name: str
    signed_file_url: Optional[str] = None
    signature_id: Optional[str] = None


class DocumentResponse(BaseModel):
    id: str
    user_id: str
    campaign_id: Optional[str] = None
    collaboration_id: Optional[str] = None
    type: DocumentTypeDB
    title: str
    description: Optional[str] = None
    file_url: Optional[str] = None
    tax_year: Optional[int] = None
    status: DocumentStatusDB
    content: Optional[Any] = None
    signed_by_name: Optional[str] = None
    signed_file_url: Optional[str] = None
    signature_id: Optional[str] = None
    signed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# SOCIAL ACCOUNT SCHEMAS
# ============================================================================

class SocialAccountLink(BaseModel):
    handle: Optional[str] = None
    platform_user_id: Optional[str] = None
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None


class SocialAccountResponse(BaseModel):
    id: str
    user_id: str
    platform: SocialPlatform
    handle: Optional[str] = None
    platform_user_id: Optional[str] = None
    connected_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================

class NotificationResponse(BaseModel):
    """Schema for notification response."""
    id: str
    type: str
    title: str
    message: Optional[str] = None
    action_url: Optional[str] = None
    data: Optional[dict] = None
    read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Escrow & Approval Models for Reachstakes
# Campaign funding, creator collaborations, gateway transactions and the escrow ledger

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, JSON, Enum, Boolean, Float, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from database.models import Base, generate_uuid


# ============================================================================
# ENUMS
# ============================================================================

class CampaignStatusDB(str, enum.Enum):
    DRAFT = "Draft"
    PENDING_PAYMENT = "Pending Payment"
    ACTIVE = "Active"
    COMPLETED = "Completed"


class CampaignEscrowStatusDB(str, enum.Enum):
    UNFUNDED = "Unfunded"
    LOCKED = "Locked"
    PARTIALLY_RELEASED = "Partially_Released"
    RELEASED = "Released"
    REFUNDED = "Refunded"


class ManagedApprovalModeDB(str, enum.Enum):
    MANUAL = "Manual"
    AUTO_MANAGED = "AutoManaged"


class CollaborationStatusDB(str, enum.Enum):
    APPLIED = "Applied"
    ACTIVE = "Active"
    PENDING_REVIEW = "Pending_Review"
    UNDER_REVIEW = "Under_Review"
    APPROVED = "Approved"
    CHANGES_REQUESTED = "Changes_Requested"
    REJECTED = "Rejected"
    PAID = "Paid"


class ApprovalStatusDB(str, enum.Enum):
    BRAND_PENDING = "BrandPending"
    CM_REVIEW = "CMReview"
    CM_ESCALATED = "CMEscalated"
    APPROVED_BY_BRAND = "ApprovedByBrand"
    APPROVED_BY_CM = "ApprovedByCM"
    CHANGES_REQUESTED_BY_BRAND = "ChangesRequestedByBrand"
    REJECTED_BY_BRAND = "RejectedByBrand"
    REJECTED_BY_CM = "RejectedByCM"


class EscalationReasonDB(str, enum.Enum):
    AUTO_MANAGED = "auto_managed"
    TIMEOUT = "24h_timeout"
    BRAND_REQUEST = "brand_request"


class CollaborationEscrowStatusDB(str, enum.Enum):
    HELD = "Held"
    RELEASED = "Released"
    REFUNDED = "Refunded"


class TransactionTypeDB(str, enum.Enum):
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"
    PAYMENT = "Payment"
    REFUND = "Refund"


class TransactionStatusDB(str, enum.Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


class LedgerEntryTypeDB(str, enum.Enum):
    FUNDING = "Funding"
    RELEASE = "Release"
    REFUND = "Refund"
    ADJUSTMENT = "Adjustment"


class LedgerEntryStatusDB(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"


class DocumentTypeDB(str, enum.Enum):
    CONTRACT = "Contract"
    W9 = "W9"
    W8BEN = "W8BEN"
    INVOICE = "Invoice"
    OTHER = "Other"


class DocumentStatusDB(str, enum.Enum):
    DRAFT = "Draft"
    PENDING_SIGNATURE = "Pending_Signature"
    SIGNED = "Signed"


# ============================================================================
# WALLET
# ============================================================================

class Wallet(Base):
    """Brand vault (unallocated cash) or creator earnings balance."""
    __tablename__ = "wallets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    balance = Column(Integer, default=0)  # In cents
    total_earned = Column(Integer, default=0)  # Lifetime earnings (creators)
    total_spent = Column(Integer, default=0)   # Lifetime allocations (brands)
    currency = Column(String(3), default="USD")

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", backref="wallet")


# ============================================================================
# CAMPAIGN
# ============================================================================

class Campaign(Base):
    """A brand campaign whose budget is held in escrow until content is approved."""
    __tablename__ = "campaigns"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    brand_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text)
    platform = Column(String(50))
    deliverables = Column(JSON)  # ["1 YouTube video", "2 stories"]

    # Budget (cents)
    target_budget = Column(Integer, nullable=False, default=0)
    total_funded = Column(Integer, default=0)
    escrow_balance = Column(Integer, default=0)
    total_released = Column(Integer, default=0)
    total_refunded = Column(Integer, default=0)
    currency = Column(String(3), default="USD")

    status = Column(Enum(CampaignStatusDB, values_callable=lambda x: [e.value for e in x], name="campaignstatusdb"), default=CampaignStatusDB.DRAFT)
    escrow_status = Column(Enum(CampaignEscrowStatusDB, values_callable=lambda x: [e.value for e in x], name="campaignescrowstatusdb"), default=CampaignEscrowStatusDB.UNFUNDED)
    escrow_funded_at = Column(DateTime)

    # Managed approval
    is_managed_approval = Column(Boolean, default=False)
    managed_approval_mode = Column(Enum(ManagedApprovalModeDB, values_callable=lambda x: [e.value for e in x], name="managedapprovalmodedb"), default=ManagedApprovalModeDB.MANUAL)

    # Timeline
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    completed_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    brand = relationship("User", backref="brand_campaigns")
    collaborations = relationship("Collaboration", back_populates="campaign", cascade="all, delete-orphan")
    ledger_entries = relationship("EscrowLedger", back_populates="campaign", cascade="all, delete-orphan")

    @property
    def remaining_budget(self) -> int:
        return max((self.target_budget or 0) - (self.total_funded or 0), 0)

    @property
    def funding_progress(self) -> float:
        if not self.target_budget:
            return 0.0
        return round((self.total_funded or 0) / self.target_budget * 100, 2)


# ============================================================================
# COLLABORATION
# ============================================================================

class Collaboration(Base):
    """A creator's engagement on a campaign, from application to payout."""
    __tablename__ = "collaborations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    creator_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    agreed_price = Column(Integer, default=0)  # In cents
    pitch = Column(Text)
    status = Column(Enum(CollaborationStatusDB, values_callable=lambda x: [e.value for e in x], name="collaborationstatusdb"), default=CollaborationStatusDB.APPLIED)

    # Submission
    submission_url = Column(String(500))
    submission_title = Column(String(255))
    submission_platform = Column(String(50))
    video_id = Column(String(100))
    submitted_at = Column(DateTime)
    revision_count = Column(Integer, default=0)

    # Approval workflow
    approval_status = Column(Enum(ApprovalStatusDB, values_callable=lambda x: [e.value for e in x], name="approvalstatusdb"), nullable=True)
    approval_deadline = Column(DateTime, index=True)
    warning_sent_at = Column(DateTime)
    escalated_at = Column(DateTime)
    escalated_reason = Column(Enum(EscalationReasonDB, values_callable=lambda x: [e.value for e in x], name="escalationreasondb"), nullable=True)
    approved_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    approved_by_role = Column(String(20))
    decided_at = Column(DateTime)
    managed_note = Column(Text)
    feedback_notes = Column(Text)

    # Verified metrics
    views = Column(Integer, default=0)
    likes = Column(Integer, default=0)
    comments = Column(Integer, default=0)
    shares = Column(Integer, default=0)
    engagement_rate = Column(Float, default=0.0)
    metrics_verified_at = Column(DateTime)

    milestones = Column(JSON)  # [{"id": "m1", "title": "...", "amount": 5000}]

    # Payout
    payout_released = Column(Boolean, default=False)
    payout_date = Column(DateTime)
    escrow_status = Column(Enum(CollaborationEscrowStatusDB, values_callable=lambda x: [e.value for e in x], name="collaborationescrowstatusdb"), default=CollaborationEscrowStatusDB.HELD)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    campaign = relationship("Campaign", back_populates="collaborations")
    creator = relationship("User", foreign_keys=[creator_id], backref="collaborations")
    approver = relationship("User", foreign_keys=[approved_by])

    __table_args__ = (
        UniqueConstraint("campaign_id", "creator_id", name="uq_collaboration_campaign_creator"),
    )


# ============================================================================
# TRANSACTION
# ============================================================================

class Transaction(Base):
    """Money movement record: gateway checkouts, vault moves, payouts and refunds."""
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True)
    collaboration_id = Column(String(36), ForeignKey("collaborations.id", ondelete="SET NULL"), nullable=True)

    type = Column(Enum(TransactionTypeDB, values_callable=lambda x: [e.value for e in x], name="transactiontypedb"), nullable=False)
    status = Column(Enum(TransactionStatusDB, values_callable=lambda x: [e.value for e in x], name="transactionstatusdb"), default=TransactionStatusDB.PENDING)

    amount = Column(Integer, nullable=False)  # In cents
    platform_fee = Column(Integer, default=0)
    processing_fee = Column(Integer, default=0)
    net_amount = Column(Integer, nullable=False)
    currency = Column(String(3), default="USD")

    provider = Column(String(20))  # tazapay, vault
    external_reference_id = Column(String(255), unique=True, nullable=True, index=True)
    checkout_url = Column(String(1000))
    gateway_status = Column(String(50))
    received_amount = Column(Integer)
    received_currency = Column(String(3))
    description = Column(Text)
    metadata_json = Column(JSON)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    processed_at = Column(DateTime)

    # Relationships
    user = relationship("User", backref="transactions")
    campaign = relationship("Campaign", backref="transactions")


# ============================================================================
# ESCROW LEDGER
# ============================================================================

class EscrowLedger(Base):
    """Audit trail of every funding, release, refund and adjustment."""
    __tablename__ = "escrow_ledger"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    brand_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=True)
    collaboration_id = Column(String(36), ForeignKey("collaborations.id", ondelete="SET NULL"), nullable=True)
    milestone_id = Column(String(100))

    type = Column(Enum(LedgerEntryTypeDB, values_callable=lambda x: [e.value for e in x], name="ledgerentrytypedb"), nullable=False)
    status = Column(Enum(LedgerEntryStatusDB, values_callable=lambda x: [e.value for e in x], name="ledgerentrystatusdb"), default=LedgerEntryStatusDB.COMPLETED)
    amount = Column(Integer, nullable=False)  # In cents, always positive
    description = Column(Text)

    created_at = Column(DateTime, server_default=func.now(), index=True)

    # Relationships
    campaign = relationship("Campaign", back_populates="ledger_entries")


# ============================================================================
# DOCUMENT
# ============================================================================

class Document(Base):
    """Contract and tax-form records with signature status."""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True)
    collaboration_id = Column(String(36), ForeignKey("collaborations.id", ondelete="SET NULL"), nullable=True)

    type = Column(Enum(DocumentTypeDB, values_callable=lambda x: [e.value for e in x], name="documenttypedb"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    file_url = Column(String(1000))
    tax_year = Column(Integer)
    status = Column(Enum(DocumentStatusDB, values_callable=lambda x: [e.value for e in x], name="documentstatusdb"), default=DocumentStatusDB.DRAFT)
    content = Column(JSON)  # contract terms

    signed_by_name = Column(String(255))
    signed_file_url = Column(String(1000))
    signature_id = Column(String(255))
    signed_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", backref="documents")
    campaign = relationship("Campaign")


# ============================================================================
# NOTIFICATION
# ============================================================================

class Notification(Base):
    """User notifications."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type = Column(String(50), nullable=False)  # content_submitted, payout_received, etc.
    title = Column(String(200), nullable=False)
    message = Column(Text)
    action_url = Column(String(500))
    data = Column(JSON)  # Additional context (campaign_id, amount, etc.)

    read = Column(Boolean, default=False)
    read_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    user = relationship("User", backref="notifications")

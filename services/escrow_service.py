# Escrow Service for Reachstakes
# Vault balances, campaign escrow accounting and the escrow ledger.
# Methods flush but never commit; routers and workers own the transaction.

from sqlalchemy.orm import Session
from sqlalchemy import or_, func, asc, desc
from typing import Optional, List, Dict, Any, Tuple
from datetime import timedelta
import logging
import math

from auth.decorators import is_admin
from config.app_config import MAX_VAULT_TRANSFER_CENTS, DEFAULT_CURRENCY
from core.exceptions import EscrowError, InsufficientFundsError, NotFoundError, PermissionDeniedError
from core.fees import compute_allocation_total
from database.models import User, utcnow
from database.marketplace_models import (
    Wallet, Campaign, Collaboration, Transaction, EscrowLedger,
    CampaignStatusDB, CampaignEscrowStatusDB, CollaborationStatusDB, CollaborationEscrowStatusDB,
    TransactionTypeDB, TransactionStatusDB, LedgerEntryTypeDB, LedgerEntryStatusDB,
)
from services.notification_service import NotificationService, format_amount

logger = logging.getLogger(__name__)

# Collaborations whose agreed price is spoken for until they are paid or dropped
RESERVED_STATUSES = (
    CollaborationStatusDB.ACTIVE,
    CollaborationStatusDB.PENDING_REVIEW,
    CollaborationStatusDB.UNDER_REVIEW,
    CollaborationStatusDB.CHANGES_REQUESTED,
    CollaborationStatusDB.APPROVED,
)

# Submitted or approved work whose payout is still owed
PENDING_RELEASE_STATUSES = (
    CollaborationStatusDB.PENDING_REVIEW,
    CollaborationStatusDB.UNDER_REVIEW,
    CollaborationStatusDB.APPROVED,
)

# Collaborations that can no longer receive milestone money
CLOSED_STATUSES = (
    CollaborationStatusDB.APPLIED,
    CollaborationStatusDB.REJECTED,
    CollaborationStatusDB.PAID,
)

HISTORY_DAYS = 7


class EscrowService:
    """Keeps campaign escrow balances and the ledger in step."""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_or_create_wallet(self, user_id: str) -> Wallet:
        wallet = self.db.query(Wallet).filter(Wallet.user_id == user_id).first()
        if not wallet:
            wallet = Wallet(
                user_id=user_id,
                balance=0,
                total_earned=0,
                total_spent=0,
                currency=DEFAULT_CURRENCY
            )
            self.db.add(wallet)
            self.db.flush()
        return wallet

    def get_owned_campaign(self, campaign_id: str, user: User, allow_admin: bool = True) -> Campaign:
        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            raise NotFoundError("Campaign not found")
        if campaign.brand_id != user.id and not (allow_admin and is_admin(user)):
            raise PermissionDeniedError("You don't have access to this campaign")
        return campaign

    def reserved_amount(self, campaign: Campaign) -> int:
        """Agreed prices of unpaid collaborations still in progress or approved."""
        total = self.db.query(func.coalesce(func.sum(Collaboration.agreed_price), 0)).filter(
            Collaboration.campaign_id == campaign.id,
            Collaboration.status.in_(RESERVED_STATUSES),
            Collaboration.payout_released == False
        ).scalar()
        return int(total or 0)

    # =========================================================================
    # INTERNAL BOOKKEEPING
    # =========================================================================

    def _ledger(
        self,
        campaign: Campaign,
        entry_type: LedgerEntryTypeDB,
        amount: int,
        description: str,
        collaboration_id: Optional[str] = None,
        milestone_id: Optional[str] = None,
    ) -> EscrowLedger:
        entry = EscrowLedger(
            brand_id=campaign.brand_id,
            campaign_id=campaign.id,
            collaboration_id=collaboration_id,
            milestone_id=milestone_id,
            type=entry_type,
            status=LedgerEntryStatusDB.COMPLETED,
            amount=amount,
            description=description,
            created_at=utcnow(),
        )
        self.db.add(entry)
        return entry

    def _record_transaction(
        self,
        user_id: str,
        tx_type: TransactionTypeDB,
        amount: int,
        description: str,
        campaign_id: Optional[str] = None,
        collaboration_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Transaction:
        now = utcnow()
        transaction = Transaction(
            user_id=user_id,
            campaign_id=campaign_id,
            collaboration_id=collaboration_id,
            type=tx_type,
            status=TransactionStatusDB.COMPLETED,
            amount=amount,
            platform_fee=0,
            processing_fee=0,
            net_amount=amount,
            currency=DEFAULT_CURRENCY,
            provider="vault",
            description=description,
            metadata_json=metadata or {},
            processed_at=now,
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    @staticmethod
    def refresh_campaign_status(campaign: Campaign) -> None:
        """Derive escrow_status and funding status from the balance columns."""
        escrow = campaign.escrow_balance or 0
        released = campaign.total_released or 0
        refunded = campaign.total_refunded or 0

        if escrow > 0:
            campaign.escrow_status = (
                CampaignEscrowStatusDB.PARTIALLY_RELEASED if released > 0 else CampaignEscrowStatusDB.LOCKED
            )
        elif released > 0:
            campaign.escrow_status = CampaignEscrowStatusDB.RELEASED
        elif refunded > 0:
            campaign.escrow_status = CampaignEscrowStatusDB.REFUNDED
        else:
            campaign.escrow_status = CampaignEscrowStatusDB.UNFUNDED

        if campaign.status == CampaignStatusDB.COMPLETED:
            return
        if campaign.target_budget and (campaign.total_funded or 0) >= campaign.target_budget:
            campaign.status = CampaignStatusDB.ACTIVE
        elif (campaign.total_funded or 0) > 0:
            campaign.status = CampaignStatusDB.PENDING_PAYMENT

    def _check_amount(self, amount: int, label: str) -> None:
        if amount is None or amount <= 0:
            raise EscrowError(f"{label} amount must be a positive number")
        if amount > MAX_VAULT_TRANSFER_CENTS:
            raise EscrowError(f"Amount exceeds maximum allowed ({format_amount(MAX_VAULT_TRANSFER_CENTS)})")

    def check_funding_headroom(self, campaign: Campaign, amount: int) -> None:
        if campaign.status == CampaignStatusDB.COMPLETED:
            raise EscrowError("Campaign is already completed")
        if amount is None or amount <= 0:
            raise EscrowError("Funding amount must be a positive number")
        if (campaign.total_funded or 0) + amount > (campaign.target_budget or 0):
            raise EscrowError(
                f"Funding would exceed the campaign budget. Remaining: {format_amount(campaign.remaining_budget)}"
            )

    # =========================================================================
    # FUNDING
    # =========================================================================

    def credit_campaign_escrow(self, campaign: Campaign, amount: int, description: str) -> Tuple[int, int]:
        """
        Put money into campaign escrow, capped at the remaining budget.

        Anything above the cap lands in the brand's vault so funded never
        exceeds target. Returns (credited, excess).
        """
        credited = min(amount, campaign.remaining_budget)
        excess = amount - credited

        if credited > 0:
            campaign.total_funded = (campaign.total_funded or 0) + credited
            campaign.escrow_balance = (campaign.escrow_balance or 0) + credited
            campaign.escrow_funded_at = utcnow()
            self._ledger(campaign, LedgerEntryTypeDB.FUNDING, credited, description)

        if excess > 0:
            wallet = self.get_or_create_wallet(campaign.brand_id)
            wallet.balance += excess
            self._record_transaction(
                campaign.brand_id, TransactionTypeDB.DEPOSIT, excess,
                f"Over-funding of \"{campaign.title}\" returned to vault",
                campaign_id=campaign.id,
                metadata={"reason": "overfunding"},
            )
            logger.warning(f"Campaign {campaign.id} over-funded by {excess}; excess moved to vault")

        self.refresh_campaign_status(campaign)
        self.db.flush()
        return credited, excess

    def fund_campaign(self, user: User, campaign_id: str, amount: int) -> Dict[str, Any]:
        """Move cash from the brand's vault into a campaign's escrow."""
        self._check_amount(amount, "Funding")
        campaign = self.get_owned_campaign(campaign_id, user)
        self.check_funding_headroom(campaign, amount)

        wallet = self.get_or_create_wallet(campaign.brand_id)
        if wallet.balance < amount:
            raise InsufficientFundsError(
                f"Insufficient vault balance. Available: {format_amount(wallet.balance)}, Requested: {format_amount(amount)}"
            )

        wallet.balance -= amount
        wallet.total_spent = (wallet.total_spent or 0) + amount
        self.credit_campaign_escrow(campaign, amount, f"Escrow funding from vault for \"{campaign.title}\"")
        self._record_transaction(
            campaign.brand_id, TransactionTypeDB.DEPOSIT, amount,
            f"Escrow funded from vault for \"{campaign.title}\"",
            campaign_id=campaign.id,
        )

        logger.info(f"Funded {amount} into campaign {campaign.id} from vault")
        return {
            "campaign_id": campaign.id,
            "escrow_balance": campaign.escrow_balance,
            "total_funded": campaign.total_funded,
            "vault_balance": wallet.balance,
            "campaign_status": campaign.status.value,
        }

    def deposit(self, user: User, amount: int, method: str = "Wire") -> Dict[str, Any]:
        self._check_amount(amount, "Deposit")
        wallet = self.get_or_create_wallet(user.id)
        wallet.balance += amount
        transaction = self._record_transaction(
            user.id, TransactionTypeDB.DEPOSIT, amount,
            f"Vault deposit of {format_amount(amount)} via {method}",
            metadata={"method": method},
        )
        logger.info(f"Vault deposit {amount} for brand {user.id} via {method}")
        return {"transaction_id": transaction.id, "amount": amount, "method": method, "vault_balance": wallet.balance}

    def withdraw(self, user: User, amount: int) -> Dict[str, Any]:
        self._check_amount(amount, "Withdrawal")
        wallet = self.get_or_create_wallet(user.id)
        if amount > wallet.balance:
            raise InsufficientFundsError(
                f"Insufficient available balance. Available: {format_amount(wallet.balance)}, Requested: {format_amount(amount)}"
            )
        wallet.balance -= amount
        transaction = self._record_transaction(
            user.id, TransactionTypeDB.WITHDRAWAL, amount,
            f"Vault withdrawal of {format_amount(amount)}",
        )
        logger.info(f"Vault withdrawal {amount} for brand {user.id}")
        return {"transaction_id": transaction.id, "amount": amount, "vault_balance": wallet.balance}

    # =========================================================================
    # RELEASE
    # =========================================================================

    def release_milestone(
        self,
        user: User,
        campaign_id: str,
        amount: int,
        milestone_id: Optional[str] = None,
        collaboration_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Release part of a campaign's escrow, once per milestone id."""
        if amount is None or amount <= 0:
            raise EscrowError("Release amount must be a positive number")
        campaign = self.get_owned_campaign(campaign_id, user)

        if milestone_id:
            already_released = self.db.query(EscrowLedger).filter(
                EscrowLedger.campaign_id == campaign.id,
                EscrowLedger.milestone_id == milestone_id,
                EscrowLedger.type == LedgerEntryTypeDB.RELEASE,
                EscrowLedger.status == LedgerEntryStatusDB.COMPLETED
            ).first()
            if already_released:
                raise EscrowError("This milestone has already been released")

        if amount > (campaign.escrow_balance or 0):
            raise InsufficientFundsError(
                f"Insufficient escrow balance. Available: {format_amount(campaign.escrow_balance)}, Requested: {format_amount(amount)}"
            )

        collaboration = None
        if collaboration_id:
            collaboration = self.db.query(Collaboration).filter(
                Collaboration.id == collaboration_id,
                Collaboration.campaign_id == campaign.id
            ).first()
            if not collaboration:
                raise NotFoundError("Collaboration not found on this campaign")
            self._check_collaboration_release(collaboration, amount)

        campaign.escrow_balance -= amount
        campaign.total_released = (campaign.total_released or 0) + amount
        entry = self._ledger(
            campaign, LedgerEntryTypeDB.RELEASE, amount,
            f"Milestone release of {format_amount(amount)} from \"{campaign.title}\"",
            collaboration_id=collaboration_id,
            milestone_id=milestone_id,
        )

        recipient_id = collaboration.creator_id if collaboration else campaign.brand_id
        transaction = self._record_transaction(
            recipient_id, TransactionTypeDB.PAYMENT, amount,
            f"Milestone released from \"{campaign.title}\"",
            campaign_id=campaign.id,
            collaboration_id=collaboration_id,
            metadata={"milestone_id": milestone_id},
        )

        if collaboration:
            creator_wallet = self.get_or_create_wallet(collaboration.creator_id)
            creator_wallet.balance += amount
            creator_wallet.total_earned = (creator_wallet.total_earned or 0) + amount
            if milestone_id and collaboration.milestones:
                collaboration.milestones = [
                    {**m, "status": "released"} if str(m.get("id")) == str(milestone_id) else m
                    for m in collaboration.milestones
                ]
            if self.released_to_collaboration(collaboration) >= (collaboration.agreed_price or 0):
                collaboration.payout_released = True
                collaboration.payout_date = utcnow()
                collaboration.escrow_status = CollaborationEscrowStatusDB.RELEASED
                if collaboration.status == CollaborationStatusDB.APPROVED:
                    collaboration.status = CollaborationStatusDB.PAID
            self.notifications.notify_payout_received(collaboration.creator_id, amount, campaign.title, transaction.id)

        self.refresh_campaign_status(campaign)
        self.db.flush()
        logger.info(f"Released {amount} from campaign {campaign.id} (milestone: {milestone_id or 'N/A'})")
        return {"ledger_entry_id": entry.id, "transaction_id": transaction.id, "escrow_balance": campaign.escrow_balance}

    def released_to_collaboration(self, collaboration: Collaboration) -> int:
        total = self.db.query(func.coalesce(func.sum(EscrowLedger.amount), 0)).filter(
            EscrowLedger.collaboration_id == collaboration.id,
            EscrowLedger.type == LedgerEntryTypeDB.RELEASE,
            EscrowLedger.status == LedgerEntryStatusDB.COMPLETED
        ).scalar()
        return int(total or 0)

    def _check_collaboration_release(self, collaboration: Collaboration, amount: int) -> None:
        if collaboration.payout_released or collaboration.status in CLOSED_STATUSES:
            raise EscrowError(
                f"Cannot release funds to a collaboration that is {collaboration.status.value} or already paid"
            )
        remaining = (collaboration.agreed_price or 0) - self.released_to_collaboration(collaboration)
        if amount > remaining:
            raise EscrowError(
                f"Release exceeds the unpaid agreed price. Remaining: {format_amount(max(remaining, 0))}, Requested: {format_amount(amount)}"
            )

    def release_collaboration_payout(self, collaboration: Collaboration) -> Transaction:
        """Pay an approved collaboration's agreed price from escrow to the creator."""
        if collaboration.payout_released or collaboration.status == CollaborationStatusDB.PAID:
            raise EscrowError("Payout already released for this collaboration")
        if collaboration.status != CollaborationStatusDB.APPROVED:
            raise EscrowError("Collaboration must be approved before payout")

        campaign = collaboration.campaign
        amount = (collaboration.agreed_price or 0) - self.released_to_collaboration(collaboration)
        if amount <= 0:
            raise EscrowError("Collaboration has no unpaid agreed price to pay out")
        if (campaign.escrow_balance or 0) < amount:
            raise InsufficientFundsError(
                f"Insufficient escrow balance. Available: {format_amount(campaign.escrow_balance)}, Required: {format_amount(amount)}"
            )

        campaign.escrow_balance -= amount
        campaign.total_released = (campaign.total_released or 0) + amount
        self._ledger(
            campaign, LedgerEntryTypeDB.RELEASE, amount,
            f"Payout of {format_amount(amount)} for \"{campaign.title}\"",
            collaboration_id=collaboration.id,
        )

        creator_wallet = self.get_or_create_wallet(collaboration.creator_id)
        creator_wallet.balance += amount
        creator_wallet.total_earned = (creator_wallet.total_earned or 0) + amount

        transaction = self._record_transaction(
            collaboration.creator_id, TransactionTypeDB.PAYMENT, amount,
            f"Payout for \"{campaign.title}\"",
            campaign_id=campaign.id,
            collaboration_id=collaboration.id,
        )

        now = utcnow()
        collaboration.status = CollaborationStatusDB.PAID
        collaboration.payout_released = True
        collaboration.payout_date = now
        collaboration.escrow_status = CollaborationEscrowStatusDB.RELEASED

        self.refresh_campaign_status(campaign)
        self.notifications.notify_payout_received(collaboration.creator_id, amount, campaign.title, transaction.id)
        self.db.flush()
        logger.info(f"Released payout {amount} for collaboration {collaboration.id}")
        return transaction

    # =========================================================================
    # REFUND
    # =========================================================================

    def _refund(self, campaign: Campaign, amount: int, description: str, collaboration_id: Optional[str] = None) -> Transaction:
        campaign.escrow_balance -= amount
        campaign.total_refunded = (campaign.total_refunded or 0) + amount
        self._ledger(campaign, LedgerEntryTypeDB.REFUND, amount, description, collaboration_id=collaboration_id)

        wallet = self.get_or_create_wallet(campaign.brand_id)
        wallet.balance += amount
        wallet.total_spent = max((wallet.total_spent or 0) - amount, 0)

        transaction = self._record_transaction(
            campaign.brand_id, TransactionTypeDB.REFUND, amount, description,
            campaign_id=campaign.id, collaboration_id=collaboration_id,
        )
        self.refresh_campaign_status(campaign)
        self.notifications.notify_escrow_refunded(campaign.brand_id, amount, campaign.title)
        return transaction

    def refund_collaboration(self, collaboration: Collaboration) -> Optional[Transaction]:
        """Return a rejected collaboration's share of escrow to the brand's vault."""
        campaign = collaboration.campaign
        amount = min(collaboration.agreed_price or 0, campaign.escrow_balance or 0)
        collaboration.escrow_status = CollaborationEscrowStatusDB.REFUNDED
        if amount <= 0:
            return None
        transaction = self._refund(
            campaign, amount,
            f"Refund of {format_amount(amount)} for rejected submission on \"{campaign.title}\"",
            collaboration_id=collaboration.id,
        )
        self.db.flush()
        logger.info(f"Refunded {amount} to brand {campaign.brand_id} for collaboration {collaboration.id}")
        return transaction

    def refund_campaign(self, user: User, campaign_id: str, amount: Optional[int] = None) -> Dict[str, Any]:
        """Return unreserved escrow of a campaign to the vault."""
        campaign = self.get_owned_campaign(campaign_id, user)
        return self._refund_unreserved(campaign, amount)

    def _refund_unreserved(self, campaign: Campaign, amount: Optional[int] = None) -> Dict[str, Any]:
        unreserved = max((campaign.escrow_balance or 0) - self.reserved_amount(campaign), 0)
        if amount is None:
            amount = unreserved
        elif amount <= 0:
            raise EscrowError("Refund amount must be a positive number")
        elif amount > unreserved:
            raise EscrowError(
                f"Only {format_amount(unreserved)} of escrow is unreserved and can be refunded"
            )

        transaction = None
        if amount > 0:
            transaction = self._refund(campaign, amount, f"Refund of unused escrow from \"{campaign.title}\"")
        self.db.flush()
        return {
            "campaign_id": campaign.id,
            "refunded": amount,
            "transaction_id": transaction.id if transaction else None,
            "escrow_balance": campaign.escrow_balance,
        }

    def complete_campaign(self, user: User, campaign_id: str) -> Dict[str, Any]:
        campaign = self.get_owned_campaign(campaign_id, user)
        if campaign.status == CampaignStatusDB.COMPLETED:
            raise EscrowError("Campaign is already completed")
        result = self._refund_unreserved(campaign)
        campaign.status = CampaignStatusDB.COMPLETED
        campaign.completed_at = utcnow()
        self.db.flush()
        logger.info(f"Campaign {campaign.id} completed, refunded {result['refunded']}")
        return result

    # =========================================================================
    # REPORTING
    # =========================================================================

    def _brand_campaigns(self, brand_id: str) -> List[Campaign]:
        return self.db.query(Campaign).filter(Campaign.brand_id == brand_id).order_by(desc(Campaign.created_at)).all()

    def _pending_releases(self, brand_id: str) -> int:
        total = self.db.query(func.coalesce(func.sum(Collaboration.agreed_price), 0)).select_from(Collaboration).join(
            Campaign, Collaboration.campaign_id == Campaign.id
        ).filter(
            Campaign.brand_id == brand_id,
            Collaboration.status.in_(PENDING_RELEASE_STATUSES),
            Collaboration.payout_released == False
        ).scalar()
        return int(total or 0)

    def _history(self, brand_id: str) -> Dict[str, List[int]]:
        entries = self.db.query(EscrowLedger).filter(
            EscrowLedger.brand_id == brand_id,
            EscrowLedger.status == LedgerEntryStatusDB.COMPLETED
        ).order_by(asc(EscrowLedger.created_at)).all()

        history = {"dates": [], "funded": [], "allocated": [], "released": [], "refunded": []}
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        for offset in range(HISTORY_DAYS - 1, -1, -1):
            day_start = today - timedelta(days=offset)
            day_end = day_start + timedelta(days=1)
            funded = released = refunded = 0
            for entry in entries:
                if entry.created_at is None or entry.created_at >= day_end:
                    continue
                if entry.type in (LedgerEntryTypeDB.FUNDING, LedgerEntryTypeDB.ADJUSTMENT):
                    funded += entry.amount
                elif entry.type == LedgerEntryTypeDB.RELEASE:
                    released += entry.amount
                elif entry.type == LedgerEntryTypeDB.REFUND:
                    refunded += entry.amount
            history["dates"].append(day_start.date().isoformat())
            history["funded"].append(funded)
            history["allocated"].append(max(funded - released - refunded, 0))
            history["released"].append(released)
            history["refunded"].append(refunded)
        return history

    @staticmethod
    def _liquidity_explanation(state: str, ratio: float, pending: int) -> str:
        if pending == 0:
            return "No upcoming releases scheduled."
        if state == "healthy":
            return f"Escrow covers upcoming releases with a {ratio}x buffer."
        if state == "watch":
            return f"Coverage ratio is {ratio}x. Consider adding funds to maintain healthy reserves."
        return f"Coverage ratio is {ratio}x. Immediate funding recommended to cover pending releases."

    def get_overview(self, user: User) -> Dict[str, Any]:
        campaigns = self._brand_campaigns(user.id)
        wallet = self.get_or_create_wallet(user.id)

        allocated = sum(c.escrow_balance or 0 for c in campaigns)
        released = sum(c.total_released or 0 for c in campaigns)
        pending = self._pending_releases(user.id)
        available = wallet.balance or 0

        if pending > 0:
            coverage_ratio = round(allocated / pending, 2)
        else:
            coverage_ratio = 99 if allocated > 0 else 0

        if pending > 0 and coverage_ratio < 1:
            liquidity_state = "risk"
        elif pending > 0 and coverage_ratio < 2:
            liquidity_state = "watch"
        else:
            liquidity_state = "healthy"

        return {
            "total_balance": available + allocated,
            "allocated_funds": allocated,
            "released_funds": released,
            "pending_releases": pending,
            "available_balance": available,
            "coverage_ratio": coverage_ratio,
            "liquidity_state": liquidity_state,
            "liquidity_explanation": self._liquidity_explanation(liquidity_state, coverage_ratio, pending),
            "history": self._history(user.id),
        }

    def get_summary(self, user: User) -> Dict[str, Any]:
        overview = self.get_overview(user)
        allocated_series = overview["history"]["allocated"]
        trend_percent = 0.0
        if len(allocated_series) >= 2 and allocated_series[-2] > 0:
            prev, curr = allocated_series[-2], allocated_series[-1]
            trend_percent = round((curr - prev) / prev * 100, 1)

        return {
            "total_balance": overview["total_balance"],
            "available": overview["available_balance"],
            "locked": overview["allocated_funds"],
            "pending": overview["pending_releases"],
            "trend_percent": trend_percent,
            "last_updated": utcnow(),
            "coverage_ratio": overview["coverage_ratio"],
            "liquidity_state": overview["liquidity_state"],
        }

    def _milestones(self, campaign: Campaign) -> List[Dict[str, Any]]:
        released_ids = {
            milestone_id for (milestone_id,) in self.db.query(EscrowLedger.milestone_id).filter(
                EscrowLedger.campaign_id == campaign.id,
                EscrowLedger.type == LedgerEntryTypeDB.RELEASE,
                EscrowLedger.milestone_id.isnot(None)
            ).all()
        }
        milestones = []
        for collab in campaign.collaborations:
            for item in collab.milestones or []:
                milestone_id = str(item.get("id", ""))
                is_released = milestone_id in released_ids or str(item.get("status", "")).lower() in ("released", "completed")
                milestones.append({
                    "id": milestone_id or None,
                    "collaboration_id": collab.id,
                    "title": item.get("title") or item.get("name") or "Milestone",
                    "amount": int(item.get("amount") or 0),
                    "due_date": item.get("due_date"),
                    "status": "Released" if is_released else "Pending",
                })
        return milestones

    def get_campaigns(self, user: User) -> List[Dict[str, Any]]:
        rows = []
        for campaign in self._brand_campaigns(user.id):
            milestones = self._milestones(campaign)
            rows.append({
                "id": campaign.id,
                "title": campaign.title,
                "status": campaign.status.value,
                "target_budget": campaign.target_budget,
                "funded_amount": campaign.total_funded or 0,
                "released_amount": campaign.total_released or 0,
                "refunded_amount": campaign.total_refunded or 0,
                "escrow_balance": campaign.escrow_balance or 0,
                "remaining": campaign.remaining_budget,
                "funding_progress": campaign.funding_progress,
                "upcoming_release_amount": sum(m["amount"] for m in milestones if m["status"] == "Pending"),
                "escrow_status": campaign.escrow_status.value,
                "milestones": milestones,
                "start_date": campaign.start_date,
                "allocation_breakdown": compute_allocation_total(campaign.target_budget) if campaign.target_budget else None,
            })
        return rows

    def get_ledger(
        self,
        user: User,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "date",
        sort_order: str = "desc",
        search: Optional[str] = None,
        entry_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        # Running balance after each entry, in chronological order
        running = {}
        balance = 0
        for entry in self.db.query(EscrowLedger).filter(
            EscrowLedger.brand_id == user.id,
            EscrowLedger.status == LedgerEntryStatusDB.COMPLETED
        ).order_by(asc(EscrowLedger.created_at), asc(EscrowLedger.id)).all():
            if entry.type in (LedgerEntryTypeDB.FUNDING, LedgerEntryTypeDB.ADJUSTMENT):
                balance += entry.amount
            else:
                balance -= entry.amount
            running[entry.id] = balance

        query = self.db.query(EscrowLedger).outerjoin(Campaign, EscrowLedger.campaign_id == Campaign.id).filter(
            EscrowLedger.brand_id == user.id
        )
        if entry_type and entry_type.lower() != "all":
            try:
                query = query.filter(EscrowLedger.type == LedgerEntryTypeDB(entry_type))
            except ValueError:
                raise EscrowError(f"Unknown ledger entry type: {entry_type}")
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(EscrowLedger.description.ilike(pattern), Campaign.title.ilike(pattern)))

        total = query.count()
        sort_column = EscrowLedger.amount if sort_by == "amount" else EscrowLedger.created_at
        ordering = asc(sort_column) if sort_order == "asc" else desc(sort_column)
        entries = query.order_by(ordering).offset((page - 1) * limit).limit(limit).all()

        return {
            "transactions": [
                {
                    "id": e.id,
                    "date": e.created_at,
                    "campaign_id": e.campaign_id,
                    "campaign_name": e.campaign.title if e.campaign else "Unknown",
                    "type": e.type.value,
                    "amount": e.amount,
                    "status": e.status.value,
                    "description": e.description,
                    "milestone_id": e.milestone_id,
                    "running_balance": running.get(e.id, 0),
                }
                for e in entries
            ],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }


def get_escrow_service(db: Session) -> EscrowService:
    return EscrowService(db)

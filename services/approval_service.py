# Approval Service for Reachstakes
# Content submission, brand review, Campaign Manager (CM) escalation and the
# 24-hour fail-safe deadline sweep.

from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_, asc
from typing import Optional, List, Dict, Any
from datetime import timedelta
import logging

from auth.decorators import is_admin
from config import app_config
from core.exceptions import ApprovalStateError, NotFoundError, PermissionDeniedError, MarketplaceError
from database.models import User, utcnow
from database.marketplace_models import (
    Campaign, Collaboration,
    CampaignStatusDB, CollaborationStatusDB, ApprovalStatusDB, EscalationReasonDB, ManagedApprovalModeDB,
)
from services.escrow_service import EscrowService
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

CM_STATES = (ApprovalStatusDB.CM_ESCALATED, ApprovalStatusDB.CM_REVIEW)
SUBMITTABLE_STATUSES = (CollaborationStatusDB.ACTIVE, CollaborationStatusDB.CHANGES_REQUESTED)

BRAND_ACTIONS = ("approve", "request_changes", "reject")


class ApprovalService:
    """Drives a collaboration through submission, review and escalation."""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None, escrow: Optional[EscrowService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.escrow = escrow or EscrowService(db, self.notifications)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_collaboration(self, collaboration_id: str) -> Collaboration:
        collab = self.db.query(Collaboration).options(
            joinedload(Collaboration.campaign)
        ).filter(Collaboration.id == collaboration_id).first()
        if not collab:
            raise NotFoundError("Collaboration not found")
        return collab

    @staticmethod
    def ensure_brand_owner(collab: Collaboration, user: User, allow_admin: bool = False) -> None:
        if collab.campaign.brand_id == user.id:
            return
        if allow_admin and is_admin(user):
            return
        raise PermissionDeniedError("Only the campaign's brand can perform this action")

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def start_approval_window(self, collab: Collaboration, now=None) -> None:
        """Open the review window and route it to the brand or straight to a CM."""
        now = now or utcnow()
        campaign = collab.campaign

        collab.status = CollaborationStatusDB.PENDING_REVIEW
        collab.approval_deadline = now + timedelta(hours=app_config.APPROVAL_WINDOW_HOURS)
        collab.warning_sent_at = None
        collab.approved_by = None
        collab.approved_by_role = None
        collab.decided_at = None
        collab.managed_note = None

        auto_managed = (
            campaign.is_managed_approval
            and campaign.managed_approval_mode == ManagedApprovalModeDB.AUTO_MANAGED
        )
        if auto_managed:
            collab.approval_status = ApprovalStatusDB.CM_REVIEW
            collab.escalated_at = now
            collab.escalated_reason = EscalationReasonDB.AUTO_MANAGED
            self.notifications.notify_escalated(
                campaign.brand_id, campaign.title, collab.id, EscalationReasonDB.AUTO_MANAGED.value
            )
        else:
            collab.approval_status = ApprovalStatusDB.BRAND_PENDING
            collab.escalated_at = None
            collab.escalated_reason = None
            creator_name = collab.creator.name if collab.creator else "A creator"
            self.notifications.notify_content_submitted(
                campaign.brand_id, creator_name, campaign.title, collab.id, collab.approval_deadline
            )

    def submit_content(
        self,
        collaboration_id: str,
        user: User,
        submission_url: str,
        platform: Optional[str] = None,
        title: Optional[str] = None,
        video_id: Optional[str] = None,
    ) -> Collaboration:
        collab = self.get_collaboration(collaboration_id)
        if collab.creator_id != user.id:
            raise PermissionDeniedError("You can only submit content for your own collaborations")
        if collab.status not in SUBMITTABLE_STATUSES:
            raise ApprovalStateError(f"Cannot submit content while collaboration is {collab.status.value}")
        if collab.campaign.status == CampaignStatusDB.COMPLETED:
            raise ApprovalStateError("Campaign is already completed")
        if not submission_url:
            raise MarketplaceError("Submission URL is required")

        now = utcnow()
        collab.submission_url = submission_url
        collab.submission_platform = platform
        collab.submission_title = title
        collab.video_id = video_id
        collab.submitted_at = now
        collab.revision_count = (collab.revision_count or 0) + (1 if collab.status == CollaborationStatusDB.CHANGES_REQUESTED else 0)

        self.start_approval_window(collab, now)
        self.db.flush()
        logger.info(f"Collaboration {collab.id} submitted, approval status {collab.approval_status.value}")
        return collab

    # =========================================================================
    # BRAND REVIEW
    # =========================================================================

    def start_brand_review(self, collaboration_id: str, user: User) -> Collaboration:
        collab = self.get_collaboration(collaboration_id)
        self.ensure_brand_owner(collab, user)
        if collab.approval_status != ApprovalStatusDB.BRAND_PENDING:
            raise ApprovalStateError("This submission is not awaiting brand review")
        if collab.status == CollaborationStatusDB.PENDING_REVIEW:
            collab.status = CollaborationStatusDB.UNDER_REVIEW
        self.db.flush()
        return collab

    def brand_decision(self, collaboration_id: str, user: User, action: str, feedback: Optional[str] = None) -> Collaboration:
        """Approve, request changes or reject while the brand owns the decision."""
        if action not in BRAND_ACTIONS:
            raise MarketplaceError(f"Unknown review action: {action}")

        collab = self.get_collaboration(collaboration_id)
        self.ensure_brand_owner(collab, user)
        if collab.approval_status != ApprovalStatusDB.BRAND_PENDING:
            raise ApprovalStateError(
                f"The brand cannot decide on this submission while it is {collab.approval_status.value if collab.approval_status else 'not submitted'}"
            )

        now = utcnow()
        campaign = collab.campaign

        if action == "approve":
            self._approve(collab, user, "brand", ApprovalStatusDB.APPROVED_BY_BRAND, now, note=feedback)
        elif action == "request_changes":
            if not feedback or not feedback.strip():
                raise MarketplaceError("Feedback is required when requesting changes")
            collab.status = CollaborationStatusDB.CHANGES_REQUESTED
            collab.approval_status = ApprovalStatusDB.CHANGES_REQUESTED_BY_BRAND
            collab.feedback_notes = feedback
            collab.decided_at = now
            collab.approval_deadline = None
            self.notifications.notify_changes_requested(collab.creator_id, campaign.title, collab.id, feedback)
        else:
            if not feedback or not feedback.strip():
                raise MarketplaceError("A reason is required when rejecting a submission")
            collab.status = CollaborationStatusDB.REJECTED
            collab.approval_status = ApprovalStatusDB.REJECTED_BY_BRAND
            collab.feedback_notes = feedback
            collab.decided_at = now
            collab.approval_deadline = None
            self.escrow.refund_collaboration(collab)
            self.notifications.notify_content_rejected(collab.creator_id, campaign.title, collab.id, feedback)

        self.db.flush()
        logger.info(f"Brand {user.id} chose {action} on collaboration {collab.id}")
        return collab

    def _approve(self, collab: Collaboration, approver: User, role: str, approval_status: ApprovalStatusDB, now, note: Optional[str] = None) -> None:
        collab.status = CollaborationStatusDB.APPROVED
        collab.approval_status = approval_status
        collab.approved_by = approver.id
        collab.approved_by_role = role
        collab.decided_at = now
        collab.approval_deadline = None
        if note:
            collab.managed_note = note
        self.notifications.notify_content_approved(collab.creator_id, collab.campaign.title, collab.id, role)
        self._maybe_auto_release(collab)

    def _maybe_auto_release(self, collab: Collaboration) -> None:
        if not app_config.AUTO_RELEASE_ON_APPROVAL:
            return
        if (collab.campaign.escrow_balance or 0) < (collab.agreed_price or 0) or not collab.agreed_price:
            logger.warning(f"Auto-release skipped for collaboration {collab.id}: escrow does not cover agreed price")
            return
        self.escrow.release_collaboration_payout(collab)

    # =========================================================================
    # ESCALATION
    # =========================================================================

    def escalate_to_manager(self, collab: Collaboration, reason: EscalationReasonDB, now=None) -> Collaboration:
        now = now or utcnow()
        collab.approval_status = ApprovalStatusDB.CM_ESCALATED
        collab.escalated_at = now
        collab.escalated_reason = reason
        if collab.status == CollaborationStatusDB.UNDER_REVIEW:
            collab.status = CollaborationStatusDB.PENDING_REVIEW
        self.notifications.notify_escalated(collab.campaign.brand_id, collab.campaign.title, collab.id, reason.value)
        logger.info(f"Collaboration {collab.id} escalated to CM ({reason.value})")
        return collab

    def request_escalation(self, collaboration_id: str, user: User) -> Collaboration:
        """Brand hands a pending submission to a Campaign Manager."""
        collab = self.get_collaboration(collaboration_id)
        self.ensure_brand_owner(collab, user, allow_admin=True)
        if collab.approval_status != ApprovalStatusDB.BRAND_PENDING:
            raise ApprovalStateError("Only submissions awaiting brand review can be escalated")
        self.escalate_to_manager(collab, EscalationReasonDB.BRAND_REQUEST)
        self.db.flush()
        return collab

    # =========================================================================
    # CAMPAIGN MANAGER ACTIONS
    # =========================================================================

    def cm_pickup(self, collaboration_id: str, manager: User) -> Collaboration:
        collab = self.get_collaboration(collaboration_id)
        if collab.approval_status != ApprovalStatusDB.CM_ESCALATED:
            raise ApprovalStateError("Only escalated items can be picked up")
        collab.approval_status = ApprovalStatusDB.CM_REVIEW
        collab.status = CollaborationStatusDB.UNDER_REVIEW
        self.db.flush()
        logger.info(f"CM {manager.id} picked up collaboration {collab.id}")
        return collab

    def cm_approve(self, collaboration_id: str, manager: User, note: Optional[str] = None) -> Collaboration:
        collab = self.get_collaboration(collaboration_id)
        if collab.approval_status not in CM_STATES:
            raise ApprovalStateError("Item is not in the Campaign Manager queue")
        self._approve(collab, manager, "admin", ApprovalStatusDB.APPROVED_BY_CM, utcnow(), note=note)
        self.db.flush()
        logger.info(f"CM {manager.id} approved collaboration {collab.id}")
        return collab

    def cm_reject(self, collaboration_id: str, manager: User, feedback: Optional[str], note: Optional[str] = None) -> Collaboration:
        if not feedback or not feedback.strip():
            raise MarketplaceError("Feedback is required when rejecting content")
        collab = self.get_collaboration(collaboration_id)
        if collab.approval_status not in CM_STATES:
            raise ApprovalStateError("Item is not in the Campaign Manager queue")

        collab.status = CollaborationStatusDB.CHANGES_REQUESTED
        collab.approval_status = ApprovalStatusDB.REJECTED_BY_CM
        collab.feedback_notes = feedback
        collab.managed_note = note
        collab.approved_by = manager.id
        collab.approved_by_role = "admin"
        collab.decided_at = utcnow()
        collab.approval_deadline = None
        self.notifications.notify_changes_requested(collab.creator_id, collab.campaign.title, collab.id, feedback)
        self.db.flush()
        logger.info(f"CM {manager.id} sent collaboration {collab.id} back for changes")
        return collab

    def toggle_managed_approval(self, campaign: Campaign, enabled: bool, mode: Optional[ManagedApprovalModeDB] = None) -> Campaign:
        campaign.is_managed_approval = enabled
        if mode is not None:
            campaign.managed_approval_mode = mode
        elif not enabled:
            campaign.managed_approval_mode = ManagedApprovalModeDB.MANUAL
        self.db.flush()
        logger.info(
            f"Managed approval for campaign {campaign.id}: enabled={enabled}, mode={campaign.managed_approval_mode.value}"
        )
        return campaign

    # =========================================================================
    # QUEUES & STATS
    # =========================================================================

    def get_cm_queue(self) -> List[Collaboration]:
        return self.db.query(Collaboration).options(
            joinedload(Collaboration.campaign)
        ).filter(
            Collaboration.approval_status.in_(CM_STATES)
        ).order_by(asc(Collaboration.escalated_at)).all()

    def get_brand_managed_items(self, brand_id: str) -> List[Collaboration]:
        return self.db.query(Collaboration).join(Campaign).options(
            joinedload(Collaboration.campaign)
        ).filter(
            Campaign.brand_id == brand_id,
            or_(
                Collaboration.escalated_at.isnot(None),
                Collaboration.approval_status.in_(CM_STATES + (ApprovalStatusDB.APPROVED_BY_CM, ApprovalStatusDB.REJECTED_BY_CM)),
            )
        ).order_by(asc(Collaboration.escalated_at)).all()

    def get_cm_stats(self, now=None) -> Dict[str, Any]:
        now = now or utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        escalated = self.db.query(Collaboration).filter(Collaboration.approval_status == ApprovalStatusDB.CM_ESCALATED).count()
        in_review = self.db.query(Collaboration).filter(Collaboration.approval_status == ApprovalStatusDB.CM_REVIEW).count()
        approved_today = self.db.query(Collaboration).filter(
            Collaboration.approval_status == ApprovalStatusDB.APPROVED_BY_CM,
            Collaboration.decided_at >= start_of_day
        ).count()

        decided = self.db.query(Collaboration.escalated_at, Collaboration.decided_at).filter(
            Collaboration.approval_status.in_((ApprovalStatusDB.APPROVED_BY_CM, ApprovalStatusDB.REJECTED_BY_CM)),
            Collaboration.escalated_at.isnot(None),
            Collaboration.decided_at.isnot(None)
        ).all()
        durations = [
            (decided_at - escalated_at).total_seconds() / 3600
            for escalated_at, decided_at in decided
            if decided_at >= escalated_at
        ]
        avg_response = round(sum(durations) / len(durations), 2) if durations else 0.0

        return {
            "pending_escalated": escalated,
            "in_review": in_review,
            "approved_today": approved_today,
            "avg_response_time_hours": avg_response,
            "total_pending": escalated + in_review,
        }

    # =========================================================================
    # DEADLINE SWEEP
    # =========================================================================

    def run_deadline_sweep(self, now=None) -> Dict[str, int]:
        """
        Escalate brand-pending submissions past their deadline and warn brands
        whose deadline is close. Safe to run any number of times.
        """
        now = now or utcnow()
        lead_time = timedelta(hours=app_config.APPROVAL_WINDOW_HOURS - app_config.APPROVAL_WARNING_HOURS)

        overdue = self.db.query(Collaboration).options(
            joinedload(Collaboration.campaign)
        ).filter(
            Collaboration.approval_status == ApprovalStatusDB.BRAND_PENDING,
            Collaboration.approval_deadline.isnot(None),
            Collaboration.approval_deadline <= now
        ).all()
        for collab in overdue:
            self.escalate_to_manager(collab, EscalationReasonDB.TIMEOUT, now)

        due_soon = self.db.query(Collaboration).options(
            joinedload(Collaboration.campaign)
        ).filter(
            Collaboration.approval_status == ApprovalStatusDB.BRAND_PENDING,
            Collaboration.warning_sent_at.is_(None),
            Collaboration.approval_deadline > now,
            Collaboration.approval_deadline <= now + lead_time
        ).all()
        for collab in due_soon:
            hours_left = (collab.approval_deadline - now).total_seconds() / 3600
            self.notifications.notify_deadline_warning(collab.campaign.brand_id, collab.campaign.title, collab.id, hours_left)
            collab.warning_sent_at = now

        self.db.flush()
        if overdue or due_soon:
            logger.info(f"Deadline sweep: {len(overdue)} escalated, {len(due_soon)} warned")
        return {"escalated": len(overdue), "warned": len(due_soon)}


def run_approval_sweep(session_factory) -> Dict[str, int]:
    """One sweep in its own session; used by the API scheduler and the worker."""
    db = session_factory()
    try:
        result = ApprovalService(db).run_deadline_sweep()
        db.commit()
        return result
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

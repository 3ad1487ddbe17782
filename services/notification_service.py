# Notification Service for Reachstakes
# Provides centralized notification creation and management

from sqlalchemy.orm import Session
from typing import Optional, List
from enum import Enum

from database.models import User, UserType, utcnow
from database.marketplace_models import Notification


class NotificationType(str, Enum):
    CONTENT_SUBMITTED = "content_submitted"
    APPROVAL_DEADLINE_WARNING = "approval_deadline_warning"
    APPROVAL_ESCALATED = "approval_escalated"
    CM_QUEUE_ITEM = "cm_queue_item"
    CONTENT_APPROVED = "content_approved"
    CHANGES_REQUESTED = "changes_requested"
    CONTENT_REJECTED = "content_rejected"
    PAYOUT_RECEIVED = "payout_received"
    FUNDING_COMPLETED = "funding_completed"
    FUNDING_FAILED = "funding_failed"
    ESCROW_REFUNDED = "escrow_refunded"
    DOCUMENT_SIGNED = "document_signed"
    SYSTEM = "system"


def format_amount(cents: int, currency: str = "USD") -> str:
    """Format cents as a display string like "USD 1,250.00"."""
    return f"{currency} {(cents or 0) / 100:,.2f}"


class NotificationService:
    """
    Service for creating and managing user notifications.
    Use this service from any router or service to send notifications.
    Notifications are flushed, never committed; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        type: NotificationType | str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> Notification:
        """
        Create a new notification for a user.

        Args:
            user_id: The user to notify
            type: Notification type (use NotificationType enum)
            title: Short notification title
            message: Full notification message
            action_url: Optional URL for the notification action
            data: Optional additional data as JSON

        Returns:
            The created Notification object
        """
        type_value = type.value if isinstance(type, NotificationType) else str(type)

        notification = Notification(
            user_id=user_id,
            type=type_value,
            title=title,
            message=message,
            action_url=action_url,
            data=data or {},
        )
        self.db.add(notification)
        self.db.flush()  # Get the ID without committing
        return notification

    def create_batch(
        self,
        user_ids: List[str],
        type: NotificationType | str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> List[Notification]:
        """Create the same notification for multiple users."""
        return [
            self.create(user_id=user_id, type=type, title=title, message=message, action_url=action_url, data=data)
            for user_id in user_ids
        ]

    def mark_read(self, notification_id: str, user_id: str) -> bool:
        """
        Mark a notification as read.

        Returns:
            True if notification was marked read, False if not found
        """
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()

        if notification:
            notification.read = True
            notification.read_at = utcnow()
            return True
        return False

    def mark_all_read(self, user_id: str) -> int:
        """
        Mark all notifications as read for a user.

        Returns:
            Number of notifications marked as read
        """
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read == False
        ).update({
            "read": True,
            "read_at": utcnow()
        }, synchronize_session=False)

    def get_unread_count(self, user_id: str) -> int:
        """Get unread notification count for a user."""
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read == False
        ).count()

    # =========================================================================
    # APPROVAL WORKFLOW HELPERS
    # =========================================================================

    def notify_content_submitted(self, brand_user_id: str, creator_name: str, campaign_title: str, collaboration_id: str, deadline):
        """Notify brand that a creator submitted content for review."""
        return self.create(
            user_id=brand_user_id,
            type=NotificationType.CONTENT_SUBMITTED,
            title="New Submission to Review",
            message=f"{creator_name} submitted content for {campaign_title}. Please review before {deadline:%Y-%m-%d %H:%M} UTC.",
            action_url=f"/brand/collaborations/{collaboration_id}",
            data={"collaboration_id": collaboration_id, "deadline": deadline.isoformat()}
        )

    def notify_deadline_warning(self, brand_user_id: str, campaign_title: str, collaboration_id: str, hours_left: float):
        """Warn the brand before a submission is escalated to a Campaign Manager."""
        return self.create(
            user_id=brand_user_id,
            type=NotificationType.APPROVAL_DEADLINE_WARNING,
            title="Review Deadline Approaching",
            message=f"A submission for {campaign_title} will be escalated to a Campaign Manager in about {hours_left:.0f} hours.",
            action_url=f"/brand/collaborations/{collaboration_id}",
            data={"collaboration_id": collaboration_id, "hours_left": round(hours_left, 2)}
        )

    def notify_escalated(self, brand_user_id: str, campaign_title: str, collaboration_id: str, reason: str):
        """Tell the brand and every Campaign Manager that an item entered the CM queue."""
        brand_note = self.create(
            user_id=brand_user_id,
            type=NotificationType.APPROVAL_ESCALATED,
            title="Submission Escalated",
            message=f"A submission for {campaign_title} was handed to a Campaign Manager ({reason}).",
            action_url=f"/brand/collaborations/{collaboration_id}",
            data={"collaboration_id": collaboration_id, "reason": reason}
        )
        admin_ids = [
            user_id for (user_id,) in self.db.query(User.id).filter(User.user_type == UserType.ADMIN).all()
        ]
        self.create_batch(
            user_ids=admin_ids,
            type=NotificationType.CM_QUEUE_ITEM,
            title="New Item in CM Queue",
            message=f"{campaign_title}: submission needs review ({reason}).",
            action_url="/admin/managed-approvals",
            data={"collaboration_id": collaboration_id, "reason": reason}
        )
        return brand_note

    def notify_content_approved(self, creator_user_id: str, campaign_title: str, collaboration_id: str, approved_by_role: str):
        return self.create(
            user_id=creator_user_id,
            type=NotificationType.CONTENT_APPROVED,
            title="Content Approved!",
            message=f"Your submission for {campaign_title} was approved by the {approved_by_role}.",
            action_url=f"/creator/collaborations/{collaboration_id}",
            data={"collaboration_id": collaboration_id, "approved_by_role": approved_by_role}
        )

    def notify_changes_requested(self, creator_user_id: str, campaign_title: str, collaboration_id: str, feedback: str):
        return self.create(
            user_id=creator_user_id,
            type=NotificationType.CHANGES_REQUESTED,
            title="Changes Requested",
            message=f"Changes were requested on your submission for {campaign_title}.",
            action_url=f"/creator/collaborations/{collaboration_id}",
            data={"collaboration_id": collaboration_id, "feedback": feedback}
        )

    def notify_content_rejected(self, creator_user_id: str, campaign_title: str, collaboration_id: str, reason: str):
        return self.create(
            user_id=creator_user_id,
            type=NotificationType.CONTENT_REJECTED,
            title="Submission Rejected",
            message=f"Your submission for {campaign_title} was rejected.",
            action_url=f"/creator/collaborations/{collaboration_id}",
            data={"collaboration_id": collaboration_id, "reason": reason}
        )

    # =========================================================================
    # PAYMENT NOTIFICATION HELPERS
    # =========================================================================

    def notify_payout_received(self, creator_user_id: str, amount: int, campaign_title: str, transaction_id: Optional[str] = None):
        """Notify creator that escrow was released to their wallet."""
        return self.create(
            user_id=creator_user_id,
            type=NotificationType.PAYOUT_RECEIVED,
            title="Payout Released",
            message=f"{format_amount(amount)} from {campaign_title} has been released to your wallet.",
            action_url="/creator/wallet",
            data={"amount": amount, "transaction_id": transaction_id}
        )

    def notify_funding_completed(self, brand_user_id: str, amount: int, campaign_id: str, campaign_title: str):
        return self.create(
            user_id=brand_user_id,
            type=NotificationType.FUNDING_COMPLETED,
            title="Escrow Funded",
            message=f"{format_amount(amount)} is now held in escrow for {campaign_title}.",
            action_url=f"/brand/campaigns/{campaign_id}",
            data={"amount": amount, "campaign_id": campaign_id}
        )

    def notify_funding_failed(self, brand_user_id: str, campaign_id: Optional[str], transaction_id: str):
        return self.create(
            user_id=brand_user_id,
            type=NotificationType.FUNDING_FAILED,
            title="Payment Failed",
            message="Your campaign funding payment did not complete. No funds were moved.",
            action_url=f"/brand/payment/{transaction_id}",
            data={"campaign_id": campaign_id, "transaction_id": transaction_id}
        )

    def notify_escrow_refunded(self, brand_user_id: str, amount: int, campaign_title: str):
        return self.create(
            user_id=brand_user_id,
            type=NotificationType.ESCROW_REFUNDED,
            title="Escrow Refunded",
            message=f"{format_amount(amount)} from {campaign_title} was returned to your vault.",
            action_url="/brand/escrow",
            data={"amount": amount}
        )


def get_notification_service(db: Session) -> NotificationService:
    """Factory function to get notification service instance."""
    return NotificationService(db)

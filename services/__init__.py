# Services Module for Reachstakes
# Contains business logic services

from services.notification_service import NotificationService, NotificationType, get_notification_service
from services.escrow_service import EscrowService, get_escrow_service
from services.approval_service import ApprovalService, run_approval_sweep
from services.payment_service import PaymentService

__all__ = [
    'NotificationService',
    'NotificationType',
    'get_notification_service',
    'EscrowService',
    'get_escrow_service',
    'ApprovalService',
    'run_approval_sweep',
    'PaymentService',
]

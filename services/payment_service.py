# Payment Service for Reachstakes
# Hosted-checkout funding of campaign escrow through Tazapay

from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
import logging

from config.app_config import FRONTEND_URL, DEFAULT_CURRENCY
from core.exceptions import NotFoundError, TazapayError
from core.fees import calculate_fees
from core.tazapay_service import TazapayService
from database.models import User, utcnow
from database.marketplace_models import (
    Campaign, Transaction, CampaignStatusDB, TransactionTypeDB, TransactionStatusDB,
)
from services.escrow_service import EscrowService
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class PaymentService:
    """Creates checkouts and settles them into campaign escrow."""

    def __init__(self, db: Session, gateway: TazapayService, notifications: Optional[NotificationService] = None):
        self.db = db
        self.gateway = gateway
        self.notifications = notifications or NotificationService(db)
        self.escrow = EscrowService(db, self.notifications)

    def create_checkout(self, user: User, campaign_id: str, amount: int, country: str = "US") -> Dict[str, Any]:
        """
        Start funding ``amount`` cents into a campaign's escrow.

        The brand is charged amount + fees; only ``amount`` reaches escrow.
        """
        campaign = self.escrow.get_owned_campaign(campaign_id, user, allow_admin=False)
        self.escrow.check_funding_headroom(campaign, amount)
        fees = calculate_fees(amount)

        transaction = Transaction(
            user_id=user.id,
            campaign_id=campaign.id,
            type=TransactionTypeDB.DEPOSIT,
            status=TransactionStatusDB.PENDING,
            amount=fees["total"],
            platform_fee=fees["platform_fee"],
            processing_fee=fees["processing_fee"],
            net_amount=amount,
            currency=campaign.currency or DEFAULT_CURRENCY,
            provider="tazapay",
            description=f"Escrow funding for \"{campaign.title}\"",
            metadata_json={"fees": fees},
        )
        self.db.add(transaction)
        self.db.flush()

        checkout = self.gateway.create_checkout(
            amount=fees["total"],
            reference_id=transaction.id,
            customer_name=user.name or user.email,
            customer_email=user.email,
            success_url=f"{FRONTEND_URL}/brand/payment/{transaction.id}?status=success",
            cancel_url=f"{FRONTEND_URL}/brand/payment/{transaction.id}?status=cancelled",
            description=f"Reachstakes escrow funding: {campaign.title}",
            country=country,
            currency=transaction.currency,
        )

        transaction.external_reference_id = checkout["id"]
        transaction.checkout_url = checkout.get("url")
        if campaign.status == CampaignStatusDB.DRAFT:
            campaign.status = CampaignStatusDB.PENDING_PAYMENT
        self.db.flush()

        logger.info(f"Checkout {checkout['id']} created for campaign {campaign.id}, transaction {transaction.id}")
        return {
            "message": "Checkout initiated",
            "url": transaction.checkout_url,
            "transaction_id": transaction.id,
            "fees": fees,
        }

    # =========================================================================
    # SETTLEMENT
    # =========================================================================

    def complete_transaction(self, transaction: Transaction, gateway_status: Optional[str] = None, payload: Optional[dict] = None) -> bool:
        """Mark a gateway deposit paid and credit escrow. Returns False if already settled."""
        if transaction.status == TransactionStatusDB.COMPLETED:
            return False

        transaction.status = TransactionStatusDB.COMPLETED
        transaction.processed_at = utcnow()
        transaction.gateway_status = gateway_status
        if payload is not None:
            transaction.metadata_json = {**(transaction.metadata_json or {}), "gateway": payload}

        if transaction.campaign_id:
            campaign = self.db.query(Campaign).filter(Campaign.id == transaction.campaign_id).first()
            if campaign:
                credited, _ = self.escrow.credit_campaign_escrow(
                    campaign, transaction.net_amount, f"Escrow funding via Tazapay for \"{campaign.title}\""
                )
                self.notifications.notify_funding_completed(transaction.user_id, credited, campaign.id, campaign.title)
        else:
            wallet = self.escrow.get_or_create_wallet(transaction.user_id)
            wallet.balance += transaction.net_amount

        self.db.flush()
        logger.info(f"Transaction {transaction.id} completed ({transaction.net_amount} to escrow)")
        return True

    def fail_transaction(self, transaction: Transaction, gateway_status: Optional[str] = None, payload: Optional[dict] = None) -> bool:
        if transaction.status in (TransactionStatusDB.COMPLETED, TransactionStatusDB.FAILED):
            return False
        transaction.status = TransactionStatusDB.FAILED
        transaction.gateway_status = gateway_status
        if payload is not None:
            transaction.metadata_json = {**(transaction.metadata_json or {}), "gateway": payload}
        self.notifications.notify_funding_failed(transaction.user_id, transaction.campaign_id, transaction.id)
        self.db.flush()
        logger.info(f"Transaction {transaction.id} failed ({gateway_status})")
        return True

    def verify(self, user: User, transaction_id: str) -> Dict[str, Any]:
        """Poll the gateway for a pending checkout."""
        transaction = self.db.query(Transaction).filter(
            Transaction.id == transaction_id,
            Transaction.user_id == user.id
        ).first()
        if not transaction:
            raise NotFoundError("Transaction not found")

        if transaction.status in (TransactionStatusDB.COMPLETED, TransactionStatusDB.FAILED):
            return {"status": transaction.status.value, "message": f"Transaction already {transaction.status.value.lower()}"}
        if not transaction.external_reference_id:
            return {"status": TransactionStatusDB.PENDING.value, "message": "No Tazapay reference found yet"}

        try:
            result = self.gateway.get_checkout_status(transaction.external_reference_id)
        except TazapayError as e:
            logger.warning(f"Could not verify transaction {transaction.id} with Tazapay: {e}")
            return {"status": TransactionStatusDB.PENDING.value, "message": "Unable to verify with Tazapay, still pending"}

        if result["state"] == "paid":
            self.complete_transaction(transaction, result["payment_status"], result.get("raw"))
            return {"status": TransactionStatusDB.COMPLETED.value, "message": "Payment verified and confirmed"}
        if result["state"] == "failed":
            self.fail_transaction(transaction, result["payment_status"], result.get("raw"))
            return {"status": TransactionStatusDB.FAILED.value, "message": f"Payment {result['payment_status']}"}

        transaction.gateway_status = result["payment_status"] or transaction.gateway_status
        return {
            "status": TransactionStatusDB.PENDING.value,
            "message": f"Tazapay status: {result['payment_status'] or 'awaiting payment'}",
        }

    def handle_webhook_event(self, event: Dict[str, Any], raw: Optional[dict] = None) -> Dict[str, Any]:
        """Apply a parsed webhook event (see TazapayWebhookHandler.parse_event)."""
        if event["outcome"] == "ignored":
            return {"status": "ignored", "event": event["event"]}

        transaction = None
        if event.get("checkout_id"):
            transaction = self.db.query(Transaction).filter(
                Transaction.external_reference_id == event["checkout_id"]
            ).first()
        if transaction is None and event.get("reference_id"):
            transaction = self.db.query(Transaction).filter(
                Transaction.id == event["reference_id"],
                Transaction.provider == "tazapay"
            ).first()
        if transaction is None:
            logger.warning(f"Webhook {event['event']} did not match any transaction")
            return {"status": "unmatched", "event": event["event"]}

        if event["outcome"] == "paid":
            if event.get("amount_paid") is not None:
                try:
                    transaction.received_amount = int(event["amount_paid"])
                except (TypeError, ValueError):
                    logger.warning(f"Webhook amount not numeric: {event['amount_paid']}")
            transaction.received_currency = event.get("currency")
            changed = self.complete_transaction(transaction, event.get("payment_status") or event["event"], raw)
        else:
            changed = self.fail_transaction(transaction, event.get("payment_status") or event["event"], raw)

        return {
            "status": "processed" if changed else "already_processed",
            "event": event["event"],
            "transaction_id": transaction.id,
        }

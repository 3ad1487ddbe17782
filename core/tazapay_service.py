# Tazapay Payment Service for campaign escrow funding
import base64
import hashlib
import hmac
import os
import requests
from typing import Optional, Dict, Any
import logging

from core.exceptions import TazapayError

logger = logging.getLogger(__name__)


class TazapayConfig:
    """Tazapay configuration"""
    BASE_URL = os.getenv("TAZAPAY_API_BASE_URL", "https://service-sandbox.tazapay.com")
    API_KEY = os.getenv("TAZAPAY_API_KEY", "")
    API_SECRET = os.getenv("TAZAPAY_API_SECRET", "")
    WEBHOOK_SECRET = os.getenv("TAZAPAY_WEBHOOK_SECRET", "")
    CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")
    TIMEOUT_SECONDS = int(os.getenv("TAZAPAY_TIMEOUT_SECONDS", 30))

    PAID_STATUSES = ("paid", "success", "completed", "payment_completed")
    FAILED_STATUSES = ("failed", "expired", "cancelled", "canceled")


class TazapayService:
    """Service for creating and checking Tazapay hosted checkouts"""

    def __init__(self, api_key: Optional[str] = None, api_secret: Optional[str] = None, base_url: Optional[str] = None):
        self.base_url = base_url or TazapayConfig.BASE_URL
        self.api_key = api_key if api_key is not None else TazapayConfig.API_KEY
        self.api_secret = api_secret if api_secret is not None else TazapayConfig.API_SECRET

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def _headers(self) -> Dict[str, str]:
        if not self.is_configured:
            raise TazapayError("Missing Tazapay API key or secret")
        token = base64.b64encode(f"{self.api_key}:{self.api_secret}".encode("utf-8")).decode("ascii")
        return {
            "Authorization": f"Basic {token}",
            "Content-Type": "application/json"
        }

    def _make_request(self, method: str, endpoint: str, data: Optional[Dict] = None) -> Dict[str, Any]:
        """Make a request to Tazapay API"""
        url = f"{self.base_url}{endpoint}"
        headers = self._headers()
        try:
            if method == "GET":
                response = requests.get(url, headers=headers, timeout=TazapayConfig.TIMEOUT_SECONDS)
            elif method == "POST":
                response = requests.post(url, headers=headers, json=data, timeout=TazapayConfig.TIMEOUT_SECONDS)
            else:
                raise ValueError(f"Unsupported method: {method}")

            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Tazapay API error: {e}")
            raise TazapayError(f"Payment service error: {str(e)}")

    def create_checkout(
        self,
        amount: int,
        reference_id: str,
        customer_name: str,
        customer_email: str,
        success_url: str,
        cancel_url: str,
        description: str = "Reachstakes Campaign Funding",
        country: str = "US",
        currency: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a hosted checkout session.

        Args:
            amount: Amount in cents (minor units)
            reference_id: Our transaction id, echoed back in webhooks
            customer_name: Brand contact name
            customer_email: Brand contact email
            success_url: Redirect after a completed payment
            cancel_url: Redirect after the brand abandons checkout

        Returns:
            Normalised {"id", "url", "raw"} for the created session
        """
        data = {
            "invoice_currency": currency or TazapayConfig.CURRENCY,
            "amount": amount,
            "reference_id": reference_id,
            "transaction_description": description,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "customer_details": {
                "name": customer_name,
                "email": customer_email,
                "country": country,
            },
        }

        response = self._make_request("POST", "/v3/checkout", data)
        checkout = response.get("data") or response
        checkout_id = checkout.get("id") or checkout.get("checkout_id") or checkout.get("txn_no")
        if not checkout_id:
            raise TazapayError("Tazapay checkout response did not include an id")

        return {"id": checkout_id, "url": checkout.get("url"), "raw": response}

    def get_checkout_status(self, checkout_id: str) -> Dict[str, Any]:
        """
        Fetch a checkout and classify its payment result.

        Returns:
            {"state": "paid" | "failed" | "pending", "payment_status": str, "raw": dict}
        """
        response = self._make_request("GET", f"/v3/checkout/{checkout_id}")
        checkout = response.get("data") or response

        payment_status = (checkout.get("payment_status") or "").lower()
        attempts = checkout.get("payment_attempts") or []
        attempt_status = (attempts[0].get("status") or "").lower() if attempts else ""

        if payment_status in TazapayConfig.PAID_STATUSES or attempt_status == "succeeded":
            state = "paid"
        elif payment_status in TazapayConfig.FAILED_STATUSES or attempt_status == "failed":
            state = "failed"
        else:
            state = "pending"

        return {"state": state, "payment_status": payment_status, "raw": response}


def get_tazapay_service() -> TazapayService:
    """FastAPI dependency; tests override it with a fake gateway."""
    return TazapayService()


# Webhook handler for Tazapay events
class TazapayWebhookHandler:
    """Handle Tazapay webhook events"""

    SUCCESS_EVENTS = (
        "checkout.paid",
        "payment.succeeded",
        "payment_attempt.succeeded",
        "payin.success",
        "transaction.success",
    )

    FAILURE_EVENTS = (
        "payment.failed",
        "payment_attempt.failed",
        "checkout.failed",
        "payin.failed",
    )

    SIGNATURE_HEADER = "webhook-signature"

    @staticmethod
    def verify_webhook(payload: bytes, signature: Optional[str], secret_key: str) -> bool:
        """
        Verify webhook signature (hex HMAC-SHA256 of the raw body).

        Args:
            payload: Raw request body
            signature: webhook-signature header value
            secret_key: Tazapay webhook secret

        Returns:
            True if signature is valid
        """
        if not signature:
            return False

        computed_signature = hmac.new(
            secret_key.encode('utf-8'),
            payload,
            hashlib.sha256
        ).hexdigest()

        return hmac.compare_digest(computed_signature, signature)

    @classmethod
    def parse_event(cls, event: Dict[str, Any]) -> Dict[str, Any]:
        """Pull the event type, outcome and references out of a webhook body"""
        event_type = event.get("type") or event.get("event_type") or ""
        data = event.get("data") or event

        if event_type in cls.SUCCESS_EVENTS:
            outcome = "paid"
        elif event_type in cls.FAILURE_EVENTS:
            outcome = "failed"
        else:
            outcome = "ignored"

        return {
            "event": event_type,
            "outcome": outcome,
            "checkout_id": data.get("checkout_id") or data.get("id") or event.get("checkout_id"),
            "reference_id": data.get("reference_id") or event.get("reference_id"),
            "payment_status": data.get("payment_status") or data.get("status"),
            "amount_paid": data.get("amount_paid") or data.get("amount"),
            "currency": data.get("invoice_currency") or data.get("currency"),
        }

# Payments Router for Reachstakes
# Fee quotes, Tazapay hosted checkout, verification polling and webhooks

from fastapi import APIRouter, HTTPException, Depends, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional
import json
import logging

from database.config import get_db
from database.models import User
from database.marketplace_models import Transaction
from schemas.marketplace import (
    FeeCalculationRequest, FeeBreakdown, CheckoutRequest, CheckoutResponse,
    TransactionResponse, PaymentStatusResponse,
)
from auth.roles import UserType as UserTypeRole
from auth.decorators import require_user_type
from auth.dependencies import get_current_user
from core.exceptions import NotFoundError
from core.fees import calculate_fees
from core.tazapay_service import TazapayService, TazapayConfig, TazapayWebhookHandler, get_tazapay_service
from services.escrow_service import EscrowService
from services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

HISTORY_LIMIT = 50


# ============================================================================
# QUOTES & ESCROW DETAILS
# ============================================================================

@router.post("/calculate-fees", response_model=FeeBreakdown)
async def get_fee_breakdown(data: FeeCalculationRequest):
    """Fee breakdown for funding ``amount`` cents into escrow."""
    return calculate_fees(data.amount)


@router.get("/escrow/{campaign_id}")
async def get_campaign_escrow(
    campaign_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    campaign = EscrowService(db).get_owned_campaign(campaign_id, current_user)
    target = campaign.target_budget or 0
    return {
        "campaign_id": campaign.id,
        "target_budget": target,
        "total_funded": campaign.total_funded or 0,
        "escrow_balance": campaign.escrow_balance or 0,
        "total_released": campaign.total_released or 0,
        "total_refunded": campaign.total_refunded or 0,
        "remaining_budget": campaign.remaining_budget,
        "escrow_status": campaign.escrow_status.value,
        "escrow_funded_at": campaign.escrow_funded_at,
        "funding_progress": round((campaign.escrow_balance or 0) / target * 100, 2) if target else 0.0,
    }


# ============================================================================
# CHECKOUT
# ============================================================================

@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    data: CheckoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND)),
    gateway: TazapayService = Depends(get_tazapay_service),
):
    """
    Start a Tazapay hosted checkout that funds a campaign's escrow.
    The brand is redirected to the returned URL.
    """
    result = PaymentService(db, gateway).create_checkout(current_user, data.campaign_id, data.amount, data.country)
    db.commit()
    return result


@router.get("/verify/{transaction_id}", response_model=PaymentStatusResponse)
async def verify_payment(
    transaction_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: TazapayService = Depends(get_tazapay_service),
):
    """Poll Tazapay for a pending checkout. Called by the frontend return page."""
    result = PaymentService(db, gateway).verify(current_user, transaction_id)
    db.commit()
    return result


@router.post("/webhook")
async def tazapay_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: TazapayService = Depends(get_tazapay_service),
):
    """
    Handle Tazapay webhooks. The signature is checked whenever a webhook
    secret is configured.
    """
    body = await request.body()
    secret = TazapayConfig.WEBHOOK_SECRET
    if secret:
        signature = request.headers.get(TazapayWebhookHandler.SIGNATURE_HEADER)
        if not TazapayWebhookHandler.verify_webhook(body, signature, secret):
            raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    event = TazapayWebhookHandler.parse_event(payload)
    logger.info(f"Tazapay webhook received: {event['event']}")

    result = PaymentService(db, gateway).handle_webhook_event(event, payload)
    db.commit()
    return result


# ============================================================================
# HISTORY
# ============================================================================

@router.get("/history", response_model=List[TransactionResponse])
async def get_payment_history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    campaign_id: Optional[str] = Query(None),
):
    """Caller's transactions, newest first."""
    query = db.query(Transaction).filter(Transaction.user_id == current_user.id)
    if campaign_id:
        query = query.filter(Transaction.campaign_id == campaign_id)
    return query.order_by(desc(Transaction.created_at)).limit(HISTORY_LIMIT).all()


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    transaction = db.query(Transaction).filter(
        Transaction.id == transaction_id,
        Transaction.user_id == current_user.id
    ).first()
    if not transaction:
        raise NotFoundError("Transaction not found")
    return transaction

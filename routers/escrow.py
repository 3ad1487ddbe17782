# Escrow Router for Reachstakes
# Brand vault, campaign escrow funding and the escrow ledger

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import text
from typing import Optional
import logging

from database.config import get_db
from database.models import User, utcnow
from schemas.marketplace import (
    VaultDepositRequest, VaultWithdrawRequest, FundCampaignRequest, ReleaseMilestoneRequest, RefundRequest,
    LedgerSortField,
)
from auth.roles import Permission
from auth.decorators import require_permission
from core.tazapay_service import TazapayService, get_tazapay_service
from services.escrow_service import EscrowService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/escrow", tags=["Escrow"])


# ============================================================================
# REPORTING
# ============================================================================

@router.get("/overview")
async def get_overview(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_VAULT))
):
    """Balances, coverage ratio, liquidity state and 7-day history."""
    overview = EscrowService(db).get_overview(current_user)
    db.commit()
    return overview


@router.get("/summary")
async def get_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_VAULT))
):
    summary = EscrowService(db).get_summary(current_user)
    db.commit()
    return summary


@router.get("/campaigns")
async def get_escrow_campaigns(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_VAULT))
):
    return EscrowService(db).get_campaigns(current_user)


@router.get("/transactions")
async def get_ledger(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_VAULT)),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: LedgerSortField = Query(LedgerSortField.DATE),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    search: Optional[str] = None,
    type: Optional[str] = Query(None, description="Funding, Release, Refund, Adjustment or all"),
):
    """Paginated escrow ledger with a running balance."""
    return EscrowService(db).get_ledger(
        current_user,
        page=page,
        limit=limit,
        sort_by=sort_by.value,
        sort_order=sort_order,
        search=search,
        entry_type=type,
    )


@router.get("/system-status")
async def get_system_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_VAULT)),
    gateway: TazapayService = Depends(get_tazapay_service),
):
    """Operational status of the database and the payment gateway configuration."""
    try:
        db.execute(text("SELECT 1"))
        database = "operational"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database = "degraded"

    payments = "operational" if gateway.is_configured else "not_configured"
    overall = "operational" if database == "operational" and payments == "operational" else "degraded"
    return {
        "status": overall,
        "database": database,
        "payment_gateway": payments,
        "checked_at": utcnow(),
    }


# ============================================================================
# VAULT MOVEMENTS
# ============================================================================

@router.post("/fund")
async def fund_campaign(
    data: FundCampaignRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.FUND_CAMPAIGNS))
):
    """Move cash from the vault into a campaign's escrow."""
    result = EscrowService(db).fund_campaign(current_user, data.campaign_id, data.amount)
    db.commit()
    return {"message": "Campaign funded", **result}


@router.post("/deposit")
async def deposit(
    data: VaultDepositRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_VAULT))
):
    result = EscrowService(db).deposit(current_user, data.amount, data.method)
    db.commit()
    return {"message": "Deposit recorded", **result}


@router.post("/withdraw")
async def withdraw(
    data: VaultWithdrawRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_VAULT))
):
    result = EscrowService(db).withdraw(current_user, data.amount)
    db.commit()
    return {"message": "Withdrawal processed", **result}


@router.post("/release")
async def release_milestone(
    data: ReleaseMilestoneRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.RELEASE_PAYOUTS))
):
    """Release a milestone amount from a campaign's escrow."""
    result = EscrowService(db).release_milestone(
        current_user,
        data.campaign_id,
        data.amount,
        milestone_id=data.milestone_id,
        collaboration_id=data.collaboration_id,
    )
    db.commit()
    return {"message": "Funds released", **result}


@router.post("/refund")
async def refund_escrow(
    data: RefundRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_VAULT))
):
    """Return unreserved campaign escrow to the vault. Omit amount to refund all of it."""
    result = EscrowService(db).refund_campaign(current_user, data.campaign_id, data.amount)
    db.commit()
    return {"message": "Escrow refunded", **result}

# Managed Approvals Router for Reachstakes
# Campaign Manager (CM) queue, escalation and managed-approval settings

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
import logging

from database.config import get_db
from database.models import User, utcnow
from schemas.marketplace import (
    ManagedApprovalToggle, CMDecisionRequest, CollaborationResponse, CMQueueItem, CMStatsResponse,
)
from auth.roles import UserType as UserTypeRole
from auth.decorators import require_user_type, require_admin, is_admin
from core.exceptions import PermissionDeniedError
from services.approval_service import ApprovalService
from services.escrow_service import EscrowService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/managed-approvals", tags=["Managed Approvals"])


def _queue_item(collab, now) -> CMQueueItem:
    item = CMQueueItem.model_validate(collab)
    item.campaign_title = collab.campaign.title
    item.brand_id = collab.campaign.brand_id
    if collab.escalated_at:
        item.hours_in_queue = round((now - collab.escalated_at).total_seconds() / 3600, 2)
    return item


# ============================================================================
# BRAND ENDPOINTS
# ============================================================================

@router.patch("/campaigns/{campaign_id}/toggle")
async def toggle_managed_approval(
    campaign_id: str,
    data: ManagedApprovalToggle,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """Turn managed approval on or off for a campaign and pick its mode."""
    campaign = EscrowService(db).get_owned_campaign(campaign_id, current_user)
    campaign = ApprovalService(db).toggle_managed_approval(campaign, data.enabled, data.mode)
    db.commit()
    return {
        "campaign_id": campaign.id,
        "is_managed_approval": campaign.is_managed_approval,
        "managed_approval_mode": campaign.managed_approval_mode.value,
    }


@router.get("/brand/{brand_id}", response_model=List[CMQueueItem])
async def get_brand_managed_items(
    brand_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """A brand's submissions that went through the CM queue."""
    if current_user.id != brand_id and not is_admin(current_user):
        raise PermissionDeniedError("You can only view your own managed approvals")
    now = utcnow()
    return [_queue_item(c, now) for c in ApprovalService(db).get_brand_managed_items(brand_id)]


@router.post("/{collaboration_id}/escalate", response_model=CollaborationResponse)
async def escalate_to_manager(
    collaboration_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    collab = ApprovalService(db).request_escalation(collaboration_id, current_user)
    db.commit()
    db.refresh(collab)
    return collab


# ============================================================================
# CAMPAIGN MANAGER ENDPOINTS
# ============================================================================

@router.get("/cm-queue", response_model=List[CMQueueItem])
async def get_cm_queue(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Escalated and in-review items, oldest escalation first."""
    now = utcnow()
    return [_queue_item(c, now) for c in ApprovalService(db).get_cm_queue()]


@router.get("/stats", response_model=CMStatsResponse)
async def get_cm_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    return ApprovalService(db).get_cm_stats()


@router.post("/{collaboration_id}/cm-pickup", response_model=CollaborationResponse)
async def cm_pickup(
    collaboration_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    collab = ApprovalService(db).cm_pickup(collaboration_id, current_user)
    db.commit()
    db.refresh(collab)
    return collab


@router.post("/{collaboration_id}/cm-approve", response_model=CollaborationResponse)
async def cm_approve(
    collaboration_id: str,
    data: CMDecisionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    collab = ApprovalService(db).cm_approve(collaboration_id, current_user, note=data.note)
    db.commit()
    db.refresh(collab)
    return collab


@router.post("/{collaboration_id}/cm-reject", response_model=CollaborationResponse)
async def cm_reject(
    collaboration_id: str,
    data: CMDecisionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin())
):
    """Send an escalated submission back to the creator. Feedback is required."""
    collab = ApprovalService(db).cm_reject(collaboration_id, current_user, data.feedback, note=data.note)
    db.commit()
    db.refresh(collab)
    return collab

# Collaborations Router for Reachstakes
# Applications, content submission and brand review

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
import logging

from database.config import get_db
from database.models import User
from database.marketplace_models import (
    Campaign, Collaboration, CampaignStatusDB, CollaborationStatusDB,
)
from schemas.marketplace import (
    CollaborationApply, CollaborationAccept, ContentSubmission, BrandReviewRequest, CollaborationResponse,
)
from auth.roles import UserType as UserTypeRole
from auth.decorators import require_user_type, is_admin
from auth.dependencies import get_current_user
from core.exceptions import NotFoundError, PermissionDeniedError, ApprovalStateError
from services.approval_service import ApprovalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/collaborations", tags=["Collaborations"])


def _with_campaign(db: Session):
    return db.query(Collaboration).options(joinedload(Collaboration.campaign))


# ============================================================================
# APPLICATIONS
# ============================================================================

@router.post("/campaigns/{campaign_id}/apply", response_model=CollaborationResponse, status_code=status.HTTP_201_CREATED)
async def apply_to_campaign(
    campaign_id: str,
    data: CollaborationApply,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    """Creator applies to a campaign. One collaboration per creator per campaign."""
    campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
    if not campaign:
        raise NotFoundError("Campaign not found")
    if campaign.status == CampaignStatusDB.COMPLETED:
        raise ApprovalStateError("Campaign is no longer accepting applications")

    existing = db.query(Collaboration).filter(
        Collaboration.campaign_id == campaign_id,
        Collaboration.creator_id == current_user.id
    ).first()
    if existing:
        raise ApprovalStateError("You have already applied to this campaign")

    collab = Collaboration(
        campaign_id=campaign_id,
        creator_id=current_user.id,
        pitch=data.pitch,
        agreed_price=data.proposed_price or 0,
        status=CollaborationStatusDB.APPLIED,
    )
    db.add(collab)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ApprovalStateError("You have already applied to this campaign")
    db.refresh(collab)

    logger.info(f"Creator {current_user.id} applied to campaign {campaign_id}")
    return collab


@router.post("/{collaboration_id}/accept", response_model=CollaborationResponse)
async def accept_application(
    collaboration_id: str,
    data: CollaborationAccept,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """Brand accepts an application and fixes the agreed price."""
    service = ApprovalService(db)
    collab = service.get_collaboration(collaboration_id)
    service.ensure_brand_owner(collab, current_user, allow_admin=True)
    if collab.status != CollaborationStatusDB.APPLIED:
        raise ApprovalStateError(f"Only applications can be accepted (current status: {collab.status.value})")

    collab.agreed_price = data.agreed_price
    collab.milestones = [m.model_dump() for m in data.milestones] if data.milestones else []
    collab.status = CollaborationStatusDB.ACTIVE
    db.commit()
    db.refresh(collab)
    return collab


# ============================================================================
# SUBMISSION & REVIEW
# ============================================================================

@router.post("/{collaboration_id}/submit", response_model=CollaborationResponse)
async def submit_content(
    collaboration_id: str,
    data: ContentSubmission,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    """
    Submit content for review. Starts the 24h approval window; managed
    campaigns in AutoManaged mode go straight to the Campaign Manager.
    """
    collab = ApprovalService(db).submit_content(
        collaboration_id,
        current_user,
        submission_url=data.submission_url,
        platform=data.platform,
        title=data.title,
        video_id=data.video_id,
    )
    db.commit()
    db.refresh(collab)
    return collab


@router.post("/{collaboration_id}/review/start", response_model=CollaborationResponse)
async def start_review(
    collaboration_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    collab = ApprovalService(db).start_brand_review(collaboration_id, current_user)
    db.commit()
    db.refresh(collab)
    return collab


@router.post("/{collaboration_id}/review", response_model=CollaborationResponse)
async def review_submission(
    collaboration_id: str,
    data: BrandReviewRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """Approve, request changes or reject a submission awaiting the brand."""
    collab = ApprovalService(db).brand_decision(
        collaboration_id, current_user, data.action.value, data.feedback
    )
    db.commit()
    db.refresh(collab)
    return collab


# ============================================================================
# LISTINGS
# ============================================================================

@router.get("/my-submissions", response_model=List[CollaborationResponse])
async def get_my_submissions(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR)),
    status_filter: Optional[CollaborationStatusDB] = Query(None, alias="status"),
):
    """Creator's collaborations, most recent submission first."""
    query = db.query(Collaboration).filter(Collaboration.creator_id == current_user.id)
    if status_filter:
        query = query.filter(Collaboration.status == status_filter)
    return query.order_by(desc(Collaboration.submitted_at), desc(Collaboration.created_at)).all()


@router.get("/brand/{brand_id}", response_model=List[CollaborationResponse])
async def get_brand_collaborations(
    brand_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    campaign_id: Optional[str] = None,
    status_filter: Optional[CollaborationStatusDB] = Query(None, alias="status"),
):
    """All collaborations across a brand's campaigns."""
    if current_user.id != brand_id and not is_admin(current_user):
        raise PermissionDeniedError("You can only view your own collaborations")

    query = _with_campaign(db).join(Campaign).filter(Campaign.brand_id == brand_id)
    if campaign_id:
        query = query.filter(Collaboration.campaign_id == campaign_id)
    if status_filter:
        query = query.filter(Collaboration.status == status_filter)
    return query.order_by(desc(Collaboration.created_at)).all()


@router.get("/creator/{creator_id}", response_model=List[CollaborationResponse])
async def get_creator_collaborations(
    creator_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.id != creator_id and not is_admin(current_user):
        raise PermissionDeniedError("You can only view your own collaborations")
    return db.query(Collaboration).filter(
        Collaboration.creator_id == creator_id
    ).order_by(desc(Collaboration.created_at)).all()


@router.get("/{collaboration_id}", response_model=CollaborationResponse)
async def get_collaboration(
    collaboration_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    collab = ApprovalService(db).get_collaboration(collaboration_id)
    allowed = (
        collab.creator_id == current_user.id
        or collab.campaign.brand_id == current_user.id
        or is_admin(current_user)
    )
    if not allowed:
        raise PermissionDeniedError("You don't have access to this collaboration")
    return collab

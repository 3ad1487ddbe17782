# Brands Router for Reachstakes
# Brand profile and campaign endpoints

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional
import logging

from database.config import get_db
from database.models import User, BrandProfile
from database.marketplace_models import Campaign, CampaignStatusDB
from schemas.marketplace import (
    BrandProfileUpdate, BrandProfileResponse,
    CampaignCreate, CampaignUpdate, CampaignResponse,
)
from auth.roles import UserType as UserTypeRole
from auth.decorators import require_user_type
from core.exceptions import EscrowError
from config.app_config import DEFAULT_CURRENCY
from services.escrow_service import EscrowService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/brands", tags=["Brands"])


def _get_or_create_profile(db: Session, user: User) -> BrandProfile:
    profile = db.query(BrandProfile).filter(BrandProfile.user_id == user.id).first()
    if not profile:
        profile = BrandProfile(user_id=user.id, company_name=user.name)
        db.add(profile)
        db.commit()
        db.refresh(profile)
    return profile


# ============================================================================
# PROFILE
# ============================================================================

@router.get("/profile", response_model=BrandProfileResponse)
async def get_brand_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """Get the brand's profile, creating an empty one on first access."""
    return _get_or_create_profile(db, current_user)


@router.put("/profile", response_model=BrandProfileResponse)
async def update_brand_profile(
    data: BrandProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    profile = _get_or_create_profile(db, current_user)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)

    db.commit()
    db.refresh(profile)
    return profile


# ============================================================================
# CAMPAIGNS
# ============================================================================

@router.get("/campaigns", response_model=List[CampaignResponse])
async def list_campaigns(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND)),
    status_filter: Optional[CampaignStatusDB] = Query(None, alias="status"),
):
    """List the brand's campaigns with their escrow figures."""
    query = db.query(Campaign).filter(Campaign.brand_id == current_user.id)
    if status_filter:
        query = query.filter(Campaign.status == status_filter)
    return query.order_by(desc(Campaign.created_at)).all()


@router.post("/campaigns", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    data: CampaignCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """Create a Draft campaign. Escrow starts Unfunded."""
    campaign = Campaign(
        brand_id=current_user.id,
        title=data.title,
        description=data.description,
        platform=data.platform,
        deliverables=data.deliverables or [],
        target_budget=data.target_budget,
        currency=DEFAULT_CURRENCY,
        start_date=data.start_date,
        end_date=data.end_date,
        is_managed_approval=data.is_managed_approval,
        managed_approval_mode=data.managed_approval_mode,
    )
    db.add(campaign)
    db.commit()
    db.refresh(campaign)

    logger.info(f"Campaign {campaign.id} created by brand {current_user.id}")
    return campaign


@router.get("/campaigns/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    return EscrowService(db).get_owned_campaign(campaign_id, current_user)


@router.put("/campaigns/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(
    campaign_id: str,
    data: CampaignUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """Edit campaign details. The budget can never drop below what is already funded."""
    campaign = EscrowService(db).get_owned_campaign(campaign_id, current_user)
    if campaign.status == CampaignStatusDB.COMPLETED:
        raise EscrowError("Completed campaigns cannot be edited")

    updates = data.model_dump(exclude_unset=True)
    new_budget = updates.get("target_budget")
    if new_budget is not None and new_budget < (campaign.total_funded or 0):
        raise EscrowError("Target budget cannot be lower than the amount already funded")

    for field, value in updates.items():
        setattr(campaign, field, value)
    if new_budget is not None:
        EscrowService.refresh_campaign_status(campaign)

    db.commit()
    db.refresh(campaign)
    return campaign


@router.post("/campaigns/{campaign_id}/complete")
async def complete_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND))
):
    """Mark a campaign Completed and return unreserved escrow to the vault."""
    result = EscrowService(db).complete_campaign(current_user, campaign_id)
    db.commit()
    return {"message": "Campaign completed", **result}

# Concierge Router for Reachstakes
# Live metric verification and escrow payout release for approved content

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from database.config import get_db
from database.models import User, utcnow
from auth.roles import UserType as UserTypeRole
from auth.decorators import require_user_type
from config.app_config import AUTO_APPROVAL_VIEW_THRESHOLD
from core.exceptions import MetricsUnavailableError
from core.social_metrics import SocialMetricsService, get_social_metrics_service, engagement_rate
from services.approval_service import ApprovalService
from services.escrow_service import EscrowService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/concierge", tags=["Concierge"])


@router.get("/verify-metrics/{collaboration_id}")
async def verify_metrics(
    collaboration_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND)),
    metrics_service: SocialMetricsService = Depends(get_social_metrics_service),
):
    """
    Fetch live stats for a submission from the creator's linked account
    and store them on the collaboration.
    """
    approvals = ApprovalService(db)
    collab = approvals.get_collaboration(collaboration_id)
    approvals.ensure_brand_owner(collab, current_user, allow_admin=True)

    try:
        stats = metrics_service.fetch(
            db,
            collab.creator_id,
            collab.submission_platform or collab.campaign.platform,
            collab.video_id,
            collab.submission_url,
        )
    except MetricsUnavailableError as e:
        logger.warning(f"Metric verification failed for collaboration {collab.id}: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"status": "verification_failed", "error": e.message},
        )

    collab.views = stats["views"]
    collab.likes = stats["likes"]
    collab.comments = stats["comments"]
    collab.shares = stats.get("shares", 0)
    collab.engagement_rate = engagement_rate(stats)
    collab.metrics_verified_at = utcnow()
    db.commit()

    return {
        "status": "verified",
        "collaboration_id": collab.id,
        "metrics": {
            "views": collab.views,
            "likes": collab.likes,
            "comments": collab.comments,
            "shares": collab.shares,
            "engagement_rate": collab.engagement_rate,
        },
        "verified_at": collab.metrics_verified_at,
        "auto_approval_eligible": collab.views > AUTO_APPROVAL_VIEW_THRESHOLD,
    }


@router.post("/release-payout/{collaboration_id}")
async def release_payout(
    collaboration_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND)),
):
    """Release an approved collaboration's agreed price from escrow to the creator."""
    approvals = ApprovalService(db)
    collab = approvals.get_collaboration(collaboration_id)
    approvals.ensure_brand_owner(collab, current_user, allow_admin=True)

    transaction = EscrowService(db).release_collaboration_payout(collab)
    db.commit()

    logger.info(f"Payout for collaboration {collab.id} released by {current_user.id}")
    return {
        "status": "released",
        "collaboration_id": collab.id,
        "amount": transaction.amount,
        "transaction_id": transaction.id,
        "campaign_escrow_balance": collab.campaign.escrow_balance,
        "campaign_escrow_status": collab.campaign.escrow_status.value,
    }

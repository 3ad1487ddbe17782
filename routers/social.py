# Social Accounts Router for Reachstakes
# Creators link platform accounts used for metric verification

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List
import logging

from database.config import get_db
from database.models import User, SocialAccount, SocialPlatform, utcnow
from schemas.marketplace import SocialAccountLink, SocialAccountResponse
from auth.roles import Permission
from auth.decorators import require_permission, is_admin
from auth.dependencies import get_current_user
from core.exceptions import NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/social", tags=["Social Accounts"])


@router.post("/{platform}/link", response_model=SocialAccountResponse)
async def link_account(
    platform: SocialPlatform,
    data: SocialAccountLink,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.LINK_SOCIAL_ACCOUNTS))
):
    """Link a platform account. Relinking the same platform replaces the stored tokens."""
    account = db.query(SocialAccount).filter(
        SocialAccount.user_id == current_user.id,
        SocialAccount.platform == platform
    ).first()
    if not account:
        account = SocialAccount(user_id=current_user.id, platform=platform)
        db.add(account)

    account.handle = data.handle
    account.platform_user_id = data.platform_user_id
    account.access_token = data.access_token
    account.refresh_token = data.refresh_token
    account.token_expires_at = data.token_expires_at
    account.connected_at = utcnow()

    db.commit()
    db.refresh(account)
    logger.info(f"User {current_user.id} linked {platform.value} account")
    return account


@router.get("/{user_id}", response_model=List[SocialAccountResponse])
async def list_accounts(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Linked accounts of a user. Tokens are never returned."""
    return db.query(SocialAccount).filter(SocialAccount.user_id == user_id).all()


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_account(
    account_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    account = db.query(SocialAccount).filter(SocialAccount.id == account_id).first()
    if not account:
        raise NotFoundError("Social account not found")
    if account.user_id != current_user.id and not is_admin(current_user):
        raise PermissionDeniedError("You can only disconnect your own accounts")

    db.delete(account)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)

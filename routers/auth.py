# Authentication Router for Reachstakes
# Registration, login and the current-user endpoint

from fastapi import APIRouter, HTTPException, Depends, status
from sqlalchemy.orm import Session
import logging

from database.config import get_db
from database.models import User, UserType
from auth.utils import verify_password, get_password_hash, create_access_token, Token
from auth.dependencies import get_current_user
from auth.roles import get_permissions_for_role, UserType as UserTypeRole
from schemas.marketplace import UserRegister, UserLogin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _token_for(user: User) -> dict:
    access_token = create_access_token(
        data={"sub": user.email, "user_id": user.id, "user_type": user.user_type.value}
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/register", response_model=Token)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """
    Register a new brand or creator.
    Returns JWT token on success.
    """
    existing_user = db.query(User).filter(User.email == user_data.email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    new_user = User(
        email=user_data.email,
        password_hash=get_password_hash(user_data.password),
        name=user_data.name,
        user_type=UserType(user_data.user_type.value),
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"Registered {new_user.user_type.value} {new_user.email}")
    return _token_for(new_user)


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Login with email and password.
    Returns JWT token on success.
    """
    user = db.query(User).filter(User.email == credentials.email).first()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled"
        )

    return _token_for(user)


@router.get("/me")
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """
    Get current user information with the permissions of their role.
    """
    role = UserTypeRole(current_user.user_type.value)
    return {
        "id": current_user.id,
        "email": current_user.email,
        "name": current_user.name,
        "user_type": current_user.user_type.value,
        "is_active": current_user.is_active,
        "created_at": current_user.created_at,
        "permissions": sorted(p.value for p in get_permissions_for_role(role)),
    }

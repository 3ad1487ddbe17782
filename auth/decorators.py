# Authentication and Authorization Dependencies for Reachstakes
# These provide easy-to-use access control for API endpoints

from fastapi import HTTPException, status, Depends

from database.models import User
from auth.roles import UserType, Permission, has_any_permission
from auth.dependencies import get_current_user


class AuthError(HTTPException):
    """Custom exception for authentication/authorization errors."""

    def __init__(self, detail: str, status_code: int = status.HTTP_403_FORBIDDEN):
        super().__init__(status_code=status_code, detail=detail)


def require_user_type(*allowed_types: UserType):
    """
    Dependency that requires the user to be one of the specified types.

    Usage:
        @router.get("/brands/profile")
        async def get_profile(
            user: User = Depends(require_user_type(UserType.BRAND))
        ):
            ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        user_type = _get_user_type(current_user)

        # Admin can access everything
        if user_type == UserType.ADMIN:
            return current_user

        if user_type not in allowed_types:
            allowed_names = ", ".join(t.value for t in allowed_types)
            raise AuthError(
                detail=f"This endpoint requires user type: {allowed_names}",
                status_code=status.HTTP_403_FORBIDDEN
            )

        return current_user

    return dependency


def require_permission(*permissions: Permission):
    """
    Dependency that requires the user to have specific permissions.

    Usage:
        @router.post("/escrow/fund")
        async def fund(
            user: User = Depends(require_permission(Permission.FUND_CAMPAIGNS))
        ):
            ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        user_type = _get_user_type(current_user)

        if not has_any_permission(user_type, list(permissions)):
            raise AuthError(
                detail="You don't have permission to perform this action",
                status_code=status.HTTP_403_FORBIDDEN
            )

        return current_user

    return dependency


def require_admin():
    """
    Dependency that requires the user to be an admin (Campaign Manager).

    Usage:
        @router.get("/managed-approvals/cm-queue")
        async def queue(user: User = Depends(require_admin())):
            ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not is_admin(current_user):
            raise AuthError(
                detail="Admin access required",
                status_code=status.HTTP_403_FORBIDDEN
            )

        return current_user

    return dependency


def is_admin(user: User) -> bool:
    return _get_user_type(user) == UserType.ADMIN


def _get_user_type(user: User) -> UserType:
    """Helper to extract UserType from User object."""
    val = user.user_type.value if hasattr(user.user_type, 'value') else user.user_type
    if val:
        try:
            return UserType(str(val).lower())
        except ValueError:
            pass

    # Default to brand
    return UserType.BRAND

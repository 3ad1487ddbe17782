# Role-Based Access Control for Reachstakes
# This module defines user roles and permissions for the marketplace

from enum import Enum
from typing import List, Set


class UserType(str, Enum):
    """User types in the marketplace. Admins act as Campaign Managers."""
    BRAND = "brand"
    CREATOR = "creator"
    ADMIN = "admin"


class Permission(str, Enum):
    """Fine-grained permissions for the platform."""

    # Brand permissions
    MANAGE_CAMPAIGNS = "manage_campaigns"
    FUND_CAMPAIGNS = "fund_campaigns"
    REVIEW_SUBMISSIONS = "review_submissions"
    RELEASE_PAYOUTS = "release_payouts"
    MANAGE_VAULT = "manage_vault"

    # Creator permissions
    APPLY_TO_CAMPAIGNS = "apply_to_campaigns"
    SUBMIT_CONTENT = "submit_content"
    MANAGE_DOCUMENTS = "manage_documents"
    LINK_SOCIAL_ACCOUNTS = "link_social_accounts"

    # Common permissions
    VIEW_OWN_TRANSACTIONS = "view_own_transactions"
    VIEW_NOTIFICATIONS = "view_notifications"

    # Campaign Manager (admin) permissions
    MANAGE_APPROVAL_QUEUE = "manage_approval_queue"
    VIEW_ADMIN_STATS = "view_admin_stats"
    MANAGE_ESCROW = "manage_escrow"


# Role to permissions mapping
ROLE_PERMISSIONS: dict[UserType, Set[Permission]] = {
    UserType.BRAND: {
        Permission.MANAGE_CAMPAIGNS,
        Permission.FUND_CAMPAIGNS,
        Permission.REVIEW_SUBMISSIONS,
        Permission.RELEASE_PAYOUTS,
        Permission.MANAGE_VAULT,
        # Common
        Permission.VIEW_OWN_TRANSACTIONS,
        Permission.VIEW_NOTIFICATIONS,
    },

    UserType.CREATOR: {
        Permission.APPLY_TO_CAMPAIGNS,
        Permission.SUBMIT_CONTENT,
        Permission.MANAGE_DOCUMENTS,
        Permission.LINK_SOCIAL_ACCOUNTS,
        # Common
        Permission.VIEW_OWN_TRANSACTIONS,
        Permission.VIEW_NOTIFICATIONS,
    },

    UserType.ADMIN: {
        # Admin has ALL permissions
        *Permission.__members__.values()
    },
}


def get_permissions_for_role(user_type: UserType) -> Set[Permission]:
    """Get all permissions for a given user type."""
    return ROLE_PERMISSIONS.get(user_type, set())


def has_permission(user_type: UserType, permission: Permission) -> bool:
    """Check if a user type has a specific permission."""
    return permission in get_permissions_for_role(user_type)


def has_any_permission(user_type: UserType, permissions: List[Permission]) -> bool:
    """Check if a user type has any of the given permissions."""
    user_permissions = get_permissions_for_role(user_type)
    return any(p in user_permissions for p in permissions)

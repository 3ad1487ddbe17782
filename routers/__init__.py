# Reachstakes Routers Module
# Exports all modular API routers

from routers.auth import router as auth_router
from routers.brands import router as brands_router
from routers.collaborations import router as collaborations_router
from routers.managed_approvals import router as managed_approvals_router
from routers.concierge import router as concierge_router
from routers.payments import router as payments_router
from routers.escrow import router as escrow_router
from routers.documents import router as documents_router
from routers.notifications import router as notifications_router
from routers.social import router as social_router

__all__ = [
    'auth_router',
    'brands_router',
    'collaborations_router',
    'managed_approvals_router',
    'concierge_router',
    'payments_router',
    'escrow_router',
    'documents_router',
    'notifications_router',
    'social_router',
]

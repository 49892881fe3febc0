"""Routers package."""

from services.payments_service.routers.admin import router as admin_router
from services.payments_service.routers.intents import router as intents_router
from services.payments_service.routers.payouts import (
    admin_router as payout_admin_router,
)
from services.payments_service.routers.payouts import (
    educator_router as payout_educator_router,
)
from services.payments_service.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_router",
    "intents_router",
    "payout_admin_router",
    "payout_educator_router",
    "webhooks_router",
]

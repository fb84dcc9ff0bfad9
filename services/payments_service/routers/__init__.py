"""Routers package."""

from services.payments_service.routers.escrow import router as escrow_router
from services.payments_service.routers.payouts import (
    internal_router as payout_internal_router,
)
from services.payments_service.routers.payouts import (
    seller_router as payout_seller_router,
)
from services.payments_service.routers.webhooks import router as webhooks_router

__all__ = [
    "escrow_router",
    "payout_internal_router",
    "payout_seller_router",
    "webhooks_router",
]

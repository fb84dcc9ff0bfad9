"""FastAPI application for the Payments Service."""

from fastapi import FastAPI
from libs.common.errors import register_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.payments_service.routers import (
    escrow_router,
    payout_internal_router,
    payout_seller_router,
    webhooks_router,
)


def create_app() -> FastAPI:
    """Create and configure the Payments Service FastAPI app."""
    app = FastAPI(
        title="Enkaji Payments Service",
        version="0.1.0",
        description="Escrow, gateway webhooks and seller payouts for Enkaji.",
    )

    add_observability_middleware(app)
    register_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "payments"}

    app.include_router(escrow_router)
    app.include_router(webhooks_router)

    # Seller payout history and internal settlement/execution hooks
    app.include_router(payout_seller_router)
    app.include_router(payout_internal_router)

    return app


app = create_app()

"""FastAPI application entrypoint for the Enkaji gateway service.

Serves every settlement-core router from one process so that checkout,
escrow and settlement share a database session per request.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from libs.common.errors import register_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.orders_service.routers import cart_router, orders_router
from services.payments_service.routers import (
    escrow_router,
    payout_internal_router,
    payout_seller_router,
    webhooks_router,
)
from services.shipping_service.routers import calculate_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    app = FastAPI(
        title="Enkaji Gateway Service",
        version="0.1.0",
        description="Orders, escrow, seller payouts and shipping for Enkaji.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "https://enkaji.co.ke",
            "https://www.enkaji.co.ke",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Add global exception handlers for consistent error responses
    register_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Simple readiness endpoint."""
        return {"status": "ok"}

    # Orders
    app.include_router(cart_router)
    app.include_router(orders_router)

    # Payments
    app.include_router(escrow_router)
    app.include_router(webhooks_router)
    app.include_router(payout_seller_router)
    app.include_router(payout_internal_router)

    # Shipping
    app.include_router(calculate_router)

    return app


app = create_app()

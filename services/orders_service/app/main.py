"""FastAPI application for the Orders Service."""

from fastapi import FastAPI
from libs.common.errors import register_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.orders_service.routers import cart_router, orders_router


def create_app() -> FastAPI:
    """Create and configure the Orders Service FastAPI app."""
    app = FastAPI(
        title="Enkaji Orders Service",
        version="0.1.0",
        description="Cart, checkout and order fulfilment for the Enkaji marketplace.",
    )

    add_observability_middleware(app)
    register_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "orders"}

    app.include_router(cart_router)
    app.include_router(orders_router)

    return app


app = create_app()

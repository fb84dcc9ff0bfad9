"""FastAPI application for the Shipping Service."""

from fastapi import FastAPI
from libs.common.errors import register_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.shipping_service.routers import calculate_router


def create_app() -> FastAPI:
    """Create and configure the Shipping Service FastAPI app."""
    app = FastAPI(
        title="Enkaji Shipping Service",
        version="0.1.0",
        description="Shipping zones, rates, COD eligibility and delivery estimates.",
    )

    add_observability_middleware(app)
    register_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "shipping"}

    app.include_router(calculate_router)

    return app


app = create_app()

"""Shipping service routers package."""

from services.shipping_service.routers.calculate import router as calculate_router

__all__ = ["calculate_router"]

"""Order Service models package."""

from services.orders_service.models.catalog import Product
from services.orders_service.models.commerce import CartItem, Order, OrderItem
from services.orders_service.models.enums import OrderStatus, PaymentMethod

__all__ = [
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "Product",
]

"""Pydantic schemas for order service."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.schemas import CamelModel
from pydantic import Field
from services.orders_service.models import OrderStatus, PaymentMethod

# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(CamelModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1, le=1000)


class CartItemResponse(CamelModel):
    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int

    # Enriched from product
    product_name: Optional[str] = None
    unit_price_cents: int = 0
    line_total_cents: int = 0
    is_available: bool = True


class CartResponse(CamelModel):
    items: list[CartItemResponse] = []
    item_count: int = 0
    subtotal_cents: int = 0
    currency: str = "KES"


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class OrderLineIn(CamelModel):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1, le=1000)


class ShippingAddressIn(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=5, max_length=50)
    street: str = Field("", max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)
    is_rural: bool = False


class OrderCreate(CamelModel):
    """Place an order. Items default to the caller's saved cart."""

    items: Optional[list[OrderLineIn]] = None
    shipping_address: ShippingAddressIn
    payment_method: PaymentMethod
    shipping_option_id: Optional[str] = Field(None, max_length=50)


class OrderStatusUpdate(CamelModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(None, max_length=50)


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemResponse(CamelModel):
    id: uuid.UUID
    product_id: uuid.UUID
    seller_id: str
    product_name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int


class OrderResponse(CamelModel):
    id: uuid.UUID
    order_number: str
    buyer_id: str
    status: OrderStatus

    subtotal_cents: int
    shipping_cost_cents: int
    tax_cents: int
    total_cents: int
    currency: str

    payment_method: PaymentMethod
    payment_reference: Optional[str] = None

    shipping_address: dict
    shipping_zone_id: Optional[str] = None
    shipping_service_id: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None

    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    items: list[OrderItemResponse] = []


class OrderCreatedResponse(CamelModel):
    order: OrderResponse
    client_secret: Optional[str] = None


class OrderListResponse(CamelModel):
    """Paginated order list."""

    items: list[OrderResponse]
    total: int
    page: int
    page_size: int

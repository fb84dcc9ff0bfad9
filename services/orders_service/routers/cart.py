"""Cart router: view, add and remove saved cart lines."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.errors import NotFoundError, ValidationError
from libs.db.session import get_async_db
from services.orders_service.models import CartItem, Product
from services.orders_service.schemas import (
    CartItemCreate,
    CartItemResponse,
    CartResponse,
)
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/cart", tags=["cart"])
settings = get_settings()

# Cap on the quantity of a single product in a cart
MAX_LINE_QUANTITY = 1000


# ============================================================================
# CART HELPERS
# ============================================================================


async def build_cart_response(db: AsyncSession, buyer_id: str) -> CartResponse:
    """Cart lines enriched with current product prices and availability."""
    result = await db.execute(
        select(CartItem)
        .where(CartItem.buyer_id == buyer_id)
        .order_by(CartItem.created_at)
        .execution_options(populate_existing=True)
    )
    items = result.scalars().all()

    enriched = []
    subtotal = 0
    for item in items:
        product = item.product
        line_total = product.price_cents * item.quantity
        subtotal += line_total
        enriched.append(
            CartItemResponse(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                product_name=product.name,
                unit_price_cents=product.price_cents,
                line_total_cents=line_total,
                is_available=product.is_active and product.inventory >= item.quantity,
            )
        )

    return CartResponse(
        items=enriched,
        item_count=sum(i.quantity for i in items),
        subtotal_cents=subtotal,
        currency=settings.CURRENCY,
    )


# ============================================================================
# CART ENDPOINTS
# ============================================================================


@router.get("", response_model=CartResponse)
async def get_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Get the caller's cart."""
    return await build_cart_response(db, current_user.user_id)


@router.post("", response_model=CartResponse)
async def add_to_cart(
    item_in: CartItemCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product to the cart, or increase its quantity if already there."""
    product = await db.get(Product, item_in.product_id)
    if not product:
        raise NotFoundError("Product not found")
    if not product.is_active:
        raise ValidationError(f"{product.name} is no longer available")

    result = await db.execute(
        select(CartItem).where(
            CartItem.buyer_id == current_user.user_id,
            CartItem.product_id == item_in.product_id,
        )
    )
    existing = result.scalar_one_or_none()
    quantity = item_in.quantity + (existing.quantity if existing else 0)

    if quantity > MAX_LINE_QUANTITY:
        raise ValidationError(f"At most {MAX_LINE_QUANTITY} per product")
    if quantity > product.inventory:
        raise ValidationError(f"Only {product.inventory} available for {product.name}")

    if existing:
        existing.quantity = quantity
    else:
        db.add(
            CartItem(
                buyer_id=current_user.user_id,
                product_id=item_in.product_id,
                quantity=quantity,
            )
        )
    await db.commit()

    return await build_cart_response(db, current_user.user_id)


@router.delete("/{product_id}", response_model=CartResponse)
async def remove_from_cart(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Remove a product line from the cart."""
    result = await db.execute(
        delete(CartItem).where(
            CartItem.buyer_id == current_user.user_id,
            CartItem.product_id == product_id,
        )
    )
    if result.rowcount == 0:
        raise NotFoundError("Item not in cart")
    await db.commit()

    return await build_cart_response(db, current_user.user_id)

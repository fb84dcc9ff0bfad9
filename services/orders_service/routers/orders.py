"""Orders router: checkout, order history and fulfilment status updates."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.errors import AuthorizationError, NotFoundError
from libs.db.session import get_async_db
from services.orders_service.dependencies import (
    get_order_intake,
    get_order_status_service,
)
from services.orders_service.filters import OrderFilter
from services.orders_service.models import Order
from services.orders_service.schemas import (
    OrderCreate,
    OrderCreatedResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from services.orders_service.services.order_intake import (
    OrderIntake,
    OrderLine,
    ShippingAddress,
)
from services.orders_service.services.order_status import OrderStatusService
from services.shipping_service.resolver import (
    ShippingRateResolver,
    get_shipping_resolver,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["orders"])


def _order_to_response(order: Order, resolver: ShippingRateResolver) -> OrderResponse:
    response = OrderResponse.model_validate(order)
    if order.tracking_number:
        provider = resolver.provider_for_service(order.shipping_service_id)
        if provider:
            response.tracking_url = resolver.tracking_url(
                provider.id, order.tracking_number
            )
    return response


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED
)
async def create_order(
    payload: OrderCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    intake: OrderIntake = Depends(get_order_intake),
    resolver: ShippingRateResolver = Depends(get_shipping_resolver),
):
    """Place an order from the request items or the caller's cart."""
    address = payload.shipping_address
    lines = None
    if payload.items is not None:
        lines = [OrderLine(i.product_id, i.quantity) for i in payload.items]

    placed = await intake.place(
        db,
        buyer_id=current_user.user_id,
        address=ShippingAddress(
            full_name=address.full_name,
            phone=address.phone,
            street=address.street,
            city=address.city,
            state=address.state,
            postal_code=address.postal_code,
            country=address.country,
            is_rural=address.is_rural,
        ),
        payment_method=payload.payment_method,
        lines=lines,
        shipping_option_id=payload.shipping_option_id,
        email=current_user.email,
    )
    return OrderCreatedResponse(
        order=_order_to_response(placed.order, resolver),
        client_secret=placed.client_secret,
    )


# ============================================================================
# ORDER HISTORY
# ============================================================================


@router.get("", response_model=OrderListResponse)
async def list_orders(
    filters: OrderFilter = Depends(OrderFilter.from_query),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    resolver: ShippingRateResolver = Depends(get_shipping_resolver),
):
    """List the caller's orders as buyer (default) or as seller."""
    query = filters.apply(current_user.user_id)

    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = await db.scalar(count_query) or 0

    result = await db.execute(query.offset(filters.offset).limit(filters.page_size))
    orders = result.scalars().all()

    return OrderListResponse(
        items=[_order_to_response(o, resolver) for o in orders],
        total=total,
        page=filters.page,
        page_size=filters.page_size,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    resolver: ShippingRateResolver = Depends(get_shipping_resolver),
):
    """Get one order; visible to its buyer and its sellers."""
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    is_party = (
        current_user.user_id == order.buyer_id
        or current_user.user_id in order.seller_ids()
        or current_user.is_service
    )
    if not is_party:
        raise AuthorizationError("You are not a party to this order")

    return _order_to_response(order, resolver)


# ============================================================================
# STATUS UPDATES
# ============================================================================


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    status_service: OrderStatusService = Depends(get_order_status_service),
    resolver: ShippingRateResolver = Depends(get_shipping_resolver),
):
    """Advance fulfilment (sellers) or cancel (buyers and sellers)."""
    order = await status_service.update_status(
        db,
        order_id,
        payload.status,
        current_user,
        tracking_number=payload.tracking_number,
    )
    return _order_to_response(order, resolver)

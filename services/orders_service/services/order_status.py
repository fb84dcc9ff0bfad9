"""Order status changes made by sellers (fulfilment) and buyers (cancellation).

Status only moves forward along pending_payment -> paid -> processing ->
shipped -> delivered. Cancellation is allowed until the order ships, and
payment_failed is set only by the payment gateway webhook. Every write is
conditional on the status that was read, so two concurrent updates cannot
both apply.
"""

import uuid
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from libs.common.logging import get_logger
from services.orders_service.models import Order, OrderStatus
from services.orders_service.services.catalog import ProductCatalog
from services.payments_service.services.payout_settlement import (
    escrow_is_disputed,
    settle_order,
)
from services.shipping_service.resolver import ShippingRateResolver
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

logger = get_logger(__name__)
settings = get_settings()

STATUS_RANK = {
    OrderStatus.PENDING_PAYMENT: 0,
    OrderStatus.PAID: 1,
    OrderStatus.PROCESSING: 2,
    OrderStatus.SHIPPED: 3,
    OrderStatus.DELIVERED: 4,
}

CANCELLABLE_STATUSES = (
    OrderStatus.PENDING_PAYMENT,
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
)

# Timestamp column stamped when an order enters the status
STATUS_TIMESTAMPS = {
    OrderStatus.PAID: "paid_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def is_forward(current: OrderStatus, new: OrderStatus) -> bool:
    if new == OrderStatus.CANCELLED:
        return current in CANCELLABLE_STATUSES
    if current not in STATUS_RANK or new not in STATUS_RANK:
        return False
    return STATUS_RANK[new] > STATUS_RANK[current]


async def load_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    order = await db.get(Order, order_id, populate_existing=True)
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def compare_and_set_status(
    db: AsyncSession,
    order: Order,
    expected: OrderStatus,
    new: OrderStatus,
    **extra_values,
) -> None:
    """Write ``new`` only if the stored status is still ``expected``."""
    values = {"status": new, "updated_at": utc_now(), **extra_values}
    column = STATUS_TIMESTAMPS.get(new)
    if column:
        values[column] = utc_now()

    result = await db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Order status changed concurrently, reload and retry")

    for key, value in values.items():
        set_committed_value(order, key, value)


async def restock_order(
    db: AsyncSession, order: Order, catalog: ProductCatalog
) -> None:
    for item in order.items:
        await catalog.restock(db, item.product_id, item.quantity)


class OrderStatusService:
    """Applies caller-requested status changes to orders."""

    def __init__(self, catalog: ProductCatalog, resolver: ShippingRateResolver):
        self.catalog = catalog
        self.resolver = resolver

    async def update_status(
        self,
        db: AsyncSession,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        caller: AuthUser,
        *,
        tracking_number: Optional[str] = None,
    ) -> Order:
        try:
            order = await self._update(
                db, order_id, new_status, caller, tracking_number=tracking_number
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order %s moved to %s by %s",
            order.order_number,
            new_status.value,
            caller.user_id,
            extra={"extra_fields": {"order_id": str(order.id)}},
        )
        return order

    async def _update(
        self,
        db: AsyncSession,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        caller: AuthUser,
        *,
        tracking_number: Optional[str],
    ) -> Order:
        order = await load_order(db, order_id)
        is_seller = caller.user_id in order.seller_ids()
        is_buyer = caller.user_id == order.buyer_id

        if not (is_seller or is_buyer or caller.is_service):
            raise AuthorizationError("You are not a party to this order")
        if not (is_seller or caller.is_service) and new_status != OrderStatus.CANCELLED:
            raise AuthorizationError("Buyers may only cancel an order")

        current = order.status
        if new_status == OrderStatus.PAYMENT_FAILED:
            raise ValidationError("payment_failed is set by the payment gateway only")
        if not is_forward(current, new_status):
            raise ValidationError(
                f"Cannot change order status from {current.value} to {new_status.value}"
            )
        if (
            current == OrderStatus.PENDING_PAYMENT
            and new_status != OrderStatus.CANCELLED
            and not order.payment_method.is_offline
        ):
            raise ValidationError("Order is still awaiting payment")

        extra = {}
        if new_status == OrderStatus.SHIPPED:
            extra["tracking_number"] = tracking_number or order.tracking_number
            if not extra["tracking_number"]:
                provider = self.resolver.provider_for_service(order.shipping_service_id)
                extra["tracking_number"] = self.resolver.generate_tracking_number(
                    provider.id if provider else "ENK"
                )

        await compare_and_set_status(db, order, current, new_status, **extra)

        if new_status == OrderStatus.CANCELLED:
            await restock_order(db, order, self.catalog)
        if new_status == OrderStatus.DELIVERED and settings.settles_on_delivery:
            await self._settle_on_delivery(db, order)

        return order

    async def _settle_on_delivery(self, db: AsyncSession, order: Order) -> None:
        if await escrow_is_disputed(db, order.id):
            logger.warning(
                "Order %s delivered with disputed escrow, payouts not created",
                order.order_number,
                extra={"extra_fields": {"order_id": str(order.id)}},
            )
            return
        await settle_order(db, order.id)

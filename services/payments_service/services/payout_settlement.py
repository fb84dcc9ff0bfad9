"""Seller payout settlement: split a paid order into one payout per seller.

Settlement can be triggered by escrow release and by delivery. Both paths
call ``settle_order``; the (seller_id, order_id) uniqueness constraint plus
``ON CONFLICT DO NOTHING`` makes every call after the first a no-op.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.config import get_settings
from libs.common.currency import apply_rate
from libs.common.datetime_utils import utc_now
from libs.common.errors import ConflictError, NotFoundError
from libs.common.logging import get_logger
from services.orders_service.models import Order, OrderItem, OrderStatus
from services.payments_service.models import (
    EscrowPayment,
    EscrowStatus,
    PayoutStatus,
    SellerPayout,
)
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()

# Orders whose payment has been collected
SETTLEABLE_STATUSES = (
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

# Allowed payout execution moves
PAYOUT_TRANSITIONS: dict[PayoutStatus, tuple[PayoutStatus, ...]] = {
    PayoutStatus.PENDING: (PayoutStatus.PROCESSING,),
    PayoutStatus.PROCESSING: (PayoutStatus.PAID, PayoutStatus.FAILED),
}


@dataclass(frozen=True)
class PayoutRates:
    commission_rate: Decimal
    processing_rate: Decimal
    processing_fixed_fee_cents: int

    @classmethod
    def from_settings(cls) -> "PayoutRates":
        return cls(
            commission_rate=settings.PLATFORM_COMMISSION_RATE,
            processing_rate=settings.PAYMENT_PROCESSING_RATE,
            processing_fixed_fee_cents=settings.PAYMENT_PROCESSING_FIXED_FEE_CENTS,
        )


@dataclass(frozen=True)
class PayoutBreakdown:
    gross_cents: int
    platform_commission_cents: int
    payment_processing_fee_cents: int
    net_cents: int


def compute_payout(
    gross_cents: int, rates: Optional[PayoutRates] = None
) -> PayoutBreakdown:
    """Commission and processing fee are each rounded half-up; net is what is left."""
    rates = rates or PayoutRates.from_settings()
    commission = apply_rate(gross_cents, rates.commission_rate)
    processing_fee = (
        apply_rate(gross_cents, rates.processing_rate)
        + rates.processing_fixed_fee_cents
    )
    return PayoutBreakdown(
        gross_cents=gross_cents,
        platform_commission_cents=commission,
        payment_processing_fee_cents=processing_fee,
        net_cents=gross_cents - commission - processing_fee,
    )


def gross_by_seller(items: list[OrderItem]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for item in items:
        totals[item.seller_id] = totals.get(item.seller_id, 0) + item.line_total_cents
    return totals


async def escrow_is_disputed(db: AsyncSession, order_id: uuid.UUID) -> bool:
    status = await db.scalar(
        select(EscrowPayment.status).where(EscrowPayment.order_id == order_id)
    )
    return status == EscrowStatus.DISPUTED


def _insert_for(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Payout settlement does not support {dialect}")


async def settle_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    rates: Optional[PayoutRates] = None,
) -> list[SellerPayout]:
    """Create the pending payout for every seller of ``order_id``.

    Runs in the caller's transaction and never commits. Returns all payouts
    of the order, including any created by an earlier call.
    """
    order = await db.get(Order, order_id, populate_existing=True)
    if order is None:
        raise NotFoundError("Order not found")
    if order.status not in SETTLEABLE_STATUSES:
        raise ConflictError(f"Order in status {order.status.value} cannot be settled")
    if await escrow_is_disputed(db, order_id):
        raise ConflictError("Escrow is disputed, payouts are frozen pending review")

    items = (
        (await db.execute(select(OrderItem).where(OrderItem.order_id == order_id)))
        .scalars()
        .all()
    )

    now = utc_now()
    rows = []
    for seller_id, gross in gross_by_seller(items).items():
        breakdown = compute_payout(gross, rates)
        rows.append(
            {
                "id": uuid.uuid4(),
                "seller_id": seller_id,
                "order_id": order_id,
                "gross_cents": breakdown.gross_cents,
                "platform_commission_cents": breakdown.platform_commission_cents,
                "payment_processing_fee_cents": breakdown.payment_processing_fee_cents,
                "net_cents": breakdown.net_cents,
                "currency": order.currency,
                "status": PayoutStatus.PENDING,
                "created_at": now,
                "updated_at": now,
            }
        )

    if rows:
        insert = _insert_for(db)
        stmt = (
            insert(SellerPayout)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["seller_id", "order_id"])
        )
        result = await db.execute(stmt)
        logger.info(
            "Settled order %s: %d seller payout(s) created",
            order.order_number,
            max(result.rowcount, 0),
            extra={"extra_fields": {"order_id": str(order_id)}},
        )

    payouts = await db.execute(
        select(SellerPayout)
        .where(SellerPayout.order_id == order_id)
        .order_by(SellerPayout.seller_id)
    )
    return list(payouts.scalars().all())


async def advance_payout(
    db: AsyncSession,
    payout_id: uuid.UUID,
    new_status: PayoutStatus,
    *,
    payout_reference: Optional[str] = None,
    failure_reason: Optional[str] = None,
) -> SellerPayout:
    """Record a payout execution step (pending -> processing -> paid | failed)."""
    payout = await db.get(SellerPayout, payout_id)
    if payout is None:
        raise NotFoundError("Payout not found")

    current = payout.status
    if new_status not in PAYOUT_TRANSITIONS.get(current, ()):
        raise ConflictError(
            f"Payout cannot move from {current.value} to {new_status.value}"
        )

    values = {"status": new_status, "updated_at": utc_now()}
    if payout_reference:
        values["payout_reference"] = payout_reference
    if new_status == PayoutStatus.PAID:
        values["paid_at"] = utc_now()
    if new_status == PayoutStatus.FAILED:
        values["failure_reason"] = failure_reason

    result = await db.execute(
        update(SellerPayout)
        .where(SellerPayout.id == payout_id, SellerPayout.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise ConflictError("Payout status changed concurrently")

    await db.commit()
    await db.refresh(payout)

    logger.info(
        "Payout %s moved %s -> %s",
        payout.id,
        current.value,
        new_status.value,
        extra={"extra_fields": {"seller_id": payout.seller_id}},
    )
    return payout

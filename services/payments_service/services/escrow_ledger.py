"""Escrow ledger: hold buyer funds per order, then release or dispute them.

    (none)            --HOLD (system)------------------> held
    held              --REQUEST_RELEASE (seller)-------> release_requested
    held              --RELEASE (buyer)----------------> released
    held              --DISPUTE (buyer or seller)------> disputed
    release_requested --RELEASE (buyer)----------------> released
    release_requested --DISPUTE (buyer or seller)------> disputed

Checks run in a fixed order: the caller must be a party to the order, then
the caller's party must be allowed to take the action, then the stored
status must allow it. The status write is conditional on the status that
was read, so only one of two racing requests wins.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import AuthorizationError, ConflictError, NotFoundError
from libs.common.logging import get_logger
from services.orders_service.models import Order
from services.payments_service.models import (
    EscrowAction,
    EscrowPayment,
    EscrowStatus,
    PaymentDispute,
)
from services.payments_service.services.payout_settlement import (
    SETTLEABLE_STATUSES,
    settle_order,
)
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()


class Party(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"
    SYSTEM = "system"


@dataclass(frozen=True)
class ActionRule:
    actors: frozenset[Party]
    moves: dict[Optional[EscrowStatus], EscrowStatus]


ACTION_RULES: dict[EscrowAction, ActionRule] = {
    EscrowAction.HOLD: ActionRule(
        actors=frozenset({Party.SYSTEM}),
        moves={None: EscrowStatus.HELD},
    ),
    EscrowAction.REQUEST_RELEASE: ActionRule(
        actors=frozenset({Party.SELLER}),
        moves={EscrowStatus.HELD: EscrowStatus.RELEASE_REQUESTED},
    ),
    EscrowAction.RELEASE: ActionRule(
        actors=frozenset({Party.BUYER}),
        moves={
            EscrowStatus.HELD: EscrowStatus.RELEASED,
            EscrowStatus.RELEASE_REQUESTED: EscrowStatus.RELEASED,
        },
    ),
    EscrowAction.DISPUTE: ActionRule(
        actors=frozenset({Party.BUYER, Party.SELLER}),
        moves={
            EscrowStatus.HELD: EscrowStatus.DISPUTED,
            EscrowStatus.RELEASE_REQUESTED: EscrowStatus.DISPUTED,
        },
    ),
}

STATUS_TIMESTAMPS = {
    EscrowStatus.RELEASE_REQUESTED: "release_requested_at",
    EscrowStatus.RELEASED: "released_at",
    EscrowStatus.DISPUTED: "disputed_at",
}

ACTION_MESSAGES = {
    EscrowAction.HOLD: "Funds held in escrow",
    EscrowAction.REQUEST_RELEASE: "Release requested from buyer",
    EscrowAction.RELEASE: "Funds released to seller",
    EscrowAction.DISPUTE: "Dispute opened, funds frozen pending review",
}


def parties_of(order: Order, caller: AuthUser) -> set[Party]:
    parties = set()
    if caller.user_id == order.buyer_id:
        parties.add(Party.BUYER)
    if caller.user_id in order.seller_ids():
        parties.add(Party.SELLER)
    if caller.is_service:
        parties.add(Party.SYSTEM)
    return parties


async def _load_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def get_escrow(db: AsyncSession, order_id: uuid.UUID) -> Optional[EscrowPayment]:
    result = await db.execute(
        select(EscrowPayment)
        .where(EscrowPayment.order_id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


class EscrowLedger:
    """Applies escrow actions for orders."""

    async def hold(self, db: AsyncSession, order: Order) -> EscrowPayment:
        """Hold the order total in escrow. Runs in the caller's transaction."""
        if order.status not in SETTLEABLE_STATUSES:
            raise ConflictError("Order has not been paid")
        if await get_escrow(db, order.id) is not None:
            raise ConflictError("Funds are already held for this order")

        escrow = EscrowPayment(
            order_id=order.id,
            buyer_id=order.buyer_id,
            amount_cents=order.total_cents,
            currency=order.currency,
            status=EscrowStatus.HELD,
            held_at=utc_now(),
        )
        db.add(escrow)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise ConflictError("Funds are already held for this order") from exc

        logger.info(
            "Escrow held for order %s: %d",
            order.order_number,
            escrow.amount_cents,
            extra={"extra_fields": {"order_id": str(order.id)}},
        )
        return escrow

    async def apply(
        self,
        db: AsyncSession,
        order_id: uuid.UUID,
        action: EscrowAction,
        caller: AuthUser,
        reason: Optional[str] = None,
    ) -> EscrowPayment:
        try:
            escrow = await self._apply(db, order_id, action, caller, reason)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Escrow %s on order %s by %s -> %s",
            action.value,
            order_id,
            caller.user_id,
            escrow.status.value,
            extra={"extra_fields": {"order_id": str(order_id)}},
        )
        return escrow

    async def _apply(
        self,
        db: AsyncSession,
        order_id: uuid.UUID,
        action: EscrowAction,
        caller: AuthUser,
        reason: Optional[str],
    ) -> EscrowPayment:
        order = await _load_order(db, order_id)

        parties = parties_of(order, caller)
        if not parties:
            raise AuthorizationError("You are not a party to this order")

        rule = ACTION_RULES[action]
        if not parties & rule.actors:
            raise AuthorizationError(
                f"{action.value} is not permitted for "
                f"{' or '.join(sorted(p.value for p in parties))}"
            )

        if action == EscrowAction.HOLD:
            return await self.hold(db, order)

        escrow = await get_escrow(db, order_id)
        if escrow is None:
            raise ConflictError("No funds are held for this order")

        current = escrow.status
        target = rule.moves.get(current)
        if target is None:
            raise ConflictError(
                f"Cannot {action.value} an escrow that is {current.value}"
            )

        values = {"status": target, "updated_at": utc_now()}
        values[STATUS_TIMESTAMPS[target]] = utc_now()
        result = await db.execute(
            update(EscrowPayment)
            .where(EscrowPayment.id == escrow.id, EscrowPayment.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Escrow changed concurrently, reload and retry")

        if action == EscrowAction.DISPUTE:
            db.add(
                PaymentDispute(
                    order_id=order_id, raised_by=caller.user_id, description=reason
                )
            )
        if action == EscrowAction.RELEASE and settings.settles_on_release:
            await settle_order(db, order_id)

        return await get_escrow(db, order_id)

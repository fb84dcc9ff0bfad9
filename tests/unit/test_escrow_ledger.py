"""Unit tests for the escrow ledger state machine."""

import asyncio
import uuid

import pytest
from libs.auth.models import AuthUser
from libs.common.errors import AuthorizationError, ConflictError, NotFoundError
from services.orders_service.models import OrderStatus
from services.payments_service.models import (
    EscrowAction,
    EscrowPayment,
    EscrowStatus,
    PaymentDispute,
    SellerPayout,
)
from services.payments_service.services import escrow_ledger
from services.payments_service.services.escrow_ledger import EscrowLedger
from sqlalchemy import func, select
from tests.factories import EscrowFactory, OrderFactory, ProductFactory

CALLERS = {
    "buyer": AuthUser(user_id="buyer-1", role="buyer"),
    "seller": AuthUser(user_id="seller-1", role="seller"),
    "system": AuthUser(user_id="payments-worker", role="service_role"),
}

HELD = EscrowStatus.HELD
REQUESTED = EscrowStatus.RELEASE_REQUESTED
RELEASED = EscrowStatus.RELEASED
DISPUTED = EscrowStatus.DISPUTED


async def _order_with_escrow(db, escrow_status=HELD, order_status=OrderStatus.PAID):
    product = ProductFactory.create(seller_id="seller-1")
    order = OrderFactory.create(lines=[(product, 2)], status=order_status)
    db.add_all([product, order])
    escrow = None
    if escrow_status is not None:
        escrow = EscrowFactory.create(order, status=escrow_status)
        db.add(escrow)
    await db.commit()
    return order, escrow


async def _stored_status(session_factory, order_id):
    async with session_factory() as session:
        return await session.scalar(
            select(EscrowPayment.status).where(EscrowPayment.order_id == order_id)
        )


async def _count(session_factory, model, order_id):
    async with session_factory() as session:
        return await session.scalar(
            select(func.count()).select_from(model).where(model.order_id == order_id)
        )


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------

# (current status, action, caller) -> resulting status, or the error raised
TRANSITIONS = [
    # request_release: seller only, from held
    (HELD, EscrowAction.REQUEST_RELEASE, "seller", REQUESTED),
    (HELD, EscrowAction.REQUEST_RELEASE, "buyer", AuthorizationError),
    (HELD, EscrowAction.REQUEST_RELEASE, "system", AuthorizationError),
    (REQUESTED, EscrowAction.REQUEST_RELEASE, "seller", ConflictError),
    (RELEASED, EscrowAction.REQUEST_RELEASE, "seller", ConflictError),
    (DISPUTED, EscrowAction.REQUEST_RELEASE, "seller", ConflictError),
    # release: buyer only, from held or release_requested
    (HELD, EscrowAction.RELEASE, "buyer", RELEASED),
    (REQUESTED, EscrowAction.RELEASE, "buyer", RELEASED),
    (HELD, EscrowAction.RELEASE, "seller", AuthorizationError),
    (REQUESTED, EscrowAction.RELEASE, "seller", AuthorizationError),
    (HELD, EscrowAction.RELEASE, "system", AuthorizationError),
    (RELEASED, EscrowAction.RELEASE, "buyer", ConflictError),
    (DISPUTED, EscrowAction.RELEASE, "buyer", ConflictError),
    # dispute: buyer or seller, from held or release_requested
    (HELD, EscrowAction.DISPUTE, "buyer", DISPUTED),
    (HELD, EscrowAction.DISPUTE, "seller", DISPUTED),
    (REQUESTED, EscrowAction.DISPUTE, "buyer", DISPUTED),
    (REQUESTED, EscrowAction.DISPUTE, "seller", DISPUTED),
    (HELD, EscrowAction.DISPUTE, "system", AuthorizationError),
    (RELEASED, EscrowAction.DISPUTE, "buyer", ConflictError),
    (DISPUTED, EscrowAction.DISPUTE, "seller", ConflictError),
    # hold: system only, once
    (HELD, EscrowAction.HOLD, "system", ConflictError),
    (HELD, EscrowAction.HOLD, "buyer", AuthorizationError),
]


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("current, action, caller, expected", TRANSITIONS)
async def test_escrow_transition_table(
    db_session, session_factory, current, action, caller, expected
):
    order, _ = await _order_with_escrow(db_session, escrow_status=current)
    ledger = EscrowLedger()

    if isinstance(expected, type) and issubclass(expected, Exception):
        with pytest.raises(expected):
            await ledger.apply(db_session, order.id, action, CALLERS[caller])
        assert await _stored_status(session_factory, order.id) == current
    else:
        escrow = await ledger.apply(db_session, order.id, action, CALLERS[caller])
        assert escrow.status == expected
        assert await _stored_status(session_factory, order.id) == expected


@pytest.mark.asyncio
@pytest.mark.unit
async def test_timestamps_follow_transitions(db_session):
    order, _ = await _order_with_escrow(db_session)
    ledger = EscrowLedger()

    requested = await ledger.apply(
        db_session, order.id, EscrowAction.REQUEST_RELEASE, CALLERS["seller"]
    )
    assert requested.release_requested_at is not None
    assert requested.released_at is None

    released = await ledger.apply(
        db_session, order.id, EscrowAction.RELEASE, CALLERS["buyer"]
    )
    assert released.released_at is not None


# ---------------------------------------------------------------------------
# Side effects
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_dispute_records_reason(db_session, session_factory):
    order, _ = await _order_with_escrow(db_session)

    await EscrowLedger().apply(
        db_session,
        order.id,
        EscrowAction.DISPUTE,
        CALLERS["buyer"],
        reason="Item arrived damaged",
    )

    async with session_factory() as session:
        dispute = await session.scalar(
            select(PaymentDispute).where(PaymentDispute.order_id == order.id)
        )
    assert dispute.raised_by == "buyer-1"
    assert dispute.description == "Item arrived damaged"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_release_settles_seller_payouts(db_session, session_factory):
    order, _ = await _order_with_escrow(db_session)

    await EscrowLedger().apply(
        db_session, order.id, EscrowAction.RELEASE, CALLERS["buyer"]
    )

    assert await _count(session_factory, SellerPayout, order.id) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_release_without_release_trigger_does_not_settle(
    db_session, session_factory, monkeypatch
):
    monkeypatch.setattr(escrow_ledger.settings, "SETTLEMENT_TRIGGER", "delivery")
    order, _ = await _order_with_escrow(db_session)

    await EscrowLedger().apply(
        db_session, order.id, EscrowAction.RELEASE, CALLERS["buyer"]
    )

    assert await _count(session_factory, SellerPayout, order.id) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_seller_release_changes_nothing(db_session, session_factory):
    order, _ = await _order_with_escrow(db_session)

    with pytest.raises(AuthorizationError):
        await EscrowLedger().apply(
            db_session, order.id, EscrowAction.RELEASE, CALLERS["seller"]
        )

    assert await _stored_status(session_factory, order.id) == HELD
    assert await _count(session_factory, SellerPayout, order.id) == 0


# ---------------------------------------------------------------------------
# Hold and lookups
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_system_hold_on_paid_order(db_session, session_factory):
    order, _ = await _order_with_escrow(db_session, escrow_status=None)

    escrow = await EscrowLedger().apply(
        db_session, order.id, EscrowAction.HOLD, CALLERS["system"]
    )

    assert escrow.status == HELD
    assert escrow.amount_cents == order.total_cents
    assert await _stored_status(session_factory, order.id) == HELD


@pytest.mark.asyncio
@pytest.mark.unit
async def test_hold_requires_payment(db_session, session_factory):
    order, _ = await _order_with_escrow(
        db_session, escrow_status=None, order_status=OrderStatus.PENDING_PAYMENT
    )

    with pytest.raises(ConflictError, match="not been paid"):
        await EscrowLedger().apply(
            db_session, order.id, EscrowAction.HOLD, CALLERS["system"]
        )

    assert await _count(session_factory, EscrowPayment, order.id) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_action_without_escrow(db_session):
    order, _ = await _order_with_escrow(db_session, escrow_status=None)

    with pytest.raises(ConflictError, match="No funds"):
        await EscrowLedger().apply(
            db_session, order.id, EscrowAction.DISPUTE, CALLERS["buyer"]
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_order(db_session):
    with pytest.raises(NotFoundError):
        await EscrowLedger().apply(
            db_session, uuid.uuid4(), EscrowAction.RELEASE, CALLERS["buyer"]
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_outsider_is_rejected_before_status_checks(db_session):
    order, _ = await _order_with_escrow(db_session, escrow_status=RELEASED)
    outsider = AuthUser(user_id="not-a-party", role="buyer")

    with pytest.raises(AuthorizationError):
        await EscrowLedger().apply(
            db_session, order.id, EscrowAction.RELEASE, outsider
        )


# ---------------------------------------------------------------------------
# Concurrent actions
# ---------------------------------------------------------------------------


class BarrierEscrowRead:
    """Holds every action after its first escrow read until all have read."""

    def __init__(self, read, parties: int):
        self.read = read
        self.barrier = asyncio.Barrier(parties)
        self.waited = set()

    async def __call__(self, db, order_id):
        escrow = await self.read(db, order_id)
        task = asyncio.current_task()
        if task not in self.waited:
            self.waited.add(task)
            await self.barrier.wait()
        return escrow


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_release_and_dispute_have_one_winner(
    session_factory, monkeypatch
):
    """Buyer releases while seller disputes: exactly one action applies."""
    async with session_factory() as db:
        order, _ = await _order_with_escrow(db)

    monkeypatch.setattr(
        escrow_ledger,
        "get_escrow",
        BarrierEscrowRead(escrow_ledger.get_escrow, parties=2),
    )
    ledger = EscrowLedger()

    async def act(action, caller):
        async with session_factory() as db:
            return await ledger.apply(db, order.id, action, CALLERS[caller])

    results = await asyncio.gather(
        act(EscrowAction.RELEASE, "buyer"),
        act(EscrowAction.DISPUTE, "seller"),
        return_exceptions=True,
    )

    applied = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(applied) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], ConflictError)

    winner = applied[0].status
    assert winner in (RELEASED, DISPUTED)
    assert await _stored_status(session_factory, order.id) == winner
    payouts = await _count(session_factory, SellerPayout, order.id)
    disputes = await _count(session_factory, PaymentDispute, order.id)
    if winner == RELEASED:
        assert (payouts, disputes) == (1, 0)
    else:
        assert (payouts, disputes) == (0, 1)

"""Integration tests for escrow endpoints."""

import uuid

import pytest
from services.orders_service.models import OrderStatus
from services.payments_service.models import EscrowStatus
from tests.factories import EscrowFactory, OrderFactory, ProductFactory

ESCROW = "/payments/escrow"


async def _escrowed_order(db, escrow_status=EscrowStatus.HELD):
    product = ProductFactory.create(seller_id="seller-1", price_cents=50_000)
    order = OrderFactory.create(lines=[(product, 2)], status=OrderStatus.DELIVERED)
    escrow = EscrowFactory.create(order, status=escrow_status)
    db.add_all([product, order, escrow])
    await db.commit()
    return order


@pytest.mark.asyncio
@pytest.mark.integration
async def test_release_flow(client, db_session, act_as):
    """Seller asks for release, buyer releases, seller sees the payout."""
    order = await _escrowed_order(db_session)

    act_as("seller-1", "seller")
    requested = await client.post(
        ESCROW, json={"orderId": str(order.id), "action": "request_release"}
    )
    assert requested.status_code == 200, requested.text
    assert requested.json() == {
        "message": "Release requested from buyer",
        "status": "release_requested",
    }

    act_as("buyer-1")
    released = await client.post(
        ESCROW, json={"orderId": str(order.id), "action": "release"}
    )
    assert released.status_code == 200
    assert released.json()["status"] == "released"

    act_as("seller-1", "seller")
    payouts = await client.get("/seller/payouts")
    assert payouts.status_code == 200
    items = payouts.json()["items"]
    assert len(items) == 1
    assert items[0]["grossCents"] == 100_000
    assert items[0]["netCents"] == 89_100


@pytest.mark.asyncio
@pytest.mark.integration
async def test_seller_cannot_release(client, db_session, act_as):
    order = await _escrowed_order(db_session)
    act_as("seller-1", "seller")

    response = await client.post(
        ESCROW, json={"orderId": str(order.id), "action": "release"}
    )

    assert response.status_code == 403
    current = await client.get(f"{ESCROW}/{order.id}")
    assert current.json()["status"] == "held"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_dispute_then_release_conflicts(client, db_session):
    order = await _escrowed_order(db_session)

    disputed = await client.post(
        ESCROW,
        json={
            "orderId": str(order.id),
            "action": "dispute",
            "reason": "Wrong colour delivered",
        },
    )
    assert disputed.status_code == 200
    assert disputed.json()["status"] == "disputed"

    released = await client.post(
        ESCROW, json={"orderId": str(order.id), "action": "release"}
    )
    assert released.status_code == 409


@pytest.mark.asyncio
@pytest.mark.integration
async def test_outsider_cannot_act(client, db_session, act_as):
    order = await _escrowed_order(db_session)
    act_as("someone-else")

    response = await client.post(
        ESCROW, json={"orderId": str(order.id), "action": "dispute"}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_action_is_rejected(client, db_session):
    order = await _escrowed_order(db_session)

    response = await client.post(
        ESCROW, json={"orderId": str(order.id), "action": "refund"}
    )

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_escrow(client, db_session, act_as):
    order = await _escrowed_order(db_session)

    response = await client.get(f"{ESCROW}/{order.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["orderId"] == str(order.id)
    assert data["amountCents"] == order.total_cents

    act_as("someone-else")
    hidden = await client.get(f"{ESCROW}/{order.id}")
    assert hidden.status_code == 403

    missing = await client.get(f"{ESCROW}/{uuid.uuid4()}")
    assert missing.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_escrows_by_role(client, db_session, act_as):
    await _escrowed_order(db_session)
    await _escrowed_order(db_session, escrow_status=EscrowStatus.DISPUTED)

    as_buyer = await client.get(ESCROW)
    assert as_buyer.json()["total"] == 2

    held_only = await client.get(ESCROW, params={"status": "held"})
    assert held_only.json()["total"] == 1

    act_as("seller-1", "seller")
    as_seller = await client.get(ESCROW, params={"role": "seller"})
    assert as_seller.json()["total"] == 2

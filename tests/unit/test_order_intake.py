"""Unit tests for checkout (OrderIntake).

Tests call the service directly with real sessions on the test database.
No HTTP layer involved.
"""

import asyncio
import uuid

import pytest
from libs.common.errors import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from services.orders_service.models import (
    CartItem,
    Order,
    OrderStatus,
    PaymentMethod,
    Product,
)
from services.orders_service.services.catalog import SqlProductCatalog
from services.orders_service.services.order_intake import (
    OrderIntake,
    OrderLine,
    ShippingAddress,
    merge_lines,
)
from services.shipping_service.resolver import ShippingRateResolver
from services.shipping_service.zones import ShippingService, TransitDays
from sqlalchemy import func, select
from tests.factories import CartItemFactory, ProductFactory

NAIROBI = ShippingAddress(
    country="Kenya", city="Nairobi", full_name="Wanjiru Kamau", phone="+254712345678"
)

# Single flat-rate courier: KSh 300 regardless of weight, takes cash
FLAT_RATE = ShippingService(
    id="flat-rate",
    provider_id="g4s",
    name="Flat Rate",
    description="Flat rate delivery",
    service_code="STANDARD",
    transit_days=TransitDays(2, 3),
    base_price_cents=30_000,
    price_per_kg_cents=0,
    cod_supported=True,
    min_weight_grams=0,
    max_weight_grams=50_000,
    zone_ids=("nairobi", "kenya-urban", "kenya-rural"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _intake(payment_gateway, catalog=None, resolver=None) -> OrderIntake:
    return OrderIntake(
        catalog=catalog or SqlProductCatalog(),
        resolver=resolver or ShippingRateResolver(services=(FLAT_RATE,)),
        gateway=payment_gateway,
    )


async def _add_product(db, **overrides) -> Product:
    product = ProductFactory.create(**overrides)
    db.add(product)
    await db.commit()
    return product


async def _inventory(session_factory, product_id) -> int:
    async with session_factory() as session:
        return await session.scalar(
            select(Product.inventory).where(Product.id == product_id)
        )


async def _order_count(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(Order))


# ---------------------------------------------------------------------------
# merge_lines
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_merge_lines_sums_repeated_products():
    a, b = uuid.uuid4(), uuid.uuid4()
    merged = merge_lines([OrderLine(a, 1), OrderLine(b, 2), OrderLine(a, 3)])

    assert merged == [OrderLine(a, 4), OrderLine(b, 2)]


@pytest.mark.unit
def test_merge_lines_rejects_non_positive_quantity():
    with pytest.raises(ValidationError):
        merge_lines([OrderLine(uuid.uuid4(), 0)])


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_order_totals_add_up(db_session, session_factory, payment_gateway):
    """2 x KSh 500 shipped for KSh 300 with 16% tax totals KSh 1,460."""
    product = await _add_product(db_session, price_cents=50_000, inventory=5)

    placed = await _intake(payment_gateway).place(
        db_session,
        buyer_id="buyer-1",
        address=NAIROBI,
        payment_method=PaymentMethod.CARD,
        lines=[OrderLine(product.id, 2)],
    )
    order = placed.order

    assert order.subtotal_cents == 100_000
    assert order.shipping_cost_cents == 30_000
    assert order.tax_cents == 16_000
    assert order.total_cents == 146_000
    assert order.total_cents == (
        order.subtotal_cents + order.shipping_cost_cents + order.tax_cents
    )
    assert order.subtotal_cents == sum(i.line_total_cents for i in order.items)
    assert order.status == OrderStatus.PENDING_PAYMENT
    assert order.shipping_zone_id == "nairobi"
    assert order.shipping_service_id == "flat-rate"
    assert order.order_number.startswith("ENK-")

    assert placed.client_secret == f"secret-{order.order_number}"
    assert order.payment_reference == f"PI-{order.order_number}"
    assert payment_gateway.intents[0]["amount_cents"] == 146_000

    assert await _inventory(session_factory, product.id) == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_item_snapshot_keeps_seller_and_price(db_session, payment_gateway):
    first = await _add_product(db_session, seller_id="seller-a", price_cents=60_000)
    second = await _add_product(db_session, seller_id="seller-b", price_cents=20_000)

    placed = await _intake(payment_gateway).place(
        db_session,
        buyer_id="buyer-1",
        address=NAIROBI,
        payment_method=PaymentMethod.MPESA,
        lines=[OrderLine(first.id, 1), OrderLine(second.id, 2)],
    )

    items = {i.seller_id: i for i in placed.order.items}
    assert items["seller-a"].line_total_cents == 60_000
    assert items["seller-b"].unit_price_cents == 20_000
    assert items["seller-b"].line_total_cents == 40_000
    assert placed.order.seller_ids() == {"seller-a", "seller-b"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_offline_payment_has_reference_but_no_secret(db_session, payment_gateway):
    product = await _add_product(db_session)

    placed = await _intake(payment_gateway).place(
        db_session,
        buyer_id="buyer-1",
        address=NAIROBI,
        payment_method=PaymentMethod.COD,
        lines=[OrderLine(product.id, 1)],
    )

    assert placed.client_secret is None
    assert placed.order.payment_reference == f"COD-{placed.order.order_number}"


# ---------------------------------------------------------------------------
# Cart checkout
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_checkout_from_cart_clears_cart(
    db_session, session_factory, payment_gateway
):
    product = await _add_product(db_session, inventory=4)
    db_session.add(CartItemFactory.create(product, buyer_id="buyer-1", quantity=2))
    await db_session.commit()

    placed = await _intake(payment_gateway).place(
        db_session,
        buyer_id="buyer-1",
        address=NAIROBI,
        payment_method=PaymentMethod.CARD,
    )

    assert placed.order.items[0].quantity == 2
    async with session_factory() as session:
        remaining = await session.scalar(
            select(func.count()).select_from(CartItem)
        )
    assert remaining == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_empty_cart_is_rejected(db_session, payment_gateway):
    with pytest.raises(ValidationError, match="Cart is empty"):
        await _intake(payment_gateway).place(
            db_session,
            buyer_id="buyer-without-cart",
            address=NAIROBI,
            payment_method=PaymentMethod.CARD,
        )


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_product(db_session, payment_gateway):
    with pytest.raises(NotFoundError):
        await _intake(payment_gateway).place(
            db_session,
            buyer_id="buyer-1",
            address=NAIROBI,
            payment_method=PaymentMethod.CARD,
            lines=[OrderLine(uuid.uuid4(), 1)],
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_inactive_product(db_session, payment_gateway):
    product = await _add_product(db_session, is_active=False)

    with pytest.raises(ValidationError, match="no longer available"):
        await _intake(payment_gateway).place(
            db_session,
            buyer_id="buyer-1",
            address=NAIROBI,
            payment_method=PaymentMethod.CARD,
            lines=[OrderLine(product.id, 1)],
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_quantity_above_inventory(db_session, session_factory, payment_gateway):
    product = await _add_product(db_session, inventory=1)

    with pytest.raises(ValidationError, match="Only 1 available"):
        await _intake(payment_gateway).place(
            db_session,
            buyer_id="buyer-1",
            address=NAIROBI,
            payment_method=PaymentMethod.CARD,
            lines=[OrderLine(product.id, 2)],
        )

    assert await _order_count(session_factory) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cod_above_zone_limit(db_session, payment_gateway):
    product = await _add_product(db_session, price_cents=3_000_000, inventory=5)

    with pytest.raises(ValidationError, match=r"up to KES 50,000\.00"):
        await _intake(payment_gateway).place(
            db_session,
            buyer_id="buyer-1",
            address=NAIROBI,
            payment_method=PaymentMethod.COD,
            lines=[OrderLine(product.id, 2)],
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cod_with_non_cod_option(db_session, payment_gateway):
    product = await _add_product(db_session)

    with pytest.raises(ValidationError, match="does not support cash on delivery"):
        await _intake(payment_gateway, resolver=ShippingRateResolver()).place(
            db_session,
            buyer_id="buyer-1",
            address=NAIROBI,
            payment_method=PaymentMethod.COD,
            lines=[OrderLine(product.id, 1)],
            shipping_option_id="nairobi-economy",
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_shipping_option(db_session, payment_gateway):
    product = await _add_product(db_session)

    with pytest.raises(ValidationError, match="Unknown shipping option"):
        await _intake(payment_gateway).place(
            db_session,
            buyer_id="buyer-1",
            address=NAIROBI,
            payment_method=PaymentMethod.CARD,
            lines=[OrderLine(product.id, 1)],
            shipping_option_id="teleport",
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_chosen_shipping_option_is_charged(db_session, payment_gateway):
    product = await _add_product(db_session, price_cents=50_000, weight_grams=1_000)

    placed = await _intake(payment_gateway, resolver=ShippingRateResolver()).place(
        db_session,
        buyer_id="buyer-1",
        address=NAIROBI,
        payment_method=PaymentMethod.CARD,
        lines=[OrderLine(product.id, 2)],
        shipping_option_id="nairobi-express",
    )

    # 450.00 base + 2 kg x 80.00
    assert placed.order.shipping_service_id == "nairobi-express"
    assert placed.order.shipping_cost_cents == 61_000


# ---------------------------------------------------------------------------
# Atomicity
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_gateway_failure_rolls_back_everything(
    db_session, session_factory, payment_gateway
):
    product = await _add_product(db_session, inventory=3)
    db_session.add(CartItemFactory.create(product, buyer_id="buyer-1", quantity=2))
    await db_session.commit()
    payment_gateway.error = ExternalServiceError("gateway down")

    with pytest.raises(ExternalServiceError):
        await _intake(payment_gateway).place(
            db_session,
            buyer_id="buyer-1",
            address=NAIROBI,
            payment_method=PaymentMethod.CARD,
        )

    assert await _order_count(session_factory) == 0
    assert await _inventory(session_factory, product.id) == 3
    async with session_factory() as session:
        cart = await session.scalar(select(func.count()).select_from(CartItem))
    assert cart == 1


class BarrierCatalog(SqlProductCatalog):
    """Holds every checkout after its stock read until all have read."""

    def __init__(self, parties: int):
        self.barrier = asyncio.Barrier(parties)

    async def get_products(self, db, product_ids):
        products = await super().get_products(db, product_ids)
        await self.barrier.wait()
        return products


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_checkouts_cannot_oversell(session_factory, payment_gateway):
    """Two buyers race for the last unit: exactly one order is placed."""
    async with session_factory() as db:
        product = ProductFactory.create(inventory=1)
        db.add(product)
        await db.commit()

    intake = _intake(payment_gateway, catalog=BarrierCatalog(2))

    async def checkout(buyer_id: str):
        async with session_factory() as db:
            return await intake.place(
                db,
                buyer_id=buyer_id,
                address=NAIROBI,
                payment_method=PaymentMethod.CARD,
                lines=[OrderLine(product.id, 1)],
            )

    results = await asyncio.gather(
        checkout("buyer-a"), checkout("buyer-b"), return_exceptions=True
    )

    placed = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(placed) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], ConflictError)
    assert failed[0].message == "insufficient stock"

    assert await _inventory(session_factory, product.id) == 0
    assert await _order_count(session_factory) == 1

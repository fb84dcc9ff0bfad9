"""Checkout: turn a cart into a priced, stock-reserved order awaiting payment.

Everything a checkout writes (order, items, inventory, cart) happens in one
transaction on the request's session. Any failure, including the payment
gateway refusing the intent, rolls all of it back.
"""

import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional

from libs.common.config import get_settings
from libs.common.currency import apply_rate, format_amount
from libs.common.errors import ConflictError, NotFoundError, ValidationError
from libs.common.logging import get_logger
from services.orders_service.models import (
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Product,
)
from services.orders_service.services.catalog import ProductCatalog
from services.payments_service.gateway_client import PaymentGateway
from services.shipping_service.resolver import (
    Destination,
    QuoteItem,
    ShippingOption,
    ShippingRateResolver,
)
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class OrderLine:
    product_id: uuid.UUID
    quantity: int


@dataclass(frozen=True)
class ShippingAddress:
    country: str
    city: str
    full_name: str = ""
    phone: str = ""
    street: str = ""
    state: Optional[str] = None
    postal_code: Optional[str] = None
    is_rural: bool = False

    def to_dict(self) -> dict:
        return {
            "full_name": self.full_name,
            "phone": self.phone,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "is_rural": self.is_rural,
        }


@dataclass
class PlacedOrder:
    order: Order
    client_secret: Optional[str] = None
    shipping_option: Optional[ShippingOption] = field(default=None, repr=False)


def merge_lines(lines: Iterable[OrderLine]) -> list[OrderLine]:
    """Collapse repeated products into one line, keeping first-seen order."""
    totals: dict[uuid.UUID, int] = {}
    for line in lines:
        if line.quantity <= 0:
            raise ValidationError("Quantity must be at least 1")
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return [OrderLine(pid, qty) for pid, qty in totals.items()]


class OrderIntake:
    """Places orders: validate, price, persist, reserve stock, request payment."""

    def __init__(
        self,
        catalog: ProductCatalog,
        resolver: ShippingRateResolver,
        gateway: PaymentGateway,
    ):
        self.catalog = catalog
        self.resolver = resolver
        self.gateway = gateway

    async def place(
        self,
        db: AsyncSession,
        *,
        buyer_id: str,
        address: ShippingAddress,
        payment_method: PaymentMethod,
        lines: Optional[Iterable[OrderLine]] = None,
        shipping_option_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> PlacedOrder:
        """Place an order from ``lines``, or from the buyer's cart when omitted."""
        try:
            placed = await self._place(
                db,
                buyer_id=buyer_id,
                address=address,
                payment_method=payment_method,
                lines=lines,
                shipping_option_id=shipping_option_id,
                email=email,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        order = placed.order
        logger.info(
            "Order %s placed by %s: total=%d",
            order.order_number,
            buyer_id,
            order.total_cents,
            extra={
                "extra_fields": {
                    "order_id": str(order.id),
                    "payment_method": payment_method.value,
                }
            },
        )
        return placed

    async def _place(
        self,
        db: AsyncSession,
        *,
        buyer_id: str,
        address: ShippingAddress,
        payment_method: PaymentMethod,
        lines: Optional[Iterable[OrderLine]],
        shipping_option_id: Optional[str],
        email: Optional[str],
    ) -> PlacedOrder:
        if lines is None:
            lines = await self._cart_lines(db, buyer_id)
        merged = merge_lines(lines)
        if not merged:
            raise ValidationError("Cart is empty")

        products = await self.catalog.get_products(
            db, [line.product_id for line in merged]
        )
        self._check_availability(merged, products)

        # Pricing
        subtotal = sum(
            products[line.product_id].price_cents * line.quantity for line in merged
        )
        option, zone_id = self._select_shipping(
            merged, products, address, payment_method, subtotal, shipping_option_id
        )
        shipping_cost = option.price_cents
        tax = apply_rate(subtotal, settings.TAX_RATE)

        order = Order(
            order_number=Order.generate_order_number(),
            buyer_id=buyer_id,
            status=OrderStatus.PENDING_PAYMENT,
            subtotal_cents=subtotal,
            shipping_cost_cents=shipping_cost,
            tax_cents=tax,
            total_cents=subtotal + shipping_cost + tax,
            currency=settings.CURRENCY,
            payment_method=payment_method,
            shipping_address=address.to_dict(),
            shipping_zone_id=zone_id,
            shipping_service_id=option.id,
        )
        for line in merged:
            product = products[line.product_id]
            order.items.append(
                OrderItem(
                    product_id=product.id,
                    seller_id=product.seller_id,
                    product_name=product.name,
                    quantity=line.quantity,
                    unit_price_cents=product.price_cents,
                    line_total_cents=product.price_cents * line.quantity,
                )
            )
        db.add(order)
        await db.flush()

        # Reserve stock; a concurrent checkout may have taken it since the read
        for line in merged:
            if not await self.catalog.reserve(db, line.product_id, line.quantity):
                logger.warning(
                    "Stock conflict on product %s for order %s",
                    line.product_id,
                    order.order_number,
                )
                raise ConflictError("insufficient stock")

        await db.execute(delete(CartItem).where(CartItem.buyer_id == buyer_id))

        intent = await self.gateway.create_intent(
            reference=order.order_number,
            amount_cents=order.total_cents,
            currency=order.currency,
            method=payment_method,
            email=email,
        )
        order.payment_reference = intent.reference
        await db.flush()

        return PlacedOrder(
            order=order, client_secret=intent.client_secret, shipping_option=option
        )

    async def _cart_lines(self, db: AsyncSession, buyer_id: str) -> list[OrderLine]:
        result = await db.execute(
            select(CartItem)
            .where(CartItem.buyer_id == buyer_id)
            .order_by(CartItem.created_at)
        )
        return [OrderLine(c.product_id, c.quantity) for c in result.scalars().all()]

    @staticmethod
    def _check_availability(
        lines: list[OrderLine], products: dict[uuid.UUID, Product]
    ) -> None:
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                raise NotFoundError(f"Product {line.product_id} not found")
            if not product.is_active:
                raise ValidationError(f"{product.name} is no longer available")
            if line.quantity > product.inventory:
                raise ValidationError(
                    f"Only {product.inventory} available for {product.name}"
                )

    def _select_shipping(
        self,
        lines: list[OrderLine],
        products: dict[uuid.UUID, Product],
        address: ShippingAddress,
        payment_method: PaymentMethod,
        subtotal: int,
        shipping_option_id: Optional[str],
    ) -> tuple[ShippingOption, str]:
        cod = payment_method == PaymentMethod.COD
        quote = self.resolver.quote(
            [
                QuoteItem(
                    weight_grams=products[line.product_id].weight_grams,
                    price_cents=products[line.product_id].price_cents,
                    quantity=line.quantity,
                )
                for line in lines
            ],
            Destination(
                country=address.country,
                city=address.city,
                state=address.state,
                postal_code=address.postal_code,
                is_rural=address.is_rural,
            ),
            cod=cod,
        )

        if cod and not quote.zone.cod_supported:
            raise ValidationError(
                f"Cash on delivery is not available in {quote.zone.display_name}"
            )
        if cod and not self.resolver.is_cod_available(subtotal, quote.zone):
            limit = format_amount(quote.zone.cod_max_value_cents, settings.CURRENCY)
            raise ValidationError(
                f"Cash on delivery in {quote.zone.display_name} is limited to "
                f"orders up to {limit}"
            )

        if shipping_option_id:
            option = quote.option(shipping_option_id)
            if option is None:
                raise ValidationError(f"Unknown shipping option {shipping_option_id}")
            if cod and not option.cod_supported:
                raise ValidationError(
                    f"{option.service.name} does not support cash on delivery"
                )
        else:
            option = quote.recommended
            if option is None:
                raise ValidationError("No shipping option available for this order")

        return option, quote.zone.id

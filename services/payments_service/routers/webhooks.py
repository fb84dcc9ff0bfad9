"""Payment gateway webhook: confirms or fails pending orders."""

from fastapi import APIRouter, Depends, Request
from libs.common.errors import AuthenticationError, ConflictError, ValidationError
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from pydantic import ValidationError as PydanticValidationError
from services.orders_service.dependencies import get_product_catalog
from services.orders_service.models import Order, OrderStatus
from services.orders_service.services.catalog import ProductCatalog
from services.orders_service.services.order_status import (
    compare_and_set_status,
    restock_order,
)
from services.payments_service.dependencies import get_escrow_ledger
from services.payments_service.gateway_client import verify_signature
from services.payments_service.schemas import GatewayEvent
from services.payments_service.services.escrow_ledger import EscrowLedger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)

SIGNATURE_HEADER = "x-gateway-signature"
PAYMENT_CONFIRMED = "payment.confirmed"
PAYMENT_FAILED = "payment.failed"


async def _confirm(db: AsyncSession, order: Order, ledger: EscrowLedger) -> None:
    await compare_and_set_status(
        db, order, OrderStatus.PENDING_PAYMENT, OrderStatus.PAID
    )
    await ledger.hold(db, order)


async def _fail(db: AsyncSession, order: Order, catalog: ProductCatalog) -> None:
    await compare_and_set_status(
        db, order, OrderStatus.PENDING_PAYMENT, OrderStatus.PAYMENT_FAILED
    )
    await restock_order(db, order, catalog)


@router.post("/webhooks/gateway")
async def gateway_webhook(
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
    catalog: ProductCatalog = Depends(get_product_catalog),
):
    """
    Payment gateway webhook endpoint (no auth; verified by x-gateway-signature).
    """
    raw = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature or not verify_signature(raw, signature):
        raise AuthenticationError("Invalid signature")

    try:
        payload = GatewayEvent.model_validate_json(raw or b"{}")
    except PydanticValidationError as exc:
        raise ValidationError("Malformed gateway event") from exc

    event = payload.event
    reference = payload.data.reference

    result = await db.execute(
        select(Order).where(Order.payment_reference == reference)
    )
    order = result.scalar_one_or_none()
    if not order:
        logger.warning(
            "Webhook received for unknown payment reference: %s",
            reference,
            extra={"extra_fields": {"reference": reference, "event": event}},
        )
        return {"received": True}

    # Replays and late events for settled orders are no-ops
    if order.status != OrderStatus.PENDING_PAYMENT:
        logger.info(
            "Webhook for %s skipped - order already %s",
            reference,
            order.status.value,
            extra={"extra_fields": {"order_id": str(order.id), "event": event}},
        )
        return {"received": True}

    if event == PAYMENT_CONFIRMED:
        amount = payload.data.amount
        if amount is not None and amount != order.total_cents:
            logger.error(
                "Gateway amount mismatch for %s: got %d, expected %d",
                reference,
                amount,
                order.total_cents,
                extra={"extra_fields": {"order_id": str(order.id)}},
            )
            return {"received": True}
    elif event != PAYMENT_FAILED:
        logger.info("Ignoring gateway event %s for %s", event, reference)
        return {"received": True}

    try:
        if event == PAYMENT_CONFIRMED:
            await _confirm(db, order, ledger)
        else:
            await _fail(db, order, catalog)
        await db.commit()
    except ConflictError:
        # Another delivery of the same event won the race
        await db.rollback()
        logger.info("Concurrent webhook for %s already applied", reference)
        return {"received": True}
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Order %s %s by gateway",
        order.order_number,
        "paid" if event == PAYMENT_CONFIRMED else "payment failed",
        extra={"extra_fields": {"order_id": str(order.id), "event": event}},
    )
    return {"received": True}

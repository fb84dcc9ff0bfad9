"""Escrow router: apply escrow actions and read escrow state."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.errors import AuthorizationError, NotFoundError
from libs.db.session import get_async_db
from services.orders_service.models import Order
from services.payments_service.dependencies import get_escrow_ledger
from services.payments_service.filters import EscrowFilter
from services.payments_service.schemas import (
    EscrowActionRequest,
    EscrowActionResponse,
    EscrowListResponse,
    EscrowResponse,
)
from services.payments_service.services.escrow_ledger import (
    ACTION_MESSAGES,
    EscrowLedger,
    get_escrow,
    parties_of,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments/escrow", tags=["escrow"])


@router.post("", response_model=EscrowActionResponse)
async def apply_escrow_action(
    payload: EscrowActionRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
):
    """Request release, release, or dispute the funds held for an order."""
    escrow = await ledger.apply(
        db, payload.order_id, payload.action, current_user, payload.reason
    )
    return EscrowActionResponse(
        message=ACTION_MESSAGES[payload.action], status=escrow.status
    )


@router.get("", response_model=EscrowListResponse)
async def list_escrows(
    filters: EscrowFilter = Depends(EscrowFilter.from_query),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List escrows of the caller's orders, as buyer (default) or seller."""
    query = filters.apply(current_user.user_id)

    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = await db.scalar(count_query) or 0

    result = await db.execute(query.offset(filters.offset).limit(filters.page_size))
    return EscrowListResponse(
        items=[EscrowResponse.model_validate(e) for e in result.scalars().all()],
        total=total,
        page=filters.page,
        page_size=filters.page_size,
    )


@router.get("/{order_id}", response_model=EscrowResponse)
async def get_order_escrow(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Escrow for one order; visible to the order's buyer and sellers."""
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if not parties_of(order, current_user):
        raise AuthorizationError("You are not a party to this order")

    escrow = await get_escrow(db, order_id)
    if not escrow:
        raise NotFoundError("No escrow for this order")
    return EscrowResponse.model_validate(escrow)

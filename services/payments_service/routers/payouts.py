"""Payout routes: seller payout history and internal settlement/execution hooks."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import require_seller, require_service_role
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.payments_service.models import PayoutStatus, SellerPayout
from services.payments_service.schemas import (
    PayoutResponse,
    PayoutStats,
    PayoutStatusUpdate,
    SellerPayoutListResponse,
    SettlementResponse,
)
from services.payments_service.services.payout_settlement import (
    advance_payout,
    settle_order,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Seller router for viewing own payouts
seller_router = APIRouter(prefix="/seller/payouts", tags=["seller-payouts"])

# Internal router for the settlement trigger and the payout executor
internal_router = APIRouter(prefix="/internal/payouts", tags=["internal-payouts"])


async def _seller_stats(db: AsyncSession, seller_id: str) -> PayoutStats:
    rows = await db.execute(
        select(
            SellerPayout.status,
            func.count(),
            func.coalesce(func.sum(SellerPayout.net_cents), 0),
            func.coalesce(func.sum(SellerPayout.platform_commission_cents), 0),
        )
        .where(SellerPayout.seller_id == seller_id)
        .group_by(SellerPayout.status)
    )

    stats = PayoutStats()
    for status, count, net, commission in rows.all():
        stats.total_payouts += count
        stats.total_net_cents += net
        stats.total_commission_cents += commission
        if status == PayoutStatus.PENDING:
            stats.pending_count = count
            stats.pending_net_cents = net
        elif status == PayoutStatus.PROCESSING:
            stats.processing_count = count
        elif status == PayoutStatus.PAID:
            stats.paid_count = count
            stats.paid_net_cents = net
        elif status == PayoutStatus.FAILED:
            stats.failed_count = count
    return stats


# =============================================================================
# Seller Endpoints
# =============================================================================


@seller_router.get("", response_model=SellerPayoutListResponse)
async def list_my_payouts(
    status: Optional[PayoutStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(require_seller),
    db: AsyncSession = Depends(get_async_db),
):
    """List the caller's payouts, newest first, with totals by status."""
    query = select(SellerPayout).where(SellerPayout.seller_id == current_user.user_id)
    if status:
        query = query.where(SellerPayout.status == status)
    query = query.order_by(SellerPayout.created_at.desc()).limit(limit)

    result = await db.execute(query)
    return SellerPayoutListResponse(
        items=[PayoutResponse.model_validate(p) for p in result.scalars().all()],
        stats=await _seller_stats(db, current_user.user_id),
    )


# =============================================================================
# Internal Endpoints
# =============================================================================


@internal_router.post("/settle/{order_id}", response_model=SettlementResponse)
async def settle_order_payouts(
    order_id: uuid.UUID,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Create pending seller payouts for an order. Safe to call repeatedly."""
    try:
        payouts = await settle_order(db, order_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return SettlementResponse(
        order_id=order_id,
        payouts=[PayoutResponse.model_validate(p) for p in payouts],
    )


@internal_router.patch("/{payout_id}", response_model=PayoutResponse)
async def update_payout_status(
    payout_id: uuid.UUID,
    payload: PayoutStatusUpdate,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Record a payout execution step reported by the payout executor."""
    payout = await advance_payout(
        db,
        payout_id,
        payload.status,
        payout_reference=payload.payout_reference,
        failure_reason=payload.failure_reason,
    )
    return PayoutResponse.model_validate(payout)

"""Pydantic schemas for escrow, webhooks and seller payouts."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.schemas import CamelModel
from pydantic import Field
from services.payments_service.models import EscrowAction, EscrowStatus, PayoutStatus

# ============================================================================
# ESCROW SCHEMAS
# ============================================================================


class EscrowActionRequest(CamelModel):
    order_id: uuid.UUID
    action: EscrowAction
    reason: Optional[str] = Field(None, max_length=2000)


class EscrowActionResponse(CamelModel):
    message: str
    status: EscrowStatus


class EscrowResponse(CamelModel):
    id: uuid.UUID
    order_id: uuid.UUID
    buyer_id: str
    amount_cents: int
    currency: str
    status: EscrowStatus
    held_at: datetime
    release_requested_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    disputed_at: Optional[datetime] = None


class EscrowListResponse(CamelModel):
    items: list[EscrowResponse]
    total: int
    page: int
    page_size: int


# ============================================================================
# WEBHOOK SCHEMAS
# ============================================================================


class GatewayEventData(CamelModel):
    reference: str
    amount: Optional[int] = None  # cents
    currency: Optional[str] = None
    reason: Optional[str] = None


class GatewayEvent(CamelModel):
    event: str
    data: GatewayEventData


# ============================================================================
# PAYOUT SCHEMAS
# ============================================================================


class PayoutResponse(CamelModel):
    id: uuid.UUID
    seller_id: str
    order_id: uuid.UUID
    gross_cents: int
    platform_commission_cents: int
    payment_processing_fee_cents: int
    net_cents: int
    currency: str
    status: PayoutStatus
    payout_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime


class PayoutStats(CamelModel):
    total_payouts: int = 0
    pending_count: int = 0
    processing_count: int = 0
    paid_count: int = 0
    failed_count: int = 0
    pending_net_cents: int = 0
    paid_net_cents: int = 0
    total_net_cents: int = 0
    total_commission_cents: int = 0


class SellerPayoutListResponse(CamelModel):
    items: list[PayoutResponse]
    stats: PayoutStats


class PayoutStatusUpdate(CamelModel):
    """Payout execution step reported by the payout executor."""

    status: PayoutStatus
    payout_reference: Optional[str] = Field(None, max_length=100)
    failure_reason: Optional[str] = Field(None, max_length=2000)


class SettlementResponse(CamelModel):
    order_id: uuid.UUID
    payouts: list[PayoutResponse]

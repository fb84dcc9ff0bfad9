"""Escrow, dispute and seller payout models."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.payments_service.models.enums import (
    DisputeStatus,
    EscrowStatus,
    PayoutStatus,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import BigInteger, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class EscrowPayment(Base):
    """Buyer funds held against an order until release or dispute."""

    __tablename__ = "escrow_payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), unique=True, nullable=False
    )
    buyer_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="KES")

    status: Mapped[EscrowStatus] = mapped_column(
        SAEnum(EscrowStatus, values_callable=enum_values, name="escrow_status_enum"),
        default=EscrowStatus.HELD,
        server_default="held",
    )

    held_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    release_requested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    released_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    disputed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="escrow_amount_non_negative"),
    )

    def __repr__(self):
        return f"<EscrowPayment order={self.order_id} status={self.status}>"


class PaymentDispute(Base):
    """Dispute raised by a buyer or seller against held funds."""

    __tablename__ = "payment_disputes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), index=True, nullable=False
    )
    raised_by: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[DisputeStatus] = mapped_column(
        SAEnum(DisputeStatus, values_callable=enum_values, name="dispute_status_enum"),
        default=DisputeStatus.OPEN,
        server_default="open",
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    def __repr__(self):
        return f"<PaymentDispute order={self.order_id} status={self.status}>"


class SellerPayout(Base):
    """One seller's share of one order, after commission and processing fees."""

    __tablename__ = "seller_payouts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id"), index=True, nullable=False
    )

    # Amounts (cents)
    gross_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    platform_commission_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False
    )
    payment_processing_fee_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False
    )
    net_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="KES")

    status: Mapped[PayoutStatus] = mapped_column(
        SAEnum(PayoutStatus, values_callable=enum_values, name="payout_status_enum"),
        default=PayoutStatus.PENDING,
        server_default="pending",
    )
    payout_reference: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint("seller_id", "order_id", name="uq_seller_payout_order"),
        CheckConstraint(
            "net_cents = gross_cents - platform_commission_cents"
            " - payment_processing_fee_cents",
            name="payout_net_adds_up",
        ),
    )

    def __repr__(self):
        return f"<SellerPayout seller={self.seller_id} net={self.net_cents}>"

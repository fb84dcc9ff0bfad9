"""Payments Service models package."""

from services.payments_service.models.core import (
    EscrowPayment,
    PaymentDispute,
    SellerPayout,
)
from services.payments_service.models.enums import (
    DisputeStatus,
    EscrowAction,
    EscrowStatus,
    PayoutStatus,
)

__all__ = [
    "DisputeStatus",
    "EscrowAction",
    "EscrowPayment",
    "EscrowStatus",
    "PaymentDispute",
    "PayoutStatus",
    "SellerPayout",
]

"""Enum definitions for order service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class OrderStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    PAYMENT_FAILED = "payment_failed"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    MPESA = "mpesa"
    PESAPAL = "pesapal"
    BANK_TRANSFER = "bank_transfer"
    COD = "cod"

    @property
    def is_offline(self) -> bool:
        """Settled outside the gateway checkout (reference only, no client secret)."""
        return self in (PaymentMethod.BANK_TRANSFER, PaymentMethod.COD)

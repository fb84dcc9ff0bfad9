"""Enum definitions for payments service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class EscrowStatus(str, enum.Enum):
    HELD = "held"
    RELEASE_REQUESTED = "release_requested"
    RELEASED = "released"
    DISPUTED = "disputed"


class EscrowAction(str, enum.Enum):
    HOLD = "hold"
    REQUEST_RELEASE = "request_release"
    RELEASE = "release"
    DISPUTE = "dispute"


class DisputeStatus(str, enum.Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"

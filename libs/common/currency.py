"""Money helpers for the settlement core.

Internal storage unit: cents (smallest KES unit, 100 cents = KSh 1).
Rates (tax, commission, processing) are ``Decimal`` fractions.

Every rate application rounds half-up to a whole cent; derived amounts
(net payout, order total) are computed by integer addition/subtraction
so they never drift from their parts.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# ─── constants ───────────────────────────────────────────────────────────────

CENTS_PER_UNIT: int = 100
GRAMS_PER_KG: int = 1000

_ONE = Decimal("1")


# ─── conversion helpers ───────────────────────────────────────────────────────


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, halves away from zero."""
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def apply_rate(amount_cents: int, rate: Decimal) -> int:
    """Return ``amount_cents × rate`` rounded half-up to a whole cent."""
    return round_half_up(Decimal(amount_cents) * rate)


def grams_to_kg(grams: int) -> Decimal:
    return Decimal(grams) / GRAMS_PER_KG


def kg_to_grams(kg: Decimal | float | str) -> int:
    return round_half_up(Decimal(str(kg)) * GRAMS_PER_KG)


def format_amount(cents: int, currency: str = "KES") -> str:
    """Human readable amount, e.g. ``KES 1,250.00``."""
    return f"{currency} {Decimal(cents) / CENTS_PER_UNIT:,.2f}"

"""Unit tests for money helpers."""

from decimal import Decimal

import pytest
from libs.common.currency import (
    apply_rate,
    format_amount,
    grams_to_kg,
    kg_to_grams,
    round_half_up,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "value, expected",
    [
        ("0.5", 1),
        ("1.49", 1),
        ("2.5", 3),
        ("-2.5", -3),
        ("7", 7),
    ],
)
def test_round_half_up(value, expected):
    assert round_half_up(Decimal(value)) == expected


@pytest.mark.unit
def test_apply_rate_rounds_each_fee_half_up():
    assert apply_rate(100_000, Decimal("0.16")) == 16_000
    assert apply_rate(100_000, Decimal("0.029")) == 2_900
    # 1_250 x 0.029 = 36.25
    assert apply_rate(1_250, Decimal("0.029")) == 36
    # 50 x 0.05 = 2.5
    assert apply_rate(50, Decimal("0.05")) == 3


@pytest.mark.unit
def test_unit_conversions():
    assert grams_to_kg(2_500) == Decimal("2.5")
    assert kg_to_grams("1.2345") == 1_235


@pytest.mark.unit
def test_format_amount():
    assert format_amount(146_000) == "KES 1,460.00"
    assert format_amount(5, "USD") == "USD 0.05"

from decimal import Decimal

import pytest

from onesec_bridge.errors import BridgeError
from onesec_bridge.utils import amount_from_tokens, amount_from_units, format_amount


@pytest.mark.parametrize(
    "units,decimals",
    [(0, 6), (1, 8), (1_500_000, 6), (123_456_789, 0), (2**256 - 1, 18)],
)
def test_units_survive_conversion_through_tokens(units, decimals):
    amount = amount_from_units(units, decimals)
    assert amount_from_tokens(amount.in_tokens, decimals).in_units == units


def test_amount_from_tokens_accepts_strings_and_floats():
    assert amount_from_tokens("1.5", 6).in_units == 1_500_000
    assert amount_from_tokens(0.1, 8).in_units == 10_000_000
    assert amount_from_tokens(2, 8).in_tokens == Decimal("2")


def test_amount_from_tokens_truncates_extra_precision():
    assert amount_from_tokens("1.23456789", 6).in_units == 1_234_567


def test_negative_and_non_numeric_amounts_are_rejected():
    with pytest.raises(BridgeError):
        amount_from_units(-1, 6)
    with pytest.raises(BridgeError):
        amount_from_tokens("-0.5", 6)
    with pytest.raises(BridgeError):
        amount_from_tokens("lots", 6)


def test_format_amount_keeps_one_decimal_and_six_at_most():
    assert format_amount(1_500_000, 6) == "1.5"
    assert format_amount(200_000_000, 8) == "2.0"
    assert format_amount(1_234_567, 6) == "1.234567"
    assert format_amount(1, 8) == "0.0"
    assert format_amount(150, 8) == "0.000002"


def test_amount_state_is_json_friendly():
    assert amount_from_units(1_500_000, 6).to_state() == {"in_units": 1_500_000, "in_tokens": "1.500000"}

"""
Unit tests for decimal helpers
"""
import pytest
from decimal import Decimal
from wallet_api.utils.amounts import (
    parse_decimal,
    parse_positive_amount,
    format_decimal,
    price_to_decimal,
    parse_price
)
from wallet_api.utils.exceptions import InvalidInputError


@pytest.mark.parametrize("value,expected", [
    ("1.5", Decimal("1.5")),
    (" 2 ", Decimal("2")),
    (0.1, Decimal("0.1")),
    (3, Decimal("3")),
    ("abc", None),
    ("NaN", None),
    ("Infinity", None),
    (float("inf"), None),
    (None, None),
    (True, None),
])
def test_parse_decimal(value, expected):
    assert parse_decimal(value) == expected


def test_float_enters_through_repr():
    assert price_to_decimal(0.1) == Decimal("0.1")
    assert price_to_decimal(50000.0) * 2 == Decimal("100000")


@pytest.mark.parametrize("value", ["0", "-0.5", "x", None])
def test_parse_positive_amount_rejects(value):
    with pytest.raises(InvalidInputError):
        parse_positive_amount(value)


@pytest.mark.parametrize("value,text", [
    (Decimal("2500.00"), "2500"),
    (Decimal("0.40"), "0.4"),
    (Decimal("1E+3"), "1000"),
    (Decimal("0"), "0"),
    (Decimal("0.00000001"), "0.00000001"),
])
def test_format_decimal_is_plain(value, text):
    assert format_decimal(value) == text


def test_parse_price():
    assert parse_price("1.85") == 1.85
    assert parse_price("0") is None
    assert parse_price("-2") is None
    assert parse_price("oops") is None

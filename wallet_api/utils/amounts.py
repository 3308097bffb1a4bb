"""
Decimal helpers for balances, amounts and prices stored as text
"""
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from wallet_api.utils.exceptions import InvalidInputError


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a stored or submitted number; None when it is not a finite number"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def parse_positive_amount(value: Any, field: str = "amount") -> Decimal:
    """Amount submitted by a caller; must be a finite number above zero"""
    amount = parse_decimal(value)
    if amount is None:
        raise InvalidInputError(field, value, "Must be a number")
    if amount <= 0:
        raise InvalidInputError(field, value, "Must be greater than zero")
    return amount


def format_decimal(value: Decimal) -> str:
    """Plain (non-scientific) text without trailing zeros"""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def price_to_decimal(price: float) -> Decimal:
    """Float prices enter ledger arithmetic through their shortest repr"""
    return Decimal(repr(float(price)))


def format_price(price: float) -> str:
    """Prices are stored with 8 decimal places"""
    return f"{price:.8f}"


def parse_price(value: Any) -> Optional[float]:
    """Stored price as a positive finite float, or None"""
    parsed = parse_decimal(value)
    if parsed is None:
        return None
    result = float(parsed)
    if not math.isfinite(result) or result <= 0:
        return None
    return result

"""
Unit tests for exception types and their HTTP mapping
"""
import pytest
from wallet_api.api.main import error_status_code
from wallet_api.utils.exceptions import (
    AuthenticationError,
    ConcurrentUpdateError,
    DatabaseQueryError,
    InsufficientBalanceError,
    InvalidInputError,
    NotFoundError,
    PolicyViolationError,
    PriceUnavailableError,
    QuoteFetchError,
    RestrictedSwapError,
    WalletServerError
)


@pytest.mark.parametrize("exc,status", [
    (RestrictedSwapError("AMC", "BTC"), 403),
    (InsufficientBalanceError("BTC", "0", "1"), 400),
    (PolicyViolationError("nope"), 403),
    (InvalidInputError("amount", "x", "Must be a number"), 400),
    (NotFoundError("User", "42"), 404),
    (AuthenticationError(), 401),
    (PriceUnavailableError("ETH"), 400),
    (ConcurrentUpdateError("u", "BTC", 3), 409),
    (QuoteFetchError("down"), 502),
    (DatabaseQueryError("broken"), 500),
    (WalletServerError("unknown"), 500),
])
def test_status_codes(exc, status):
    assert error_status_code(exc) == status


def test_messages():
    assert NotFoundError("User", "42").message == "User with ID 42 not found"
    assert NotFoundError("Asset").message == "Asset not found"
    assert RestrictedSwapError("AMC", "ETH").message == "Swapping AMC to other currencies requires support approval"
    assert InsufficientBalanceError("BTC", "0", "1").message == "Insufficient balance"
    assert PriceUnavailableError("ETH").error_code == "PRICE_UNAVAILABLE"
    assert AuthenticationError().message == "Unauthorized"


def test_invalid_input_carries_field():
    exc = InvalidInputError("amount", "-1", "Must be greater than zero")
    assert exc.field == "amount"
    assert exc.error_code == "INVALID_INPUT"
    assert "-1" in exc.message

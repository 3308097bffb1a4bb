"""
Custom exception classes for the application
"""
from typing import Any, Optional


class WalletServerError(Exception):
    """Base exception for all application errors"""
    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class DatabaseError(WalletServerError):
    """Database-related errors"""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message, error_code="DB_ERROR")


class DatabaseConnectionError(DatabaseError):
    """Database connection errors"""
    def __init__(self, message: str = "Failed to connect to database", original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.error_code = "DB_CONNECTION_ERROR"


class DatabaseQueryError(DatabaseError):
    """Database query execution errors"""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.error_code = "DB_QUERY_ERROR"


class ValidationError(WalletServerError):
    """Input validation errors"""
    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, error_code="VALIDATION_ERROR")


class InvalidInputError(ValidationError):
    """Invalid input parameter errors"""
    def __init__(self, field: str, value: Any, reason: str):
        message = f"Invalid value for '{field}': {value}. {reason}"
        super().__init__(message, field)
        self.error_code = "INVALID_INPUT"


class NotFoundError(WalletServerError):
    """Resource not found errors"""
    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        self.resource_type = resource_type
        if resource_id:
            message = f"{resource_type} with ID {resource_id} not found"
        else:
            message = f"{resource_type} not found"
        super().__init__(message, error_code="NOT_FOUND")


class AuthenticationError(WalletServerError):
    """Missing or invalid admin session"""
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, error_code="UNAUTHORIZED")


class PolicyViolationError(WalletServerError):
    """Request is well-formed but refused by a ledger rule"""
    def __init__(self, message: str, error_code: str = "POLICY_VIOLATION"):
        super().__init__(message, error_code=error_code)


class RestrictedSwapError(PolicyViolationError):
    """The synthetic token cannot be swapped back out"""
    def __init__(self, from_symbol: str, to_symbol: str):
        self.from_symbol = from_symbol
        self.to_symbol = to_symbol
        super().__init__(
            f"Swapping {from_symbol} to other currencies requires support approval",
            error_code="SWAP_RESTRICTED"
        )


class InsufficientBalanceError(PolicyViolationError):
    """Debit larger than the available balance"""
    def __init__(self, symbol: str, available: Any, requested: Any):
        self.symbol = symbol
        self.available = available
        self.requested = requested
        super().__init__("Insufficient balance", error_code="INSUFFICIENT_BALANCE")


class PriceUnavailableError(WalletServerError):
    """No usable price for a symbol"""
    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Invalid currency: no price available for {symbol}", error_code="PRICE_UNAVAILABLE")


class QuoteFetchError(WalletServerError):
    """External quote source failed"""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message, error_code="QUOTE_FETCH_ERROR")


class ConcurrentUpdateError(WalletServerError):
    """Balance row kept changing underneath a compare-and-swap update"""
    def __init__(self, user_id: str, symbol: str, attempts: int):
        self.user_id = user_id
        self.symbol = symbol
        self.attempts = attempts
        super().__init__(
            f"Balance for {symbol} changed concurrently, gave up after {attempts} attempts",
            error_code="CONCURRENT_UPDATE"
        )

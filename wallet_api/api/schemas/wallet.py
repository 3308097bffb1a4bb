"""
Request schemas and response serializers for wallet endpoints
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Dict, Any, Union, Literal
from wallet_api.database.models import Transaction, TokenConfig
from wallet_api.utils.amounts import parse_decimal, format_decimal

# Amounts arrive as JSON numbers or numeric strings
Amount = Union[str, float]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LoginRequest(CamelModel):
    password: str


class ImportWalletRequest(CamelModel):
    seed_phrase: str = Field(..., alias="seedPhrase")


class FundRequest(CamelModel):
    """Admin funding of a user's balance"""
    user_id: str = Field(..., alias="userId")
    currency: str
    amount: Amount


class SwapRequest(CamelModel):
    user_id: str = Field(..., alias="userId")
    from_currency: str = Field(..., alias="fromCurrency")
    to_currency: str = Field(..., alias="toCurrency")
    amount: Amount


class TransactionCreate(CamelModel):
    """Admin-entered transaction; swaps go through /api/swap"""
    type: Literal["send", "receive", "buy"]
    amount: Amount
    currency: str
    user_id: Optional[str] = Field(None, alias="userId")
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")


class AppSettingsUpdate(CamelModel):
    auto_swap_enabled: Optional[bool] = Field(None, alias="autoSwapEnabled")


class TokenConfigUpdate(CamelModel):
    """Partial update of the synthetic token's price configuration"""
    display_name: Optional[str] = Field(None, alias="displayName", min_length=1)
    current_price: Optional[Amount] = Field(None, alias="currentPrice")
    base_price: Optional[Amount] = Field(None, alias="basePrice")
    auto_mode: Optional[Literal["none", "increase", "decrease", "cycle"]] = Field(None, alias="autoMode")
    change_rate: Optional[Amount] = Field(None, alias="changeRate")
    change_interval_minutes: Optional[int] = Field(None, alias="changeIntervalMinutes", ge=1)
    cycle_direction: Optional[Literal["increase", "decrease"]] = Field(None, alias="cycleDirection")
    cycle_increase_count: Optional[int] = Field(None, alias="cycleIncreaseCount", ge=1)
    cycle_current_count: Optional[int] = Field(None, alias="cycleCurrentCount", ge=0)

    @field_validator("current_price", "base_price")
    @classmethod
    def _positive_price(cls, value):
        if value is None:
            return value
        parsed = parse_decimal(value)
        if parsed is None or parsed <= 0:
            raise ValueError("must be a positive number")
        return format_decimal(parsed)

    @field_validator("change_rate")
    @classmethod
    def _non_negative_rate(cls, value):
        if value is None:
            return value
        parsed = parse_decimal(value)
        if parsed is None or parsed < 0:
            raise ValueError("must be a non-negative number")
        return format_decimal(parsed)

    def to_column_updates(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent, keyed by column name"""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class UserCreate(CamelModel):
    name: str
    email: str
    seed_phrase: str = Field(..., alias="seedPhrase")
    wallet_address: Optional[str] = Field(None, alias="walletAddress")
    btc_address: Optional[str] = Field(None, alias="btcAddress")
    initial_balances: Optional[Dict[str, Optional[Amount]]] = Field(None, alias="initialBalances")


class UserUpdate(CamelModel):
    name: Optional[str] = None
    wallet_address: Optional[str] = Field(None, alias="walletAddress")
    btc_address: Optional[str] = Field(None, alias="btcAddress")


class PriceAlertCreate(CamelModel):
    user_id: str = Field(..., alias="userId")
    symbol: str
    target_price: Amount = Field(..., alias="targetPrice")
    condition: Literal["above", "below"]


class SendNotificationRequest(CamelModel):
    user_id: str = Field(..., alias="userId")
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)


def transaction_to_dict(tx: Transaction) -> Dict[str, Any]:
    return {
        "id": tx.id,
        "userId": tx.user_id,
        "type": tx.type,
        "amount": tx.amount,
        "currency": tx.currency,
        "status": tx.status,
        "date": tx.date.isoformat() if tx.date else None,
        "from": tx.from_address,
        "to": tx.to_address,
        "hash": tx.hash,
    }


def token_config_to_dict(config: TokenConfig) -> Dict[str, Any]:
    return {
        "symbol": config.symbol,
        "displayName": config.display_name,
        "currentPrice": config.current_price,
        "basePrice": config.base_price,
        "lastUpdatedAt": config.last_updated_at.isoformat() if config.last_updated_at else None,
        "autoMode": config.auto_mode,
        "changeRate": config.change_rate,
        "changeIntervalMinutes": config.change_interval_minutes,
        "cycleDirection": config.cycle_direction,
        "cycleIncreaseCount": config.cycle_increase_count,
        "cycleCurrentCount": config.cycle_current_count,
    }

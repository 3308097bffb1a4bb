"""
Price engine: synthetic drift for the admin-controlled token and
pass-through of cached market quotes for the tracked ones
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Any
from sqlalchemy.orm import Session
from wallet_api.config.settings import settings
from wallet_api.database import queries
from wallet_api.observability.logging import get_logger
from wallet_api.observability.metrics import get_metrics_collector
from wallet_api.utils.amounts import parse_decimal, parse_price, format_price
from wallet_api.utils.exceptions import PolicyViolationError

logger = get_logger(__name__)

DRIFT_MODES = ("increase", "decrease", "cycle")

DEFAULT_CYCLE_INCREASE_COUNT = 3
# Last resort when neither the current nor the base price of the synthetic token is usable
SYNTHETIC_FALLBACK_PRICE = 1.85


@dataclass
class DriftResult:
    """Outcome of one drift computation"""
    applied: bool
    intervals: int = 0
    price: Optional[float] = None
    cycle_current_count: Optional[int] = None
    cycle_direction: Optional[str] = None
    skipped_reason: Optional[str] = None


@dataclass
class TokenPrice:
    price: float
    name: str
    change24h: float

    def to_dict(self) -> Dict[str, Any]:
        return {"price": self.price, "name": self.name, "change24h": self.change24h}


def compute_drift(config, now: datetime, min_interval_minutes: int = 1) -> DriftResult:
    """
    Apply every whole interval elapsed since config.last_updated_at.

    `config` is anything carrying the token config columns (a TokenConfig row
    in practice). Nothing is persisted here.

    Returns:
        DriftResult with applied=False and no reason when there is nothing to
        do, or with a skipped_reason when the config cannot produce a valid price
    """
    mode = config.auto_mode or "none"
    if mode not in DRIFT_MODES:
        if mode != "none":
            return DriftResult(applied=False, skipped_reason=f"Unknown auto mode {mode!r}")
        return DriftResult(applied=False)

    if config.last_updated_at is None:
        return DriftResult(applied=False)

    interval = max(config.change_interval_minutes or 0, min_interval_minutes, 1)
    minutes_elapsed = (now - config.last_updated_at).total_seconds() / 60
    intervals = math.floor(minutes_elapsed / interval)
    if intervals < 1:
        return DriftResult(applied=False)

    rate_value = parse_decimal(config.change_rate)
    if rate_value is None or rate_value <= 0:
        return DriftResult(
            applied=False,
            intervals=intervals,
            skipped_reason=f"Invalid change rate {config.change_rate!r}"
        )
    rate = float(rate_value) / 100

    price = parse_price(config.current_price)
    if price is None:
        price = parse_price(config.base_price)
        if price is None:
            return DriftResult(
                applied=False,
                intervals=intervals,
                skipped_reason="No valid current or base price"
            )
        logger.warning(
            "Invalid current price, drifting from base price",
            extra={"symbol": config.symbol, "current_price": config.current_price}
        )

    increase_count = config.cycle_increase_count or DEFAULT_CYCLE_INCREASE_COUNT
    count = config.cycle_current_count or 0
    direction = config.cycle_direction or "increase"

    for _ in range(intervals):
        if mode == "increase":
            price *= (1 + rate)
        elif mode == "decrease":
            price *= (1 - rate)
        elif count < increase_count:
            price *= (1 + rate)
            count += 1
            direction = "increase"
        else:
            price *= (1 - rate)
            count = 0
            # back to the increase phase
            direction = "increase"

    # the stored form is rounded to 8 places and must stay positive
    if not math.isfinite(price) or parse_price(format_price(price)) is None:
        return DriftResult(
            applied=False,
            intervals=intervals,
            skipped_reason=f"Computed price {price!r} is not a positive number at stored precision"
        )

    return DriftResult(
        applied=True,
        intervals=intervals,
        price=price,
        cycle_current_count=count,
        cycle_direction=direction
    )


class PriceEngine:
    """Derives display prices for every tracked symbol"""

    def __init__(
        self,
        quote_cache,
        clock,
        synthetic_symbol: Optional[str] = None,
        min_interval_minutes: Optional[int] = None
    ):
        self.quote_cache = quote_cache
        self.clock = clock
        self.synthetic_symbol = synthetic_symbol or settings.SYNTHETIC_SYMBOL
        self.min_interval_minutes = (
            min_interval_minutes if min_interval_minutes is not None
            else settings.MIN_CHANGE_INTERVAL_MINUTES
        )
        self.metrics = get_metrics_collector()

    def apply_drift(self, db: Session, now: Optional[datetime] = None) -> DriftResult:
        """Recompute and persist the synthetic price if an interval has elapsed"""
        now = now or self.clock.now()
        config = queries.get_token_config(db, self.synthetic_symbol)
        if config is None:
            return DriftResult(applied=False, skipped_reason="No token config")

        result = compute_drift(config, now, self.min_interval_minutes)

        if result.applied:
            queries.update_token_config(db, self.synthetic_symbol, {
                "current_price": format_price(result.price),
                "last_updated_at": now,
                "cycle_current_count": result.cycle_current_count,
                "cycle_direction": result.cycle_direction,
            })
            logger.info(
                "Updated synthetic price",
                extra={
                    "symbol": self.synthetic_symbol,
                    "price": format_price(result.price),
                    "mode": config.auto_mode,
                    "intervals": result.intervals
                }
            )
            self.metrics.record_drift_update(self.synthetic_symbol, result.intervals, True)
        elif result.skipped_reason:
            logger.warning(
                "Skipped synthetic price update",
                extra={
                    "symbol": self.synthetic_symbol,
                    "reason": result.skipped_reason,
                    "mode": config.auto_mode
                }
            )
            self.metrics.record_drift_update(self.synthetic_symbol, result.intervals, False)

        return result

    def update_config(self, db: Session, symbol: str, updates: Dict[str, Any]):
        """
        Apply an admin update to the synthetic token's config.

        Drift restarts from the update time.

        Raises:
            PolicyViolationError: symbol is not the synthetic token
            NotFoundError: No config row for the symbol
        """
        if symbol != self.synthetic_symbol:
            raise PolicyViolationError(
                f"Only {self.synthetic_symbol} price settings can be changed",
                error_code="SYMBOL_NOT_CONFIGURABLE"
            )
        updates = dict(updates, last_updated_at=self.clock.now())
        config = queries.update_token_config(db, symbol, updates)
        logger.info(
            "Token config updated",
            extra={"symbol": symbol, "fields": sorted(k for k in updates if k != "last_updated_at")}
        )
        return config

    def _synthetic_price(self, db: Session, config) -> TokenPrice:
        base = parse_price(config.base_price) or SYNTHETIC_FALLBACK_PRICE
        current = parse_price(config.current_price)
        if current is None:
            logger.warning(
                "Invalid current price, repairing from base price",
                extra={"symbol": config.symbol, "current_price": config.current_price}
            )
            current = base
            queries.update_token_config(db, config.symbol, {
                "current_price": format_price(current),
                "last_updated_at": self.clock.now(),
            })

        change = (current - base) / base * 100
        return TokenPrice(price=current, name=config.display_name, change24h=round(change, 2))

    async def get_prices(self, db: Session) -> Dict[str, TokenPrice]:
        """
        Current price of every tracked symbol.

        Market symbols without a usable quote are left out.
        """
        self.apply_drift(db)
        configs = queries.get_all_token_configs(db)
        quotes = await self.quote_cache.get_quotes()

        prices: Dict[str, TokenPrice] = {}
        for config in configs:
            if config.symbol == self.synthetic_symbol:
                prices[config.symbol] = self._synthetic_price(db, config)
                continue

            quote = quotes.get(config.symbol)
            if quote is None:
                continue

            prices[config.symbol] = TokenPrice(
                price=quote.price,
                name=config.display_name,
                change24h=round(quote.change24h, 2)
            )
            if parse_price(config.current_price) != quote.price:
                queries.update_token_config(db, config.symbol, {
                    "current_price": format_price(quote.price),
                    "base_price": format_price(quote.price),
                    "last_updated_at": self.clock.now(),
                })

        return prices

    async def get_price_map(self, db: Session) -> Dict[str, float]:
        """Symbol -> price, for ledger arithmetic"""
        prices = await self.get_prices(db)
        return {symbol: price.price for symbol, price in prices.items()}

"""
Ledger: funding, swaps, sends and admin-entered transactions

Every operation commits its balance changes and its transaction row together,
or rolls all of them back. Balance rows are written with a compare-and-swap
UPDATE so a concurrent writer is detected instead of overwritten.
"""
import time
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from wallet_api.config.settings import settings
from wallet_api.database import queries
from wallet_api.database.models import Transaction
from wallet_api.observability.logging import get_logger, ledger_context
from wallet_api.observability.metrics import get_metrics_collector
from wallet_api.services.market_quotes import MARKET_SYMBOLS
from wallet_api.utils.amounts import parse_decimal, parse_positive_amount, format_decimal, price_to_decimal
from wallet_api.utils.identifiers import generate_wallet_address
from wallet_api.utils.exceptions import (
    ConcurrentUpdateError,
    InsufficientBalanceError,
    NotFoundError,
    PriceUnavailableError,
    RestrictedSwapError,
    ValidationError
)

logger = get_logger(__name__)

TRANSACTION_TYPES = ("send", "receive", "buy", "swap")


@dataclass
class FundingResult:
    transaction: Transaction
    swapped: bool
    original_currency: str
    original_amount: Decimal
    final_currency: str
    final_amount: Decimal


@dataclass
class SwapResult:
    transaction: Transaction
    received: Decimal


class LedgerService:
    """Moves value between balances and records one transaction per movement"""

    def __init__(
        self,
        price_engine,
        notifier=None,
        synthetic_symbol: Optional[str] = None,
        market_symbols: Optional[List[str]] = None,
        max_retries: Optional[int] = None
    ):
        self.price_engine = price_engine
        self.notifier = notifier
        self.synthetic_symbol = synthetic_symbol or settings.SYNTHETIC_SYMBOL
        self.market_symbols = list(market_symbols or MARKET_SYMBOLS.keys())
        self.max_retries = max_retries or settings.BALANCE_UPDATE_RETRIES
        self.metrics = get_metrics_collector()

    @property
    def symbols(self) -> List[str]:
        return [self.synthetic_symbol] + self.market_symbols

    def _check_symbol(self, symbol: str, field: str = "currency") -> str:
        if symbol not in self.symbols:
            raise ValidationError(f"Unsupported currency: {symbol}", field)
        return symbol

    @contextmanager
    def _unit_of_work(self, db: Session, operation: str, user_id: Optional[str] = None):
        started = time.time()
        with ledger_context(operation, user_id):
            try:
                yield
                db.commit()
            except Exception:
                db.rollback()
                logger.warning("Ledger operation rolled back")
                self.metrics.record_ledger_operation(operation, (time.time() - started) * 1000, False)
                raise
        self.metrics.record_ledger_operation(operation, (time.time() - started) * 1000, True)

    def _adjust_balance(
        self,
        db: Session,
        user_id: str,
        symbol: str,
        delta: Decimal,
        create_missing: bool = False
    ) -> Decimal:
        """
        Add delta (negative to debit) to one balance row.

        Raises:
            NotFoundError: No balance row and create_missing is False
            InsufficientBalanceError: The result would be negative
            ConcurrentUpdateError: The row kept changing for max_retries attempts
        """
        for attempt in range(1, self.max_retries + 1):
            asset = queries.get_user_asset(db, user_id, symbol)
            if asset is None:
                if not create_missing:
                    raise NotFoundError("Asset", f"{user_id}/{symbol}")
                asset = queries.initialize_user_assets(db, user_id, [symbol], commit=False)[0]

            current = parse_decimal(asset.balance)
            if current is None:
                logger.warning(
                    "Unreadable balance treated as zero",
                    extra={"user_id": user_id, "symbol": symbol, "balance": asset.balance}
                )
                current = Decimal(0)

            updated = current + delta
            if updated < 0:
                raise InsufficientBalanceError(symbol, format_decimal(current), format_decimal(-delta))

            if queries.compare_and_set_balance(db, asset.id, asset.balance, format_decimal(updated)):
                return updated

            logger.warning(
                "Balance changed during update, retrying",
                extra={"user_id": user_id, "symbol": symbol, "attempt": attempt}
            )

        raise ConcurrentUpdateError(user_id, symbol, self.max_retries)

    def _notify(self, user_id: str, tx_type: str, amount: Decimal, currency: str) -> None:
        if self.notifier is None:
            return
        self.notifier.dispatch(
            self.notifier.notify_transaction(user_id, tx_type, format_decimal(amount), currency)
        )

    @staticmethod
    def _usable_price(prices: Dict[str, float], symbol: str) -> Optional[Decimal]:
        price = prices.get(symbol)
        if not price or price <= 0:
            return None
        return price_to_decimal(price)

    async def fund(self, db: Session, user_id: str, symbol: str, amount: Any) -> FundingResult:
        """
        Credit a user from outside the system.

        With auto-swap enabled, market symbols are converted to the synthetic
        token at current prices; the single swap transaction records the
        funded (source) amount and currency. If either price is missing the
        funding falls back to a direct credit.
        """
        value = parse_positive_amount(amount)
        self._check_symbol(symbol)

        user = queries.get_user(db, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        final_symbol = symbol
        final_amount = value
        swapped = False

        if queries.get_app_settings(db).auto_swap_enabled and symbol in self.market_symbols:
            prices = await self.price_engine.get_price_map(db)
            source_price = self._usable_price(prices, symbol)
            synthetic_price = self._usable_price(prices, self.synthetic_symbol)
            if source_price is not None and synthetic_price is not None:
                final_amount = value * source_price / synthetic_price
                final_symbol = self.synthetic_symbol
                swapped = True
                logger.info(
                    "Auto-swapped funding",
                    extra={
                        "user_id": user_id,
                        "source_currency": symbol,
                        "source_amount": format_decimal(value),
                        "usd_value": format_decimal(value * source_price),
                        "final_amount": format_decimal(final_amount),
                        "synthetic_price": format_decimal(synthetic_price)
                    }
                )
            else:
                logger.warning(
                    "Auto-swap skipped, price unavailable",
                    extra={
                        "user_id": user_id,
                        "source_currency": symbol,
                        "source_price": prices.get(symbol),
                        "synthetic_price": prices.get(self.synthetic_symbol)
                    }
                )

        with self._unit_of_work(db, "fund", user_id):
            self._adjust_balance(db, user_id, final_symbol, final_amount, create_missing=True)
            tx = queries.create_transaction(
                db,
                type="swap" if swapped else "receive",
                amount=format_decimal(value),
                currency=symbol,
                user_id=user_id,
                from_address=generate_wallet_address(),
                to_address=user.wallet_address,
                commit=False
            )

        self._notify(user_id, tx.type, final_amount, final_symbol)
        return FundingResult(
            transaction=tx,
            swapped=swapped,
            original_currency=symbol,
            original_amount=value,
            final_currency=final_symbol,
            final_amount=final_amount
        )

    async def swap(
        self,
        db: Session,
        user_id: str,
        from_symbol: str,
        to_symbol: str,
        amount: Any
    ) -> SwapResult:
        """
        Exchange between two of a user's balances at current prices.

        Raises:
            ValidationError: Bad amount, or the same symbol on both sides
            RestrictedSwapError: Swapping the synthetic token out
            NotFoundError: Either balance row is missing
            InsufficientBalanceError: Not enough of the source symbol
            PriceUnavailableError: No usable price for either side
        """
        # the synthetic token never leaves, whatever the amount
        if from_symbol == self.synthetic_symbol and to_symbol != self.synthetic_symbol:
            raise RestrictedSwapError(from_symbol, to_symbol)
        value = parse_positive_amount(amount)
        if from_symbol == to_symbol:
            raise ValidationError("Cannot swap a currency to itself", "toCurrency")

        prices = await self.price_engine.get_price_map(db)

        with self._unit_of_work(db, "swap", user_id):
            from_asset = queries.get_user_asset(db, user_id, from_symbol)
            to_asset = queries.get_user_asset(db, user_id, to_symbol)
            if from_asset is None or to_asset is None:
                raise NotFoundError("Asset")

            available = parse_decimal(from_asset.balance) or Decimal(0)
            if available < value:
                raise InsufficientBalanceError(from_symbol, format_decimal(available), format_decimal(value))

            from_price = self._usable_price(prices, from_symbol)
            if from_price is None:
                raise PriceUnavailableError(from_symbol)
            to_price = self._usable_price(prices, to_symbol)
            if to_price is None:
                raise PriceUnavailableError(to_symbol)

            received = value * from_price / to_price

            self._adjust_balance(db, user_id, from_symbol, -value)
            self._adjust_balance(db, user_id, to_symbol, received)
            tx = queries.create_transaction(
                db,
                type="swap",
                amount=format_decimal(value),
                currency=from_symbol,
                user_id=user_id,
                from_address=from_symbol,
                to_address=to_symbol,
                commit=False
            )

        logger.info(
            "Swap completed",
            extra={
                "user_id": user_id,
                "from": from_symbol,
                "to": to_symbol,
                "amount": format_decimal(value),
                "received": format_decimal(received)
            }
        )
        return SwapResult(transaction=tx, received=received)

    async def send(
        self,
        db: Session,
        user_id: str,
        symbol: str,
        amount: Any,
        to_address: Optional[str] = None,
        from_address: Optional[str] = None
    ) -> Transaction:
        """
        Debit a user's balance and record a send to an outside address.

        The sender defaults to the user's wallet address, the recipient to a
        freshly generated one.
        """
        value = parse_positive_amount(amount)
        self._check_symbol(symbol)

        user = queries.get_user(db, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        with self._unit_of_work(db, "send", user_id):
            self._adjust_balance(db, user_id, symbol, -value)
            tx = queries.create_transaction(
                db,
                type="send",
                amount=format_decimal(value),
                currency=symbol,
                user_id=user_id,
                from_address=from_address or user.wallet_address,
                to_address=to_address or generate_wallet_address(),
                commit=False
            )

        self._notify(user_id, "send", value, symbol)
        return tx

    async def record_transaction(
        self,
        db: Session,
        tx_type: str,
        amount: Any,
        currency: str,
        user_id: Optional[str] = None,
        from_address: Optional[str] = None,
        to_address: Optional[str] = None
    ) -> Transaction:
        """
        Admin-entered send / receive / buy.

        With a user_id the user's balance moves with the transaction: receive
        and buy credit it, send goes through send(). Without one the row is
        only recorded.
        """
        if tx_type == "swap":
            raise ValidationError("Swaps must go through the swap operation", "type")
        if tx_type not in TRANSACTION_TYPES:
            raise ValidationError(f"Invalid transaction type: {tx_type}", "type")
        value = parse_positive_amount(amount)
        self._check_symbol(currency)

        if tx_type == "send" and user_id is not None:
            return await self.send(db, user_id, currency, value, to_address=to_address, from_address=from_address)

        if user_id is not None and queries.get_user(db, user_id) is None:
            raise NotFoundError("User", user_id)

        with self._unit_of_work(db, f"manual_{tx_type}", user_id):
            if user_id is not None:
                self._adjust_balance(db, user_id, currency, value, create_missing=True)
            tx = queries.create_transaction(
                db,
                type=tx_type,
                amount=format_decimal(value),
                currency=currency,
                user_id=user_id,
                from_address=from_address,
                to_address=to_address,
                commit=False
            )

        if user_id is not None:
            self._notify(user_id, tx_type, value, currency)
        return tx

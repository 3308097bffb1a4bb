"""
Market quotes for the externally tracked symbols (BTC, ETH)

CoinGeckoQuoteSource talks to the CoinGecko REST API; MarketQuoteCache keeps
the last good quote per symbol and decides when to refetch.
"""
import asyncio
import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Callable
import httpx
from wallet_api.config.settings import settings
from wallet_api.observability.logging import get_logger
from wallet_api.observability.metrics import get_metrics_collector
from wallet_api.utils.exceptions import QuoteFetchError

logger = get_logger(__name__)

# Wallet symbol -> CoinGecko coin id
MARKET_SYMBOLS: Dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
}

MARKET_NAMES: Dict[str, str] = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
}


@dataclass
class MarketQuote:
    """One quote as served to the price engine"""
    symbol: str
    price: float
    change24h: float
    fetched_at: datetime


class CoinGeckoQuoteSource:
    """Fetches USD prices and 24h change from CoinGecko /simple/price"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        symbols: Optional[Dict[str, str]] = None
    ):
        self.base_url = (base_url or settings.COINGECKO_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.COINGECKO_API_KEY
        self.symbols = symbols or MARKET_SYMBOLS

        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-cg-demo-api-key"] = self.api_key

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout or settings.QUOTE_TIMEOUT_SECONDS
        )

    async def fetch(self) -> Dict[str, Dict[str, float]]:
        """
        Fetch quotes for every configured symbol.

        Returns:
            {symbol: {"price": float, "change24h": float}} for each symbol the
            response carried a usable price for

        Raises:
            QuoteFetchError: On transport errors, non-2xx answers or malformed bodies
        """
        params = {
            "ids": ",".join(self.symbols.values()),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }
        started = time.time()
        try:
            response = await self._client.get("/simple/price", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            self._record(started, False)
            raise QuoteFetchError(f"Quote source answered {e.response.status_code}", e) from e
        except (httpx.HTTPError, ValueError) as e:
            self._record(started, False)
            raise QuoteFetchError(f"Quote fetch failed: {str(e)}", e) from e

        if not isinstance(data, dict):
            self._record(started, False)
            raise QuoteFetchError("Quote source returned an unexpected body")

        quotes: Dict[str, Dict[str, float]] = {}
        for symbol, coin_id in self.symbols.items():
            row = data.get(coin_id)
            if not isinstance(row, dict):
                continue
            price = _as_float(row.get("usd"))
            if price is None or price <= 0:
                continue
            change = _as_float(row.get("usd_24h_change"))
            quotes[symbol] = {
                "price": price,
                "change24h": round(change, 2) if change is not None else 0.0,
            }

        self._record(started, True)
        return quotes

    def _record(self, started: float, success: bool) -> None:
        get_metrics_collector().record_quote_fetch(
            source="coingecko",
            duration_ms=(time.time() - started) * 1000,
            success=success
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _as_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


class MarketQuoteCache:
    """
    Last good quote per symbol.

    get_quotes() never raises: a failed fetch degrades to cached entries that
    are younger than cache_seconds * stale_factor, and older ones are omitted.
    """

    def __init__(
        self,
        source,
        clock,
        cache_seconds: Optional[int] = None,
        stale_factor: Optional[int] = None,
        symbols: Optional[Dict[str, str]] = None
    ):
        self.source = source
        self.clock = clock
        self.cache_seconds = cache_seconds if cache_seconds is not None else settings.QUOTE_CACHE_SECONDS
        self.stale_factor = stale_factor if stale_factor is not None else settings.QUOTE_STALE_FACTOR
        self.symbols = list((symbols or MARKET_SYMBOLS).keys())
        self._quotes: Dict[str, MarketQuote] = {}
        self._lock = asyncio.Lock()

    def _age_seconds(self, quote: MarketQuote, now: datetime) -> float:
        return (now - quote.fetched_at).total_seconds()

    def _select(self, max_age: float, now: datetime) -> Dict[str, MarketQuote]:
        return {
            symbol: quote
            for symbol, quote in self._quotes.items()
            if self._age_seconds(quote, now) < max_age
        }

    def _is_fresh(self, now: datetime) -> bool:
        fresh = self._select(self.cache_seconds, now)
        return all(symbol in fresh for symbol in self.symbols)

    async def get_quotes(self) -> Dict[str, MarketQuote]:
        """Cached quotes when fresh, otherwise refetch"""
        if self._is_fresh(self.clock.now()):
            return self._select(self.cache_seconds, self.clock.now())
        return await self.refresh()

    async def refresh(self) -> Dict[str, MarketQuote]:
        """Fetch now; on failure fall back to stale-but-tolerable cached quotes"""
        async with self._lock:
            now = self.clock.now()
            # Another caller may have refreshed while we waited on the lock
            if self._is_fresh(now):
                return self._select(self.cache_seconds, now)

            try:
                fetched = await self.source.fetch()
            except QuoteFetchError as e:
                logger.warning(
                    "Market quote fetch failed, serving cached quotes",
                    extra={"error": str(e), "cached_symbols": sorted(self._quotes)}
                )
                return self._select(self.cache_seconds * self.stale_factor, now)

            for symbol, values in fetched.items():
                self._quotes[symbol] = MarketQuote(
                    symbol=symbol,
                    price=values["price"],
                    change24h=values["change24h"],
                    fetched_at=now
                )

            missing = [symbol for symbol in self.symbols if symbol not in fetched]
            if missing:
                logger.warning("Quote source returned no price", extra={"symbols": missing})

            return self._select(self.cache_seconds * self.stale_factor, now)

    async def close(self) -> None:
        close: Optional[Callable] = getattr(self.source, "close", None)
        if close is not None:
            await close()

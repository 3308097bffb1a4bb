"""
Unit tests for the market quote source and cache
"""
import httpx
import pytest
from wallet_api.observability.metrics import get_metrics_collector
from wallet_api.services.market_quotes import CoinGeckoQuoteSource, MarketQuoteCache
from wallet_api.utils.exceptions import QuoteFetchError


def coingecko_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url="https://api.coingecko.test/api/v3",
        transport=httpx.MockTransport(handler)
    )


class TestCoinGeckoQuoteSource:
    """Tests for parsing /simple/price answers"""

    @pytest.mark.asyncio
    async def test_fetch_parses_prices_and_change(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={
                "bitcoin": {"usd": 97000.5, "usd_24h_change": 2.3456},
                "ethereum": {"usd": 3400, "usd_24h_change": -1.2},
            })

        source = CoinGeckoQuoteSource(client=coingecko_client(handler))
        quotes = await source.fetch()

        assert seen["path"].endswith("/simple/price")
        assert seen["params"]["ids"] == "bitcoin,ethereum"
        assert seen["params"]["vs_currencies"] == "usd"
        assert seen["params"]["include_24hr_change"] == "true"
        assert quotes["BTC"] == {"price": 97000.5, "change24h": 2.35}
        assert quotes["ETH"] == {"price": 3400.0, "change24h": -1.2}

    @pytest.mark.asyncio
    async def test_unusable_rows_are_skipped(self):
        def handler(request):
            return httpx.Response(200, json={
                "bitcoin": {"usd": 0},
                "ethereum": {"usd": 3400},
            })

        quotes = await CoinGeckoQuoteSource(client=coingecko_client(handler)).fetch()

        assert "BTC" not in quotes
        assert quotes["ETH"]["change24h"] == 0.0

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(500, json={"error": "boom"})

        with pytest.raises(QuoteFetchError):
            await CoinGeckoQuoteSource(client=coingecko_client(handler)).fetch()

        metrics = get_metrics_collector().get_metrics()
        assert metrics["quote_fetch_coingecko"]["count"] == 1
        assert metrics["quote_fetch_coingecko"]["errors"] == 1

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(QuoteFetchError):
            await CoinGeckoQuoteSource(client=coingecko_client(handler)).fetch()

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>rate limited</html>")

        with pytest.raises(QuoteFetchError):
            await CoinGeckoQuoteSource(client=coingecko_client(handler)).fetch()


class TestMarketQuoteCache:
    """Tests for freshness and stale fallback"""

    @pytest.mark.asyncio
    async def test_fresh_cache_is_not_refetched(self, quote_cache, quote_source, clock):
        await quote_cache.get_quotes()
        clock.advance(seconds=59)
        quotes = await quote_cache.get_quotes()

        assert quote_source.calls == 1
        assert quotes["BTC"].price == 50000.0

    @pytest.mark.asyncio
    async def test_expired_cache_is_refetched(self, quote_cache, quote_source, clock):
        await quote_cache.get_quotes()
        quote_source.prices["BTC"]["price"] = 51000.0
        clock.advance(seconds=61)

        quotes = await quote_cache.get_quotes()

        assert quote_source.calls == 2
        assert quotes["BTC"].price == 51000.0

    @pytest.mark.asyncio
    async def test_stale_quotes_served_when_fetch_fails(self, quote_cache, quote_source, clock):
        await quote_cache.get_quotes()
        quote_source.fail = True
        clock.advance(seconds=90)

        quotes = await quote_cache.get_quotes()

        assert quotes["BTC"].price == 50000.0
        assert quotes["ETH"].price == 2500.0

    @pytest.mark.asyncio
    async def test_too_old_quotes_are_dropped(self, quote_cache, quote_source, clock):
        await quote_cache.get_quotes()
        quote_source.fail = True
        clock.advance(seconds=121)

        quotes = await quote_cache.get_quotes()

        assert quotes == {}

        quote_source.fail = False
        assert (await quote_cache.get_quotes())["BTC"].fetched_at == clock.now()

    @pytest.mark.asyncio
    async def test_first_fetch_failure_returns_nothing(self, quote_cache, quote_source):
        quote_source.fail = True
        assert await quote_cache.get_quotes() == {}

    @pytest.mark.asyncio
    async def test_partial_answer_keeps_older_quote(self, quote_cache, quote_source, clock):
        await quote_cache.get_quotes()
        del quote_source.prices["ETH"]
        clock.advance(seconds=70)

        quotes = await quote_cache.get_quotes()

        assert quotes["ETH"].price == 2500.0
        assert quotes["ETH"].fetched_at < quotes["BTC"].fetched_at

    @pytest.mark.asyncio
    async def test_refresh_skips_fetch_while_fresh(self, quote_cache, quote_source):
        await quote_cache.refresh()
        await quote_cache.refresh()
        assert quote_source.calls == 1

    @pytest.mark.asyncio
    async def test_close_closes_source(self, clock):
        closed = []

        class ClosingSource:
            async def fetch(self):
                return {}

            async def close(self):
                closed.append(True)

        cache = MarketQuoteCache(ClosingSource(), clock, cache_seconds=60, stale_factor=2)
        await cache.close()

        assert closed == [True]

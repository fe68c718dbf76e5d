"""
tests/test_fetcher.py
──────────────────────
Tests for :class:`MarketDataFetcher` and the secondary-metric sources,
driven through ``httpx.MockTransport`` — no real network traffic.

Run with::

    cd backend
    pytest tests/test_fetcher.py -v
"""

import asyncio
from typing import Callable, Dict

import httpx
import pytest

from data_engine.errors import UpstreamError
from data_engine.fetcher import MarketDataFetcher
from data_engine.sources import (
    ExchangeApiMetricsSource,
    ScrapedQuotePageSource,
    SecondaryMetrics,
    parse_number,
)

PRICE_URL = "https://prices.test/v8/finance/chart"
METRICS_URL = "https://exchange.test/api/StockSearchapi"
SCRAPE_URL = "https://quotes.test/finance/quote"

_QUOTE_PAGE = """
<html><body>
  <div class="row"><span>Previous close</span><span>₹1,498.10</span></div>
  <div class="row">
    <span>P/E ratio</span>
    <span class="tip">The ratio of current share price to trailing twelve month EPS</span>
    <span>27.35</span>
  </div>
  <div class="row"><span>Earnings date</span><span>Jan 16, 2025</span></div>
</body></html>
"""


def _price_payload(price: float) -> Dict:
    return {"chart": {"result": [{"meta": {"regularMarketPrice": price}}], "error": None}}


def _router(
    price=lambda req: httpx.Response(200, json=_price_payload(1510.25)),
    metrics=lambda req: httpx.Response(200, json={"scripinfo": [{"PERatio": "24.80"}]}),
    scrape=lambda req: httpx.Response(200, text=_QUOTE_PAGE),
) -> Callable[[httpx.Request], httpx.Response]:
    """Dispatch mock requests to a handler per upstream host."""
    handlers = {"prices.test": price, "exchange.test": metrics, "quotes.test": scrape}

    def handle(request: httpx.Request):
        return handlers[request.url.host](request)

    return handle


def _fetcher(handler, *, price_timeout: float = 1.0, scrape_timeout: float = 1.0):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fetcher = MarketDataFetcher(
        client,
        price_url=PRICE_URL,
        price_timeout=price_timeout,
        exchange_suffix=".NS",
        secondary_sources=[
            ExchangeApiMetricsSource(METRICS_URL, timeout=1.0),
            ScrapedQuotePageSource(SCRAPE_URL, timeout=scrape_timeout, exchange="NSE"),
        ],
    )
    return client, fetcher


# ── Price path ────────────────────────────────────────────────────────────────


class TestFetchPrice:
    async def test_returns_market_price(self) -> None:
        seen = []

        def price(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_price_payload(1510.25))

        client, fetcher = _fetcher(_router(price=price))
        async with client:
            assert await fetcher.fetch_price("INFY") == 1510.25

        assert seen[0].url.path.endswith("/INFY.NS")
        assert seen[0].url.params["range"] == "1d"
        assert "Mozilla" in seen[0].headers["User-Agent"]

    async def test_non_success_status_is_upstream_error(self) -> None:
        client, fetcher = _fetcher(_router(price=lambda r: httpx.Response(404)))
        async with client:
            with pytest.raises(UpstreamError) as info:
                await fetcher.fetch_price("NOPE")
        assert info.value.status_code == 404
        assert info.value.source == "price"

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>not json</html>"),
            httpx.Response(200, json={"chart": {"result": None}}),
            httpx.Response(200, json={"chart": {"result": [{"meta": {}}]}}),
            httpx.Response(200, json={"unexpected": True}),
            httpx.Response(200, text='{"chart":{"result":[{"meta":{"regularMarketPrice":NaN}}]}}'),
            httpx.Response(200, text='{"chart":{"result":[{"meta":{"regularMarketPrice":Infinity}}]}}'),
            httpx.Response(200, json=_price_payload(0)),
        ],
    )
    async def test_malformed_payload_is_upstream_error(self, response) -> None:
        client, fetcher = _fetcher(_router(price=lambda r: response))
        async with client:
            with pytest.raises(UpstreamError):
                await fetcher.fetch_price("INFY")

    async def test_transport_error_is_upstream_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client, fetcher = _fetcher(_router(price=refuse))
        async with client:
            with pytest.raises(UpstreamError, match="request failed"):
                await fetcher.fetch_price("INFY")

    async def test_timeout_cancels_and_raises_upstream_error(self) -> None:
        async def slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=_price_payload(1.0))

        client, fetcher = _fetcher(_router(price=slow), price_timeout=0.05)
        async with client:
            with pytest.raises(UpstreamError, match="timed out"):
                await fetcher.fetch_price("INFY")


# ── Secondary metrics path ────────────────────────────────────────────────────


class TestSecondaryMetrics:
    async def test_primary_source_wins_when_it_has_pe(self) -> None:
        scraped = []

        def scrape(request: httpx.Request) -> httpx.Response:
            scraped.append(request)
            return httpx.Response(200, text=_QUOTE_PAGE)

        client, fetcher = _fetcher(_router(scrape=scrape))
        async with client:
            metrics = await fetcher.fetch_secondary_metrics("INFY")

        assert metrics == SecondaryMetrics(pe_ratio=24.8, latest_earnings=None)
        assert scraped == []

    async def test_falls_back_to_scrape_when_pe_missing(self) -> None:
        seen = []

        def scrape(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=_QUOTE_PAGE)

        client, fetcher = _fetcher(
            _router(
                metrics=lambda r: httpx.Response(200, json={"scripinfo": [{"PERatio": ""}]}),
                scrape=scrape,
            )
        )
        async with client:
            metrics = await fetcher.fetch_secondary_metrics("INFY")

        assert metrics == SecondaryMetrics(pe_ratio=27.35, latest_earnings="Jan 16, 2025")
        assert seen[0].url.path.endswith("/INFY:NSE")

    async def test_falls_back_when_primary_errors(self) -> None:
        client, fetcher = _fetcher(_router(metrics=lambda r: httpx.Response(500)))
        async with client:
            metrics = await fetcher.fetch_secondary_metrics("TCS")
        assert metrics.pe_ratio == 27.35

    async def test_absence_everywhere_is_null_not_error(self) -> None:
        client, fetcher = _fetcher(
            _router(
                metrics=lambda r: httpx.Response(200, json={"scripinfo": []}),
                scrape=lambda r: httpx.Response(200, text="<html><body>No data</body></html>"),
            )
        )
        async with client:
            metrics = await fetcher.fetch_secondary_metrics("XYZ")
        assert metrics == SecondaryMetrics()

    async def test_every_source_failing_raises(self) -> None:
        client, fetcher = _fetcher(
            _router(
                metrics=lambda r: httpx.Response(503),
                scrape=lambda r: httpx.Response(429),
            )
        )
        async with client:
            with pytest.raises(UpstreamError) as info:
                await fetcher.fetch_secondary_metrics("INFY")
        assert info.value.source == "quote_page"


# ── Combined attempt ──────────────────────────────────────────────────────────


class TestFetchQuote:
    async def test_full_quote(self) -> None:
        client, fetcher = _fetcher(_router())
        async with client:
            quote = await fetcher.fetch_quote("INFY")
        assert quote.symbol == "INFY"
        assert quote.price == 1510.25
        assert quote.pe_ratio == 24.8
        assert quote.error is None

    async def test_price_ok_secondary_failed_is_partial_success(self) -> None:
        client, fetcher = _fetcher(
            _router(
                metrics=lambda r: httpx.Response(503),
                scrape=lambda r: httpx.Response(503),
            )
        )
        async with client:
            quote = await fetcher.fetch_quote("INFY")
        assert quote.price == 1510.25
        assert quote.pe_ratio is None
        assert quote.latest_earnings is None
        assert quote.error is None

    async def test_price_failure_fails_attempt(self) -> None:
        client, fetcher = _fetcher(_router(price=lambda r: httpx.Response(500)))
        async with client:
            with pytest.raises(UpstreamError):
                await fetcher.fetch_quote("INFY")

    async def test_price_failure_does_not_wait_for_metrics(self) -> None:
        """A fast price failure ends the attempt while metrics still hang."""
        cancelled = []

        async def hang(request: httpx.Request) -> httpx.Response:
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(request.url.host)
                raise
            return httpx.Response(200, json={"scripinfo": []})

        client, fetcher = _fetcher(
            _router(price=lambda r: httpx.Response(404), metrics=hang, scrape=hang)
        )
        async with client:
            # Secondary deadlines total 2 s; the attempt must finish well inside that.
            with pytest.raises(UpstreamError) as info:
                await asyncio.wait_for(fetcher.fetch_quote("NOPE"), timeout=0.5)
            for _ in range(100):
                if cancelled:
                    break
                await asyncio.sleep(0)
        assert info.value.source == "price"
        assert cancelled == ["exchange.test"]

    async def test_price_and_metrics_run_concurrently(self) -> None:
        """Both requests are outstanding before either completes."""
        started = []
        release = asyncio.Event()

        async def price(request: httpx.Request) -> httpx.Response:
            started.append("price")
            await release.wait()
            return httpx.Response(200, json=_price_payload(10.0))

        async def metrics(request: httpx.Request) -> httpx.Response:
            started.append("metrics")
            await release.wait()
            return httpx.Response(200, json={"scripinfo": [{"PERatio": "12"}]})

        client, fetcher = _fetcher(_router(price=price, metrics=metrics))
        async with client:
            attempt = asyncio.create_task(fetcher.fetch_quote("INFY"))
            for _ in range(100):
                await asyncio.sleep(0)
                if len(started) == 2:
                    break
            assert sorted(started) == ["metrics", "price"]
            release.set()
            quote = await attempt
        assert quote.price == 10.0 and quote.pe_ratio == 12.0


# ── Scraped page parsing ──────────────────────────────────────────────────────


class TestQuotePageParsing:
    def test_extracts_metrics(self) -> None:
        metrics = ScrapedQuotePageSource.parse(_QUOTE_PAGE)
        assert metrics.pe_ratio == 27.35
        assert metrics.latest_earnings == "Jan 16, 2025"

    def test_thousands_separator(self) -> None:
        html = "<div>P/E ratio</div><div>1,204.5</div>"
        assert ScrapedQuotePageSource.parse(html).pe_ratio == 1204.5

    def test_garbage_yields_nulls(self) -> None:
        assert ScrapedQuotePageSource.parse("<<<>>> P/E ratio -- n/a") == SecondaryMetrics()


@pytest.mark.parametrize(
    "raw, expected",
    [("1,234.5", 1234.5), (24.1, 24.1), ("n/a", None), ("NaN", None), (float("inf"), None), (None, None)],
)
def test_parse_number(raw, expected) -> None:
    assert parse_number(raw) == expected

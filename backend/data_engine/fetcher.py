"""
data_engine/fetcher.py
───────────────────────
Network access for live quotes — the ONLY place in the codebase that talks
to the price and secondary-metrics providers.

One :meth:`MarketDataFetcher.fetch_quote` call is one attempt for one
symbol: the price request and the secondary-metrics lookup run
concurrently, each under its own deadline.  Retries, caching and in-flight
sharing belong to :class:`~data_engine.coordinator.StockDataCoordinator`.

Failure policy
--------------
- Price failure (timeout, transport, non-2xx, malformed payload) fails the
  attempt with :class:`UpstreamError` so the coordinator retries it.  The
  in-progress metrics lookup is cancelled rather than waited for.
- Secondary-metrics failure is logged and yields null P/E and earnings; the
  quote is still a success.
"""

import asyncio
import logging
import math
from typing import List, Optional, Sequence

import httpx

from data_engine.errors import UpstreamError
from data_engine.sources import (
    SecondaryMetrics,
    SecondaryMetricsSource,
    get_with_deadline,
    parse_number,
)
from schemas.stock_data import StockQuote

logger = logging.getLogger(__name__)


class MarketDataFetcher:
    """
    Fetch price and secondary metrics for a single ticker.

    Args:
        client:            Shared ``httpx.AsyncClient`` (owned by the caller).
        price_url:         Chart endpoint base, symbol is appended.
        price_timeout:     Deadline in seconds for one price request.
        secondary_sources: Metric sources in priority order.
        exchange_suffix:   Appended to the symbol for the price source,
                           e.g. ``".NS"`` for NSE listings.

    Example:
        >>> async with httpx.AsyncClient() as client:
        ...     fetcher = MarketDataFetcher(client, price_url=URL, price_timeout=10)
        ...     quote = await fetcher.fetch_quote("INFY")
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        price_url: str,
        price_timeout: float,
        secondary_sources: Sequence[SecondaryMetricsSource] = (),
        exchange_suffix: str = "",
    ) -> None:
        self._client = client
        self._price_url = price_url.rstrip("/")
        self._price_timeout = price_timeout
        self._secondary_sources: List[SecondaryMetricsSource] = list(secondary_sources)
        self._exchange_suffix = exchange_suffix

    # ── public API ────────────────────────────────────────────────────────

    async def fetch_quote(self, symbol: str) -> StockQuote:
        """
        Run one fetch attempt for ``symbol``.

        Returns:
            A quote with a price; P/E and earnings may be null.

        Raises:
            UpstreamError: If the price could not be obtained.
        """
        price_task = asyncio.ensure_future(self.fetch_price(symbol))
        metrics_task = asyncio.ensure_future(self.fetch_secondary_metrics(symbol))

        # A failed price fails the attempt at once; the metrics are abandoned.
        try:
            price = await price_task
        except BaseException:
            metrics_task.cancel()
            raise

        try:
            metrics = await metrics_task
        except UpstreamError as exc:
            logger.warning("Secondary metrics unavailable for %s: %s", symbol, exc)
            metrics = SecondaryMetrics()

        return StockQuote(
            symbol=symbol,
            price=price,
            pe_ratio=metrics.pe_ratio,
            latest_earnings=metrics.latest_earnings,
        )

    async def fetch_price(self, symbol: str) -> float:
        """
        Return the regular-market price for ``symbol``.

        Raises:
            UpstreamError: On timeout, transport error, non-2xx status or a
                           payload without a usable price.
        """
        url = f"{self._price_url}/{symbol}{self._exchange_suffix}"
        response = await get_with_deadline(
            self._client,
            f"{url}?interval=1d&range=1d",
            timeout=self._price_timeout,
            source="price",
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(f"price source returned non-JSON body for {symbol}", source="price") from exc

        price = _extract_market_price(payload)
        if price is None:
            raise UpstreamError(f"price source returned no market price for {symbol}", source="price")
        return price

    async def fetch_secondary_metrics(self, symbol: str) -> SecondaryMetrics:
        """
        Ask each secondary source in order until one supplies a P/E ratio.

        Absence of data after every source is a valid (null) result.

        Raises:
            UpstreamError: Only when every configured source failed outright.
        """
        result = SecondaryMetrics()
        failures: List[UpstreamError] = []

        for source in self._secondary_sources:
            try:
                metrics = await source.fetch(self._client, symbol)
            except UpstreamError as exc:
                logger.info("%s failed for %s: %s", source.name, symbol, exc)
                failures.append(exc)
                continue

            result = result.merge(metrics)
            if result.pe_ratio is not None:
                break

        if failures and len(failures) == len(self._secondary_sources):
            raise failures[-1]
        return result


def _extract_market_price(payload: object) -> Optional[float]:
    """Dig ``chart.result[0].meta.regularMarketPrice`` out of the payload."""
    try:
        meta = payload["chart"]["result"][0]["meta"]  # type: ignore[index]
        price = parse_number(meta["regularMarketPrice"])
    except (KeyError, IndexError, TypeError):
        return None
    if price is None or not math.isfinite(price) or price <= 0:
        return None
    return price

"""
data_engine/sources.py
───────────────────────
Upstream HTTP sources for secondary valuation metrics (P/E ratio and
earnings date), plus the deadline-bound GET helper every upstream call
goes through.

Sources
-------
- :class:`ExchangeApiMetricsSource` — structured JSON from the exchange's
  stock search API.  Primary.
- :class:`ScrapedQuotePageSource`   — HTML quote page, parsed defensively.
  Fallback when the primary has no P/E ratio.

Both implement :class:`SecondaryMetricsSource`, so the fetcher treats them
as an ordered list and either can be dropped without touching the
coordinator.

The scraped page format is not under our control.  Extraction is a pair of
bounded regular expressions over the page's visible text; when the markup
changes the source quietly returns nulls.
"""

import asyncio
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from bs4 import BeautifulSoup

from data_engine.errors import UpstreamError

logger = logging.getLogger(__name__)

BROWSER_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
}

_PE_PATTERN = re.compile(r"P/E ratio.{0,200}?(\d[\d,]*(?:\.\d+)?)", re.IGNORECASE | re.DOTALL)
_EARNINGS_PATTERN = re.compile(
    r"Earnings date.{0,200}?([A-Za-z]{3}\s+\d{1,2},\s+\d{4})", re.IGNORECASE | re.DOTALL
)


async def get_with_deadline(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float,
    source: str,
    headers: Optional[Dict[str, str]] = None,
) -> httpx.Response:
    """
    GET ``url`` and return the response, bounded by ``timeout`` seconds.

    The deadline covers the whole request; when it expires the request is
    cancelled.

    Raises:
        UpstreamError: On timeout, transport error or a non-2xx status.
    """
    try:
        response = await asyncio.wait_for(
            client.get(url, headers=headers or BROWSER_HEADERS),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise UpstreamError(
            f"{source} request timed out after {timeout:g}s", source=source
        ) from exc
    except httpx.HTTPError as exc:
        raise UpstreamError(f"{source} request failed: {exc}", source=source) from exc

    if not response.is_success:
        raise UpstreamError(
            f"{source} returned HTTP {response.status_code}",
            source=source,
            status_code=response.status_code,
        )
    return response


def parse_number(text: Any) -> Optional[float]:
    """Parse ``"1,234.5"`` / ``24.1`` into a float; ``None`` if not a finite number."""
    if text is None:
        return None
    try:
        value = float(str(text).replace(",", "").strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class SecondaryMetrics:
    """P/E ratio and earnings date; either may be absent."""

    pe_ratio: Optional[float] = None
    latest_earnings: Optional[str] = None

    def merge(self, other: "SecondaryMetrics") -> "SecondaryMetrics":
        """Fill this instance's gaps from ``other``; own values win."""
        return SecondaryMetrics(
            pe_ratio=self.pe_ratio if self.pe_ratio is not None else other.pe_ratio,
            latest_earnings=self.latest_earnings or other.latest_earnings,
        )


class SecondaryMetricsSource(ABC):
    """
    One provider of secondary metrics.

    Implementations return empty :class:`SecondaryMetrics` when the provider
    answered but had nothing useful, and raise :class:`UpstreamError` only
    when the provider itself could not be reached or answered with an error.
    """

    name: str = "secondary"

    def __init__(self, base_url: str, timeout: float) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @abstractmethod
    async def fetch(self, client: httpx.AsyncClient, symbol: str) -> SecondaryMetrics:
        """Return whatever metrics this source has for ``symbol``."""


class ExchangeApiMetricsSource(SecondaryMetricsSource):
    """Exchange stock-search JSON API; reads ``scripinfo[0].PERatio``."""

    name = "exchange_api"

    async def fetch(self, client: httpx.AsyncClient, symbol: str) -> SecondaryMetrics:
        url = f"{self.base_url}/{symbol}/st/true"
        response = await get_with_deadline(
            client, url, timeout=self.timeout, source=self.name
        )
        try:
            data = response.json()
        except ValueError:
            logger.warning("%s returned non-JSON body for %s", self.name, symbol)
            return SecondaryMetrics()

        try:
            raw_pe = data["scripinfo"][0].get("PERatio")
        except (KeyError, IndexError, TypeError, AttributeError):
            return SecondaryMetrics()

        pe_ratio = parse_number(raw_pe)
        # The API reports 0 for "not available".
        return SecondaryMetrics(pe_ratio=pe_ratio or None)


class ScrapedQuotePageSource(SecondaryMetricsSource):
    """Public quote page scraped for "P/E ratio" and "Earnings date"."""

    name = "quote_page"

    def __init__(self, base_url: str, timeout: float, exchange: str = "NSE") -> None:
        super().__init__(base_url, timeout)
        self.exchange = exchange

    async def fetch(self, client: httpx.AsyncClient, symbol: str) -> SecondaryMetrics:
        url = f"{self.base_url}/{symbol}:{self.exchange}"
        response = await get_with_deadline(
            client, url, timeout=self.timeout, source=self.name
        )
        return self.parse(response.text)

    @staticmethod
    def parse(html: str) -> SecondaryMetrics:
        """
        Extract metrics from quote-page HTML.

        Args:
            html: Raw page markup (untrusted).

        Returns:
            Whatever could be matched; nulls for the rest.
        """
        text = BeautifulSoup(html, "html.parser").get_text(" ", strip=True)

        pe_ratio = None
        pe_match = _PE_PATTERN.search(text)
        if pe_match:
            pe_ratio = parse_number(pe_match.group(1))

        latest_earnings = None
        earnings_match = _EARNINGS_PATTERN.search(text)
        if earnings_match:
            latest_earnings = " ".join(earnings_match.group(1).split())

        return SecondaryMetrics(pe_ratio=pe_ratio, latest_earnings=latest_earnings)

"""
data_engine/coordinator.py
───────────────────────────
Smart-cache stock data coordinator — the SINGLE entry point for live quotes.

Workflow (per ``get_stock_data`` call)
--------------------------------------
1. Validate and normalise the symbol batch, dropping duplicates.
2. Serve every symbol with a live cache entry straight from the cache.
3. For each miss, join the fetch already in flight for that symbol or start
   one.  At most one fetch per symbol is ever outstanding, no matter how
   many batches ask for it concurrently.
4. Each fetch retries with exponential backoff and always ends in a quote:
   either fresh data or a quote carrying ``error``.
5. The quote is cached (long TTL on success, short TTL on error) and the
   symbol leaves the in-flight table.
6. Cached quotes are returned first, then fresh ones.

Upstream failures never fail the batch.  Only malformed input does, with
:class:`~data_engine.errors.ValidationError`, before any fetch starts.

The in-flight table is only read and written from the event loop thread,
with no ``await`` between the membership check and the insert, so the
check-then-insert is atomic.  The cache carries its own lock.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Sequence, Tuple

from data_engine.cache import TTLCache
from data_engine.errors import UpstreamError, ValidationError
from data_engine.fetcher import MarketDataFetcher
from schemas.stock_data import TICKER_PATTERN, StockQuote

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "stock:"


def cache_key(symbol: str) -> str:
    """Cache key under which the quote for ``symbol`` is stored."""
    return f"{CACHE_KEY_PREFIX}{symbol}"


class StockDataCoordinator:
    """
    Orchestrates caching, deduplication and retries around the fetcher.

    Construct one per process (the FastAPI lifespan does this) and inject it
    wherever quotes are needed.

    Args:
        fetcher:       Performs one fetch attempt per call.
        cache:         Shared TTL cache.
        success_ttl:   Seconds a good quote stays cached.
        error_ttl:     Seconds an errored quote stays cached.
        max_retries:   Retries after the first failed attempt.
        backoff_base:  Delay before retry ``n`` (0-based) is
                       ``backoff_base * 2**n`` seconds.
        max_symbols:   Largest accepted batch after deduplication.
        sleep:         Non-blocking sleep; tests pass a recorder.

    Example:
        >>> coordinator = StockDataCoordinator(fetcher, TTLCache())
        >>> quotes = await coordinator.get_stock_data(["INFY", "TCS"])
    """

    def __init__(
        self,
        fetcher: MarketDataFetcher,
        cache: TTLCache,
        *,
        success_ttl: float = 60.0,
        error_ttl: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        max_symbols: int = 50,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self._success_ttl = success_ttl
        self._error_ttl = error_ttl
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._max_symbols = max_symbols
        self._sleep = sleep
        self._in_flight: Dict[str, "asyncio.Task[StockQuote]"] = {}

    # ── public API ────────────────────────────────────────────────────────

    async def get_stock_data(self, symbols: Sequence[str]) -> List[StockQuote]:
        """
        Return one quote per distinct symbol in ``symbols``.

        Output order is not guaranteed to follow input order: cached quotes
        come first, freshly fetched ones after.

        Args:
            symbols: Ticker symbols; case and surrounding whitespace are
                     normalised.

        Returns:
            List of :class:`StockQuote`, one per distinct symbol.

        Raises:
            ValidationError: If ``symbols`` is not a non-empty list/tuple of
                             ticker strings within the batch limit.
        """
        unique = self._normalise(symbols)

        cached, misses = self._partition(unique)
        if cached:
            logger.debug("Cache hit for %s", ", ".join(q.symbol for q in cached))

        if not misses:
            return cached

        tasks = [self._in_flight_task(symbol) for symbol in misses]
        # shield(): one caller going away must not cancel a fetch other
        # callers are waiting on.
        fresh = await asyncio.gather(*(asyncio.shield(t) for t in tasks))
        return cached + list(fresh)

    def in_flight_symbols(self) -> List[str]:
        """Symbols with a fetch currently outstanding."""
        return sorted(self._in_flight)

    def invalidate(self, symbols: Iterable[str]) -> None:
        """Drop cached quotes so the next request refetches them."""
        for symbol in symbols:
            self._cache.delete(cache_key(symbol.strip().upper()))

    # ── private helpers ───────────────────────────────────────────────────

    def _normalise(self, symbols: Sequence[str]) -> List[str]:
        if not isinstance(symbols, (list, tuple)):
            raise ValidationError("symbols must be a list of ticker strings")
        if not symbols:
            raise ValidationError("At least one symbol is required")

        unique: List[str] = []
        seen = set()
        for raw in symbols:
            if not isinstance(raw, str) or not raw.strip():
                raise ValidationError(f"Invalid symbol: {raw!r}")
            symbol = raw.strip().upper()
            if not TICKER_PATTERN.match(symbol):
                raise ValidationError(f"Invalid symbol: {raw!r}")
            if symbol not in seen:
                seen.add(symbol)
                unique.append(symbol)

        if len(unique) > self._max_symbols:
            raise ValidationError(
                f"Maximum {self._max_symbols} symbols allowed per request"
            )
        return unique

    def _partition(self, symbols: List[str]) -> Tuple[List[StockQuote], List[str]]:
        cached: List[StockQuote] = []
        misses: List[str] = []
        for symbol in symbols:
            quote = self._cache.get(cache_key(symbol))
            if quote is None:
                misses.append(symbol)
            else:
                cached.append(quote)
        return cached, misses

    def _in_flight_task(self, symbol: str) -> "asyncio.Task[StockQuote]":
        task = self._in_flight.get(symbol)
        if task is not None:
            logger.debug("Joining in-flight fetch for %s", symbol)
            return task

        task = asyncio.ensure_future(self._fetch_with_retry(symbol))
        self._in_flight[symbol] = task
        task.add_done_callback(lambda done: self._release(symbol, done))
        return task

    def _release(self, symbol: str, task: "asyncio.Task[StockQuote]") -> None:
        if self._in_flight.get(symbol) is task:
            del self._in_flight[symbol]

    async def _fetch_with_retry(self, symbol: str) -> StockQuote:
        last_error = "Failed to fetch stock data"

        for attempt in range(self._max_retries + 1):
            if attempt:
                delay = self._backoff_base * 2 ** (attempt - 1)
                logger.info(
                    "Retrying %s in %.1fs (attempt %d/%d)",
                    symbol, delay, attempt + 1, self._max_retries + 1,
                )
                await self._sleep(delay)
            try:
                quote = await self._fetcher.fetch_quote(symbol)
            except UpstreamError as exc:
                last_error = str(exc)
                logger.warning("Fetch failed for %s: %s", symbol, exc)
            except Exception as exc:
                last_error = str(exc) or exc.__class__.__name__
                logger.exception("Unexpected error fetching %s", symbol)
            else:
                self._cache.set(cache_key(symbol), quote, self._success_ttl)
                return quote

        logger.error(
            "Giving up on %s after %d attempts: %s",
            symbol, self._max_retries + 1, last_error,
        )
        failed = StockQuote.failed(symbol, last_error)
        self._cache.set(cache_key(symbol), failed, self._error_ttl)
        return failed

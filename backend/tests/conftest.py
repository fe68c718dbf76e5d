"""
tests/conftest.py
──────────────────
Shared pytest fixtures for the backend test suite.

Fixtures
--------
clock
    Manually advanced time source for :class:`TTLCache`.

fetcher
    ``FakeFetcher`` standing in for :class:`MarketDataFetcher` — counts
    calls per symbol, can fail chosen symbols, and can hold every fetch on
    an ``asyncio.Event`` to line up concurrent callers.

coordinator
    :class:`StockDataCoordinator` over ``fetcher`` with a recording sleep,
    so retry tests run instantly and can assert the backoff schedule.

app_client
    ``httpx.AsyncClient`` wired to the FastAPI app with every ``app.state``
    dependency overridden, so tests never hit the network.

Usage
-----
    async def test_health(app_client):
        resp = await app_client.get("/health")
        assert resp.status_code == 200
"""

import asyncio
from collections import Counter
from typing import AsyncGenerator, Dict, List, Optional, Set

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.dependencies import (
    get_app_settings,
    get_cache,
    get_coordinator,
    get_holdings_repository,
)
from app.main import app
from core.config import Settings
from data_engine.cache import TTLCache
from data_engine.coordinator import StockDataCoordinator
from data_engine.errors import UpstreamError
from data_engine.holdings import InMemoryHoldingsRepository
from schemas.stock_data import StockQuote


# ── Fakes ─────────────────────────────────────────────────────────────────────


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """Deterministic stand-in for ``MarketDataFetcher.fetch_quote``."""

    def __init__(self) -> None:
        self.calls: Counter = Counter()
        self.failing: Set[str] = set()
        self.prices: Dict[str, float] = {}
        self.gate: Optional[asyncio.Event] = None

    async def fetch_quote(self, symbol: str) -> StockQuote:
        self.calls[symbol] += 1
        if self.gate is not None:
            await self.gate.wait()
        if symbol in self.failing:
            raise UpstreamError(f"price source returned HTTP 503 for {symbol}", source="price")
        return StockQuote(
            symbol=symbol,
            price=self.prices.get(symbol, 100.0),
            pe_ratio=22.5,
            latest_earnings="Jan 16, 2025",
        )


class SleepRecorder:
    """Async sleep replacement that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# ── Core fixtures ─────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    return TTLCache(clock=clock)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def coordinator(
    fetcher: FakeFetcher, cache: TTLCache, sleeper: SleepRecorder
) -> StockDataCoordinator:
    """Fresh coordinator per test: 60 s / 10 s TTLs, 3 retries, 1 s base."""
    return StockDataCoordinator(
        fetcher,  # type: ignore[arg-type]
        cache,
        success_ttl=60.0,
        error_ttl=10.0,
        max_retries=3,
        backoff_base=1.0,
        max_symbols=50,
        sleep=sleeper,
    )


@pytest.fixture
def holdings_repo() -> InMemoryHoldingsRepository:
    return InMemoryHoldingsRepository()


@pytest.fixture
def settings() -> Settings:
    return Settings(SUPABASE_URL="", SUPABASE_KEY="")


# ── Test client ───────────────────────────────────────────────────────────────


@pytest.fixture
async def app_client(
    cache: TTLCache,
    coordinator: StockDataCoordinator,
    holdings_repo: InMemoryHoldingsRepository,
    settings: Settings,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTPX client with all shared components overridden.

    Startup lifespan is skipped (``ASGITransport`` does not run it), so no
    real HTTP client is ever built.
    """
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    app.dependency_overrides[get_holdings_repository] = lambda: holdings_repo
    app.dependency_overrides[get_app_settings] = lambda: settings

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()

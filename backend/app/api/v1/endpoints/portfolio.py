"""
app/api/v1/endpoints/portfolio.py
──────────────────────────────────
Portfolio valuation endpoints.

Routes
------
GET  /api/v1/portfolio
    Holdings joined with live quotes: per-holding gain/loss, per-sector
    summaries and portfolio totals.  Served from cache while fresh.

POST /api/v1/portfolio/refresh
    Drops the cached portfolio and holdings list, then rebuilds the view.
    Stock quotes are left to expire on their own TTL.

Quotes that could not be fetched do not fail the request: the affected
rows carry ``price = null`` and ``quote_error``, and the view is cached for
the short error TTL instead of the quote TTL.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from analytics.valuation import build_portfolio
from app.api.dependencies import (
    get_app_settings,
    get_cache,
    get_coordinator,
    get_holdings_repository,
)
from app.api.v1.endpoints.holdings import (
    HOLDINGS_CACHE_KEY,
    PORTFOLIO_CACHE_KEY,
    load_holdings,
)
from core.config import Settings
from data_engine.cache import TTLCache
from data_engine.coordinator import StockDataCoordinator
from data_engine.holdings import HoldingsRepository
from schemas.common import Envelope
from schemas.portfolio import PortfolioResponse

logger = logging.getLogger(__name__)
router = APIRouter()


# ── Private helpers ───────────────────────────────────────────────────────────


async def _assemble(
    repo: HoldingsRepository,
    cache: TTLCache,
    coordinator: StockDataCoordinator,
    settings: Settings,
) -> PortfolioResponse:
    """Load holdings, fetch their quotes and cache the resulting view."""
    # Holdings stores are synchronous (Supabase client); keep them off the loop.
    holdings, _ = await run_in_threadpool(
        load_holdings, repo, cache, settings.HOLDINGS_CACHE_TTL
    )

    # Chunks stay within the coordinator's per-request symbol limit.
    symbols = list(dict.fromkeys(h.stock_symbol for h in holdings))
    size = settings.MAX_SYMBOLS_PER_REQUEST
    batches = await asyncio.gather(
        *(
            coordinator.get_stock_data(symbols[i:i + size])
            for i in range(0, len(symbols), size)
        )
    )
    quotes = [quote for batch in batches for quote in batch]

    portfolio = build_portfolio(holdings, quotes)
    degraded = any(h.quote_error for h in portfolio.holdings)
    ttl = settings.STOCK_ERROR_CACHE_TTL if degraded else settings.STOCK_DATA_CACHE_TTL
    cache.set(PORTFOLIO_CACHE_KEY, portfolio, ttl)
    logger.info(
        "Portfolio assembled: %d holdings, %d sectors",
        len(portfolio.holdings),
        len(portfolio.sector_summaries),
    )
    return portfolio


# ── Routes ────────────────────────────────────────────────────────────────────


@router.get("", response_model=Envelope[PortfolioResponse], summary="Portfolio view")
async def get_portfolio(
    repo: HoldingsRepository = Depends(get_holdings_repository),
    cache: TTLCache = Depends(get_cache),
    coordinator: StockDataCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[PortfolioResponse]:
    """Return the portfolio with valuations, from cache when fresh."""
    cached = cache.get(PORTFOLIO_CACHE_KEY)
    if cached is not None:
        return Envelope[PortfolioResponse](data=cached, cached=True)

    portfolio = await _assemble(repo, cache, coordinator, settings)
    return Envelope[PortfolioResponse](data=portfolio, cached=False)


@router.post(
    "/refresh",
    response_model=Envelope[PortfolioResponse],
    summary="Rebuild the portfolio view",
)
async def refresh_portfolio(
    repo: HoldingsRepository = Depends(get_holdings_repository),
    cache: TTLCache = Depends(get_cache),
    coordinator: StockDataCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[PortfolioResponse]:
    """Invalidate the cached portfolio and holdings, then rebuild."""
    cache.delete(PORTFOLIO_CACHE_KEY)
    cache.delete(HOLDINGS_CACHE_KEY)

    portfolio = await _assemble(repo, cache, coordinator, settings)
    return Envelope[PortfolioResponse](
        data=portfolio, cached=False, message="Portfolio refreshed"
    )

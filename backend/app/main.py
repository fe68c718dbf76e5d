"""
app/main.py
────────────
FastAPI application.

All business logic lives in ``app/api/v1/endpoints/`` and ``data_engine``.
This file is intentionally slim — it wires together logging, middleware,
routers, and the lifespan that builds the shared market data components.

API Layout
----------
GET  /                              Liveness (no dependencies)
GET  /health                        Health + cache stats + in-flight symbols
GET  /health/cache-stats            Cache statistics
GET  /api/v1/stock-data?symbols=    Live quotes
POST /api/v1/stock-data/batch       Live quotes (JSON body)
GET  /api/v1/holdings               List holdings
GET  /api/v1/holdings/{id}          Single holding
POST /api/v1/holdings               Add a holding
GET  /api/v1/portfolio              Portfolio valuation
POST /api/v1/portfolio/refresh      Invalidate and rebuild the portfolio

OpenAPI docs
------------
- Swagger UI:  http://localhost:8000/docs
- ReDoc:       http://localhost:8000/redoc
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import health
from app.api.v1.router import api_router
from core.config import Settings, get_settings
from data_engine.cache import TTLCache
from data_engine.coordinator import StockDataCoordinator
from data_engine.fetcher import MarketDataFetcher
from data_engine.holdings import (
    HoldingsRepository,
    InMemoryHoldingsRepository,
    SupabaseHoldingsRepository,
)
from data_engine.sources import ExchangeApiMetricsSource, ScrapedQuotePageSource

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure the root logger once for the process."""
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


def build_holdings_repository(settings: Settings) -> HoldingsRepository:
    """Supabase-backed store when configured, in-memory seed data otherwise."""
    if settings.USE_SUPABASE:
        from core.database import get_supabase_client

        return SupabaseHoldingsRepository(get_supabase_client(), settings.HOLDINGS_TABLE)
    logger.info("Supabase not configured — using in-memory holdings")
    return InMemoryHoldingsRepository()


def build_coordinator(
    settings: Settings, client: httpx.AsyncClient, cache: TTLCache
) -> StockDataCoordinator:
    """Wire sources → fetcher → coordinator from resolved settings."""
    fetcher = MarketDataFetcher(
        client,
        price_url=settings.PRICE_SOURCE_URL,
        price_timeout=settings.PRICE_SOURCE_TIMEOUT,
        exchange_suffix=settings.EXCHANGE_SUFFIX,
        secondary_sources=[
            ExchangeApiMetricsSource(
                settings.METRICS_SOURCE_URL, settings.METRICS_SOURCE_TIMEOUT
            ),
            ScrapedQuotePageSource(
                settings.SCRAPE_SOURCE_URL,
                settings.SCRAPE_SOURCE_TIMEOUT,
                exchange=settings.SCRAPE_EXCHANGE,
            ),
        ],
    )
    return StockDataCoordinator(
        fetcher,
        cache,
        success_ttl=settings.STOCK_DATA_CACHE_TTL,
        error_ttl=settings.STOCK_ERROR_CACHE_TTL,
        max_retries=settings.MAX_RETRIES,
        backoff_base=settings.RETRY_BACKOFF_BASE,
        max_symbols=settings.MAX_SYMBOLS_PER_REQUEST,
    )


# ── Lifespan ──────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application startup and shutdown logic.

    Startup:  Build the shared cache, HTTP client, coordinator and holdings
              store, and publish them on ``app.state``.
    Shutdown: Close the upstream HTTP client.
    """
    settings = get_settings()
    logger.info(
        "Starting %s v%s (debug=%s)",
        settings.APP_TITLE,
        settings.APP_VERSION,
        settings.DEBUG,
    )

    client = httpx.AsyncClient(follow_redirects=True)
    app.state.cache = TTLCache()
    app.state.coordinator = build_coordinator(settings, client, app.state.cache)
    app.state.holdings = build_holdings_repository(settings)

    yield  # ← application runs here

    await client.aclose()
    logger.info("Shutting down %s", settings.APP_TITLE)


# ── App ───────────────────────────────────────────────────────────────────────

settings = get_settings()
configure_logging(settings)

app = FastAPI(
    title=settings.APP_TITLE,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware ────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(api_router, prefix="/api/v1")


@app.get("/", tags=["health"], summary="Liveness probe")
def root() -> dict:
    """
    Lightweight liveness probe.

    Returns:
        Status and current API version.
    """
    return {"status": "ok", "version": settings.APP_VERSION}

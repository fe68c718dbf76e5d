"""
app/api/dependencies.py
───────────────────────
FastAPI dependency functions shared across all endpoints.

The cache, coordinator and holdings store are built once in the app
lifespan (see ``app/main.py``) and stored on ``app.state``; nothing here
reaches for a module-level global.  Tests swap them out through
``app.dependency_overrides``.

Usage
-----
    from app.api.dependencies import get_coordinator

    @router.get("/foo")
    async def my_route(coordinator = Depends(get_coordinator)):
        ...
"""

from fastapi import Request

from core.config import Settings, get_settings
from data_engine.cache import TTLCache
from data_engine.coordinator import StockDataCoordinator
from data_engine.holdings import HoldingsRepository


def get_app_settings() -> Settings:
    """Settings singleton, injectable so tests can override TTLs."""
    return get_settings()


def get_cache(request: Request) -> TTLCache:
    """Process-wide TTL cache."""
    return request.app.state.cache


def get_coordinator(request: Request) -> StockDataCoordinator:
    """Process-wide stock data coordinator."""
    return request.app.state.coordinator


def get_holdings_repository(request: Request) -> HoldingsRepository:
    """Configured holdings store (in-memory or Supabase)."""
    return request.app.state.holdings

"""
app/api/health.py
──────────────────
Operational endpoints (mounted at ``/health``, outside ``/api/v1``).

Routes
------
GET /health               Liveness plus cache size and in-flight symbols.
GET /health/cache-stats   Raw cache statistics.

Cache statistics count entries that have expired but were not read since,
so ``size`` is an upper bound on the number of live entries.
"""

from fastapi import APIRouter, Depends

from app.api.dependencies import get_app_settings, get_cache, get_coordinator
from core.config import Settings
from data_engine.cache import TTLCache
from data_engine.coordinator import StockDataCoordinator
from schemas.common import Envelope, now_ms

router = APIRouter()


@router.get("", summary="Health check")
async def health(
    cache: TTLCache = Depends(get_cache),
    coordinator: StockDataCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """
    Liveness probe with operational detail.  Async so the in-flight table
    is read from the event loop thread.

    Returns:
        Status, API version, cache stats and symbols currently being fetched.
    """
    return {
        "status": "ok",
        "version": settings.APP_VERSION,
        "timestamp": now_ms(),
        "cache": cache.stats(),
        "in_flight": coordinator.in_flight_symbols(),
    }


@router.get("/cache-stats", response_model=Envelope[dict], summary="Cache statistics")
def cache_stats(cache: TTLCache = Depends(get_cache)) -> Envelope[dict]:
    """Return ``{size, keys}`` for the shared cache."""
    return Envelope[dict](data=cache.stats())

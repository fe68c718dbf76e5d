"""
app/api/v1/endpoints/holdings.py
──────────────────────────────────
Holdings endpoints.

Routes
------
GET  /api/v1/holdings          All holdings (served from cache when fresh).
GET  /api/v1/holdings/{id}     A single holding.
POST /api/v1/holdings          Add a holding; invalidates cached views.
"""

import logging
from typing import List, Tuple

from fastapi import APIRouter, Depends, HTTPException

from app.api.dependencies import get_app_settings, get_cache, get_holdings_repository
from core.config import Settings
from data_engine.cache import TTLCache
from data_engine.holdings import HoldingsRepository
from schemas.common import Envelope
from schemas.holdings import Holding, HoldingCreate

logger = logging.getLogger(__name__)
router = APIRouter()

HOLDINGS_CACHE_KEY = "holdings"
PORTFOLIO_CACHE_KEY = "portfolio"


def load_holdings(
    repo: HoldingsRepository, cache: TTLCache, ttl: float
) -> Tuple[List[Holding], bool]:
    """
    Return ``(holdings, served_from_cache)``.

    Reads through the ``holdings`` cache key, populating it on a miss.
    """
    cached = cache.get(HOLDINGS_CACHE_KEY)
    if cached is not None:
        return cached, True

    holdings = repo.list()
    cache.set(HOLDINGS_CACHE_KEY, holdings, ttl)
    return holdings, False


@router.get("", response_model=Envelope[List[Holding]], summary="List holdings")
def list_holdings(
    repo: HoldingsRepository = Depends(get_holdings_repository),
    cache: TTLCache = Depends(get_cache),
    settings: Settings = Depends(get_app_settings),
) -> Envelope[List[Holding]]:
    """Return every holding; ``cached`` tells whether the cache served it."""
    holdings, cached = load_holdings(repo, cache, settings.HOLDINGS_CACHE_TTL)
    return Envelope[List[Holding]](data=holdings, cached=cached)


@router.get("/{holding_id}", response_model=Envelope[Holding], summary="Get one holding")
def get_holding(
    holding_id: str,
    repo: HoldingsRepository = Depends(get_holdings_repository),
) -> Envelope[Holding]:
    """
    Return a single holding by id.

    Raises:
        HTTPException 404: Unknown id.
    """
    holding = repo.get(holding_id)
    if holding is None:
        raise HTTPException(status_code=404, detail="Holding not found")
    return Envelope[Holding](data=holding)


@router.post(
    "",
    response_model=Envelope[Holding],
    status_code=201,
    summary="Add a holding",
)
def add_holding(
    body: HoldingCreate,
    repo: HoldingsRepository = Depends(get_holdings_repository),
    cache: TTLCache = Depends(get_cache),
) -> Envelope[Holding]:
    """
    Persist a new holding.

    The cached holdings list and portfolio view are dropped so the next read
    includes the new position.
    """
    holding = repo.add(body)
    cache.delete(HOLDINGS_CACHE_KEY)
    cache.delete(PORTFOLIO_CACHE_KEY)
    logger.info("Added holding %s (id=%s)", holding.stock_symbol, holding.id)
    return Envelope[Holding](data=holding)

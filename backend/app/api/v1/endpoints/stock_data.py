"""
app/api/v1/endpoints/stock_data.py
────────────────────────────────────
Live quote endpoints.

Routes
------
GET  /api/v1/stock-data?symbols=INFY,TCS   Quotes for a comma-separated list.
POST /api/v1/stock-data/batch              Quotes for a JSON list of symbols.

Both return one quote per distinct symbol, in no guaranteed order.  A
symbol whose upstream fetch failed still gets a quote, with ``error`` set;
only a malformed batch yields 400.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.dependencies import get_coordinator
from data_engine.coordinator import StockDataCoordinator
from data_engine.errors import ValidationError
from schemas.common import Envelope
from schemas.stock_data import StockDataBatchRequest, StockQuote

logger = logging.getLogger(__name__)
router = APIRouter()


async def _quotes_or_400(
    coordinator: StockDataCoordinator, symbols: List[str]
) -> Envelope[List[StockQuote]]:
    try:
        quotes = await coordinator.get_stock_data(symbols)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info("Served %d quotes", len(quotes))
    return Envelope[List[StockQuote]](data=quotes)


@router.get(
    "",
    response_model=Envelope[List[StockQuote]],
    summary="Live quotes for comma-separated symbols",
)
async def get_stock_data(
    symbols: Optional[str] = Query(
        default=None,
        description="Comma-separated tickers, e.g. ``INFY,TCS,RELIANCE``.",
    ),
    coordinator: StockDataCoordinator = Depends(get_coordinator),
) -> Envelope[List[StockQuote]]:
    """
    Return cached or freshly fetched quotes for ``symbols``.

    Raises:
        HTTPException 400: ``symbols`` missing, empty, blank entries, or
                           more than the per-request limit.
    """
    if not symbols:
        raise HTTPException(status_code=400, detail="symbols query parameter is required")
    return await _quotes_or_400(coordinator, symbols.split(","))


@router.post(
    "/batch",
    response_model=Envelope[List[StockQuote]],
    summary="Live quotes for a JSON list of symbols",
)
async def batch_stock_data(
    body: StockDataBatchRequest,
    coordinator: StockDataCoordinator = Depends(get_coordinator),
) -> Envelope[List[StockQuote]]:
    """
    Same as ``GET /stock-data`` but takes ``{"symbols": [...]}``.

    Raises:
        HTTPException 400: Empty list, blank entries, or too many symbols.
    """
    return await _quotes_or_400(coordinator, body.symbols)

"""
schemas/stock_data.py
──────────────────────
Quote model shared by the market data core and the stock-data endpoints:

  GET  /api/v1/stock-data?symbols=...
  POST /api/v1/stock-data/batch
      → ``StockDataBatchRequest``
"""

import re
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Normalised (upper-case) ticker; symbols are placed into upstream URL paths.
TICKER_PATTERN = re.compile(r"^[A-Z0-9.&-]{1,20}$")


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class StockQuote(BaseModel):
    """
    Market metrics for one symbol.

    Every metric is independently nullable: a missing P/E ratio is a valid
    value, not a failure.  ``error`` is set only when the price could not be
    fetched after all retries.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    price: Optional[float] = Field(default=None, description="Current market price (CMP).")
    pe_ratio: Optional[float] = None
    latest_earnings: Optional[str] = Field(
        default=None, description="Next/latest earnings date as published by the source."
    )
    fetched_at: datetime = Field(default_factory=utcnow)
    error: Optional[str] = None

    @classmethod
    def failed(cls, symbol: str, reason: str) -> "StockQuote":
        """Quote with every metric null and ``error`` set."""
        return cls(symbol=symbol, error=reason)


class StockDataBatchRequest(BaseModel):
    """Request body for ``POST /api/v1/stock-data/batch``."""

    symbols: List[str] = Field(
        ...,
        description="Ticker symbols, e.g. ['INFY', 'TCS']. Duplicates are ignored.",
    )

"""
schemas/holdings.py
────────────────────
Pydantic schemas for the holdings endpoints:

  GET  /api/v1/holdings          → ``List[Holding]``
  GET  /api/v1/holdings/{id}     → ``Holding``
  POST /api/v1/holdings          ← ``HoldingCreate``  → ``Holding``
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from schemas.stock_data import TICKER_PATTERN


class HoldingCreate(BaseModel):
    """Request body for adding a position."""

    stock_name: str = Field(..., min_length=1, max_length=200)
    stock_symbol: str = Field(..., min_length=1, max_length=20)
    exchange: str = Field(..., min_length=1, max_length=20)
    sector: str = Field(..., min_length=1, max_length=100)
    purchase_price: float = Field(..., gt=0, description="Average cost per share.")
    quantity: float = Field(..., gt=0, description="Number of shares held.")

    @field_validator("stock_symbol")
    @classmethod
    def _upper_symbol(cls, v: str) -> str:
        symbol = v.strip().upper()
        if not symbol:
            raise ValueError("stock_symbol must not be blank")
        if not TICKER_PATTERN.match(symbol):
            raise ValueError(f"stock_symbol is not a valid ticker: {symbol!r}")
        return symbol


class Holding(HoldingCreate):
    """A stored position."""

    id: str
    created_at: Optional[str] = None   # ISO 8601

    @field_validator("id", "created_at", mode="before")
    @classmethod
    def _stringify(cls, v: object) -> object:
        # Supabase may hand back integer ids and datetime objects.
        return v if v is None or isinstance(v, str) else str(v)

"""
schemas/portfolio.py
─────────────────────
Pydantic schemas for the portfolio endpoints:

  GET  /api/v1/portfolio
  POST /api/v1/portfolio/refresh
      → ``PortfolioResponse``

Money fields are in the listing currency of the holdings.  Any field
derived from the live price is ``None`` when the price is unavailable, so
the dashboard can render "unavailable" for that row and keep going.
"""

from typing import List, Optional

from pydantic import BaseModel


class EnrichedHolding(BaseModel):
    """A holding joined with its live quote."""

    id: str
    stock_name: str
    stock_symbol: str
    exchange: str
    sector: str
    purchase_price: float
    quantity: float
    investment: float
    portfolio_percentage: float
    price: Optional[float]
    present_value: Optional[float]
    gain_loss: Optional[float]
    gain_loss_percentage: Optional[float]
    pe_ratio: Optional[float]
    latest_earnings: Optional[str]
    quote_error: Optional[str] = None


class SectorSummary(BaseModel):
    """Totals for every holding in one sector."""

    sector: str
    total_investment: float
    total_present_value: float
    gain_loss: float
    gain_loss_percentage: float
    holdings: List[EnrichedHolding]


class PortfolioResponse(BaseModel):
    """Full portfolio view with per-sector and overall totals."""

    holdings: List[EnrichedHolding]
    sector_summaries: List[SectorSummary]
    total_investment: float
    total_present_value: float
    total_gain_loss: float
    total_gain_loss_percentage: float
    last_updated: int   # epoch milliseconds

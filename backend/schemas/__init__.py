"""
Pydantic schemas for request/response serialization.

Separate from the market data layer (``data_engine``) and routes (HTTP layer).
"""

from schemas.common import Envelope
from schemas.holdings import Holding, HoldingCreate
from schemas.portfolio import EnrichedHolding, PortfolioResponse, SectorSummary
from schemas.stock_data import StockDataBatchRequest, StockQuote

__all__ = [
    "Envelope",
    "Holding",
    "HoldingCreate",
    "EnrichedHolding",
    "PortfolioResponse",
    "SectorSummary",
    "StockDataBatchRequest",
    "StockQuote",
]

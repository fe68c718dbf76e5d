"""
data_engine — Live market data acquisition and smart-cache layer.

Public API
----------
    from data_engine import StockDataCoordinator, MarketDataFetcher, TTLCache
"""

from data_engine.cache import TTLCache
from data_engine.coordinator import StockDataCoordinator
from data_engine.errors import MarketDataError, UpstreamError, ValidationError
from data_engine.fetcher import MarketDataFetcher

__all__ = [
    "MarketDataError",
    "MarketDataFetcher",
    "StockDataCoordinator",
    "TTLCache",
    "UpstreamError",
    "ValidationError",
]

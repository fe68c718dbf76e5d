"""
data_engine/errors.py
──────────────────────
Exception hierarchy for the market data layer.

``UpstreamError`` is recoverable and never escapes a batch call — the
coordinator folds it into the ``error`` field of the affected quote.
``ValidationError`` is raised before any fetch starts and is meant to reach
the caller (the API maps it to HTTP 400).
"""

from typing import Optional


class MarketDataError(Exception):
    """Base class for every error raised by ``data_engine``."""


class UpstreamError(MarketDataError):
    """
    A third-party source failed: transport error, timeout, non-2xx status,
    or a payload that could not be parsed.

    Args:
        message:     Human-readable reason (copied into ``StockQuote.error``).
        source:      Short name of the failing source, e.g. ``"price"``.
        status_code: HTTP status when the failure was a non-2xx response.
    """

    def __init__(
        self,
        message: str,
        source: str = "upstream",
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class ValidationError(MarketDataError, ValueError):
    """Malformed symbol batch (wrong type, empty, blank symbol, too large)."""

"""
schemas/common.py
──────────────────
Response envelope shared by every ``/api/v1`` endpoint::

    {"success": true, "data": ..., "cached": false, "timestamp": 1718000000000}
"""

import time
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class Envelope(BaseModel, Generic[T]):
    """Standard success wrapper around an endpoint's payload."""

    success: bool = True
    data: T
    cached: Optional[bool] = None
    message: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)

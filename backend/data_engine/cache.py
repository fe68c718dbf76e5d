"""
data_engine/cache.py
─────────────────────
In-process key → value cache with per-entry time-to-live.

Expiry is lazy: an entry is checked only when it is read, and a read of an
expired entry evicts it.  There is no background sweeper, so ``stats()``
may still count entries that have expired but were never read again.

The map is guarded by a ``threading.Lock`` because FastAPI runs sync route
handlers in a worker thread pool while async handlers share the same
instance from the event loop.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


@dataclass(frozen=True)
class CacheEntry:
    """One stored value with the clock reading at write time."""

    value: Any
    stored_at: float
    ttl: float

    def is_live(self, now: float) -> bool:
        return now - self.stored_at <= self.ttl


class TTLCache:
    """
    Thread-safe TTL cache.

    Args:
        clock: Monotonic time source in seconds.  Tests inject a fake clock
               to step across TTL boundaries deterministically.

    Example:
        >>> cache = TTLCache()
        >>> cache.set("stock:INFY", quote, ttl=60)
        >>> cache.get("stock:INFY")
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds, overwriting."""
        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock(), ttl)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Return the live value for ``key``, or ``default``."""
        with self._lock:
            entry = self._live_entry(key)
            return default if entry is None else entry.value

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        """
        Return ``{"size": int, "keys": [...]}`` over the raw map.

        No liveness filtering is applied: expired entries that have not been
        read since expiring are still reported.
        """
        with self._lock:
            keys: List[str] = list(self._entries)
        return {"size": len(keys), "keys": keys}

    # ── private helpers ───────────────────────────────────────────────────

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        # Caller holds the lock.
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_live(self._clock()):
            del self._entries[key]
            return None
        return entry

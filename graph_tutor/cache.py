"""
In-memory query cache module for Graph Tutor.

Contains the QueryCache class: a key -> value store with per-entry TTL and a
single whole-cache invalidation signal. It knows nothing about graphs.
"""

import time
from collections.abc import Callable
from typing import Any

import structlog

from .config import settings
from .models import CacheEntry

logger = structlog.get_logger(__name__)

DEFAULT_TTL_MS = 30_000


class QueryCache:
    """In-memory TTL cache for graph reads. Single process, single owner.

    Expired entries are evicted lazily by the lookup that finds them; there
    is no background sweep.
    """

    def __init__(self, ttl_ms: int = DEFAULT_TTL_MS, clock: Callable[[], float] = time.monotonic):
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._misses += 1
            return None
        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: int | None = None) -> None:
        """Store a value, overwriting any existing entry for the key."""
        ttl = self.ttl_ms if ttl_ms is None else ttl_ms
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            expires_at=self._clock() + ttl / 1000,
        )

    def invalidate_all(self) -> None:
        """Drop every entry. Safe to call repeatedly."""
        dropped = len(self._entries)
        self._entries.clear()
        self._invalidations += 1
        logger.debug("cache_invalidated", dropped=dropped)

    def stats(self) -> dict[str, int]:
        """Return entry count and hit/miss/invalidation counters."""
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "invalidations": self._invalidations,
            "ttl_ms": self.ttl_ms,
        }


# Global cache instance
query_cache = QueryCache(settings.cache_ttl_ms)

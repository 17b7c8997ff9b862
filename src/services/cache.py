"""Caching utilities for external service responses."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.config import get_settings
from core.logging_config import get_logger

LOGGER = get_logger(__name__)


@dataclass
class CacheEntry:
    """A single cache entry with TTL support."""

    value: Any
    created_at: float
    ttl_seconds: float

    def is_expired(self) -> bool:
        return time.time() - self.created_at > self.ttl_seconds


class TTLCache:
    """
    Simple in-memory cache with TTL (time-to-live) support.

    Lookups run in worker threads, so reads and writes share one lock.
    """

    def __init__(self, default_ttl_seconds: float = 3600):
        self._cache: Dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl_seconds
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired():
                del self._cache[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        with self._lock:
            self._cache[key] = CacheEntry(value=value, created_at=time.time(), ttl_seconds=ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        """Clear all entries and reset statistics."""
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    def cleanup_expired(self) -> int:
        """
        Remove all expired entries from the cache.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            expired_keys = [key for key, entry in self._cache.items() if entry.is_expired()]
            for key in expired_keys:
                del self._cache[key]
        return len(expired_keys)

    @property
    def size(self) -> int:
        return len(self._cache)

    @property
    def hit_rate(self) -> float:
        """Get the cache hit rate (0.0 - 1.0)."""
        total = self._hits + self._misses
        if total == 0:
            return 0.0
        return self._hits / total

    def stats(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self.hit_rate, 3),
        }


_settings = get_settings()

# Process-wide cache instances for external lookups
_geocode_cache = TTLCache(default_ttl_seconds=_settings.geocode_cache_ttl_hours * 3600)
_preview_cache = TTLCache(default_ttl_seconds=_settings.preview_cache_ttl_hours * 3600)


def get_geocode_cache() -> TTLCache:
    """Get the global geocode cache instance."""
    return _geocode_cache


def get_preview_cache() -> TTLCache:
    """Get the global link preview cache instance."""
    return _preview_cache


__all__ = [
    "TTLCache",
    "CacheEntry",
    "get_geocode_cache",
    "get_preview_cache",
]

"""Time-bounded caching for translations and translation-memory bundles.

Each cache is an explicit object with its own clock so expiry can be driven
from tests without sleeping.
"""

import asyncio
import logging
import math
import time
from typing import Any, Awaitable, Callable, Dict, Generic, NamedTuple, Optional, TypeVar

from cachetools import TLRUCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

V = TypeVar("V")


class _Stored(NamedTuple):
    value: Any
    ttl: Optional[float]


def _time_to_use(key: str, stored: _Stored, now: float) -> float:
    return math.inf if stored.ttl is None else now + stored.ttl


class TTLCache(Generic[V]):
    """LRU cache whose entries expire after a per-entry TTL.

    Storage and expiry are delegated to ``cachetools.TLRUCache``; this class
    adds hit/miss statistics and a single-flight ``get_or_refresh``.
    """

    def __init__(
        self,
        maxsize: int = 1000,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            maxsize: Maximum number of entries to store.
            default_ttl: TTL in seconds used when ``set`` gets none; None never expires.
            clock: Monotonic time source in seconds.
        """
        self.cache: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_time_to_use, timer=clock)
        self.maxsize = maxsize
        self.default_ttl = default_ttl
        self.hits = 0
        self.misses = 0
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> Optional[V]:
        stored = self.cache.get(key)
        if stored is None:
            self.misses += 1
            return None
        self.hits += 1
        return stored.value

    def set(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        ttl = ttl if ttl is not None else self.default_ttl
        self.cache[key] = _Stored(value, ttl)

    def invalidate(self, key: str) -> None:
        self.cache.pop(key, None)

    def clear(self) -> None:
        """Clear all entries and statistics."""
        self.cache.clear()
        self.hits = 0
        self.misses = 0

    async def get_or_refresh(
        self,
        key: str,
        ttl: Optional[float],
        loader: Callable[[], Awaitable[V]],
        force_refresh: bool = False,
    ) -> V:
        """Return the cached value, or await ``loader`` and cache its result.

        Concurrent callers for the same key share a single load. A failing
        loader leaves any previous value untouched and propagates.
        """
        if not force_refresh:
            cached = self.get(key)
            if cached is not None:
                return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if not force_refresh:
                # Another caller may have loaded it while we waited
                stored = self.cache.get(key)
                if stored is not None:
                    return stored.value
            logger.debug(f"Refreshing cache entry {key}")
            value = await loader()
            self.set(key, value, ttl=ttl)
            return value

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dict with hits, misses, size, and hit_ratio.
        """
        total = self.hits + self.misses
        hit_ratio = self.hits / total if total > 0 else 0
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": self.cache.currsize,
            "maxsize": self.maxsize,
            "hit_ratio": hit_ratio,
        }

"""
================================================================================
Overlap - Cache Pools
================================================================================
In-memory TTL cache pools for team searches, listings and name resolutions.

Design:
  - Each pool has its own default TTL; entries may override it
  - Expiry is evaluated on read, so an entry is gone the moment
    `now - timestamp >= ttl` even if cleanup() never runs
  - Reads never take the lock; entries are immutable tuples swapped in whole
  - Writers (set/delete/cleanup) serialise on one lock, last write wins
  - Pools are built per application by CacheRegistry and injected into the
    services that use them

Usage:
    pools = CacheRegistry()
    pools.query.set("search_liverpool", results)
    pools.query.get("search_liverpool")
    pools.query.delete_by_pattern("search_*")
================================================================================
"""

import re
import time
import logging
import threading
from typing import Any, Callable, Dict, NamedTuple, Optional


logger = logging.getLogger(__name__)


# TTL values in seconds
TTL_QUERY = 30 * 60          # search result pages
TTL_LISTING = 60 * 60        # popular teams and other listings
TTL_DAILY = 24 * 60 * 60     # daily-computed aggregates
TTL_RESOLVER = 10 * 60       # name resolutions


class CacheEntry(NamedTuple):
    key: str
    value: Any
    timestamp: float
    ttl: float


def compile_glob(pattern: str) -> "re.Pattern[str]":
    """Turn a `*` glob into a regex that must match the whole key."""
    parts = [re.escape(part) for part in pattern.split('*')]
    return re.compile('.*'.join(parts), re.DOTALL)


class CachePool:
    """Thread-safe expiring key/value store."""

    def __init__(
        self,
        name: str,
        default_ttl: float,
        max_size: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize pool.

        Args:
            name: Pool name (shown in stats)
            default_ttl: TTL in seconds for entries set without one
            max_size: Optional capacity; oldest inserted entry is evicted
            clock: Time source, injectable for tests
        """
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.name = name
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._data: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        # Counters are approximate under contention
        self._hits = 0
        self._misses = 0

    def _is_live(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp < entry.ttl

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        entry = self._data.get(key)
        if entry is None:
            self._misses += 1
            return None

        if not self._is_live(entry, self._clock()):
            self._misses += 1
            # Opportunistic eviction; skipped when a writer holds the lock
            if self._lock.acquire(blocking=False):
                try:
                    if self._data.get(key) is entry:
                        del self._data[key]
                finally:
                    self._lock.release()
            return None

        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value. `ttl` overrides the pool default for this entry."""
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be positive")
        entry = CacheEntry(key, value, self._clock(), ttl or self.default_ttl)

        with self._lock:
            if self.max_size and key not in self._data and len(self._data) >= self.max_size:
                oldest = next(iter(self._data))
                del self._data[oldest]
            self._data[key] = entry

    def delete(self, key: str) -> bool:
        """Remove one key. Returns True if it was present."""
        with self._lock:
            return self._data.pop(key, None) is not None

    def delete_by_pattern(self, pattern: str) -> int:
        """
        Remove every key matching a glob such as "search_*".

        The glob is anchored, so "search_*" never touches "popular:search_x".

        Returns:
            Number of keys removed
        """
        regex = compile_glob(pattern)
        with self._lock:
            doomed = [key for key in self._data if regex.fullmatch(key)]
            for key in doomed:
                del self._data[key]

        if doomed:
            logger.debug(f"Cache '{self.name}': invalidated {len(doomed)} keys matching '{pattern}'")
        return len(doomed)

    def clear(self) -> int:
        """Remove all entries and reset statistics."""
        with self._lock:
            removed = len(self._data)
            self._data.clear()
            self._hits = 0
            self._misses = 0
        return removed

    def cleanup(self) -> int:
        """
        Eagerly evict expired entries.

        Returns:
            Number of entries evicted
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._data.items() if not self._is_live(entry, now)]
            for key in expired:
                del self._data[key]
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        """
        Get pool statistics.

        Returns:
            Dict with:
                - size: Number of live entries
                - keys: Live keys
                - default_ttl: Pool default TTL in seconds
                - hits / misses / hit_rate
        """
        now = self._clock()
        keys = [key for key, entry in list(self._data.items()) if self._is_live(entry, now)]
        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0

        return {
            'name': self.name,
            'size': len(keys),
            'keys': keys,
            'default_ttl': self.default_ttl,
            'hits': self._hits,
            'misses': self._misses,
            'hit_rate': round(hit_rate, 2)
        }

    def __len__(self) -> int:
        return self.stats()['size']

    def __repr__(self):
        return f"<CachePool(name='{self.name}', default_ttl={self.default_ttl})>"


class CacheRegistry:
    """Named cache pools for one application instance."""

    def __init__(
        self,
        query_ttl: float = TTL_QUERY,
        listing_ttl: float = TTL_LISTING,
        daily_ttl: float = TTL_DAILY,
        resolver_ttl: float = TTL_RESOLVER,
        max_size: Optional[int] = 1000,
        clock: Callable[[], float] = time.time
    ):
        self.query = CachePool('query', query_ttl, max_size=max_size, clock=clock)
        self.listing = CachePool('listing', listing_ttl, max_size=max_size, clock=clock)
        self.daily = CachePool('daily', daily_ttl, max_size=max_size, clock=clock)
        self.resolver = CachePool('resolver', resolver_ttl, max_size=max_size, clock=clock)
        self._pools = {
            pool.name: pool
            for pool in (self.query, self.listing, self.daily, self.resolver)
        }

    def get(self, name: str) -> Optional[CachePool]:
        return self._pools.get(name)

    def pools(self) -> Dict[str, CachePool]:
        return dict(self._pools)

    def cleanup(self) -> int:
        """Sweep expired entries from every pool."""
        evicted = sum(pool.cleanup() for pool in self._pools.values())
        if evicted:
            logger.info(f"🧹 Cache cleanup evicted {evicted} expired entries")
        return evicted

    def stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: pool.stats() for name, pool in self._pools.items()}

    def clear(self, pattern: Optional[str] = None, pool: Optional[str] = None) -> int:
        """Clear every pool (or one), optionally only keys matching `pattern`."""
        targets = [self._pools[pool]] if pool else list(self._pools.values())
        removed = 0
        for target in targets:
            removed += target.delete_by_pattern(pattern) if pattern else target.clear()
        return removed

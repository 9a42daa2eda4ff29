"""
Result Cache - In-process TTL map for run results and read-side queries.

- Lazy expiry on read, plus cleanup() sweep (optionally on a background
  asyncio task via start_sweeper)
- invalidate_pattern() for regex-based invalidation after writes
- Oldest-entry eviction at max_size
- Not durable: contents are lost on process restart

Key conventions:
    scrape_run:{json params}   cached RunResult objects
    records:{json params}      cached record listings (ScrapingOrchestrator.list_records)
    scrape_job:last_run        scheduler bookkeeping
"""
import asyncio
import inspect
import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
DEFAULT_MAX_SIZE = 500


@dataclass
class CacheEntry:
    key: str
    value: Any
    expiry: float
    created_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expiry


class ResultCache:
    """TTL cache with max size limit, lazy expiry and pattern invalidation."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: Dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._sweeper: Optional[asyncio.Task] = None

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: Any object; stored by reference
            ttl: Seconds to live, defaults to the cache's default_ttl
        """
        ttl = self._default_ttl if ttl is None else ttl
        now = self._clock()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_size:
                oldest_key = min(self._entries, key=lambda k: self._entries[k].created_at)
                del self._entries[oldest_key]
            self._entries[key] = CacheEntry(key=key, value=value, expiry=now + ttl, created_at=now)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def has(self, key: str) -> bool:
        """Check presence without touching hit/miss counters."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def invalidate_pattern(self, pattern: Union[str, "re.Pattern"]) -> int:
        """
        Delete every key matching a regex.

        Returns:
            Number of entries removed
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        with self._lock:
            doomed = [key for key in self._entries if regex.search(key)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.info(f"Invalidated {len(doomed)} cache entries matching {regex.pattern}")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Result cache cleared")

    def cleanup(self) -> int:
        """Evict all expired entries. Returns the number evicted."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Cache cleanup evicted {len(expired)} entries")
        return len(expired)

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Union[Any, Awaitable[Any]]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Return the cached value or compute, store and return it. None is not cached."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = factory()
        if inspect.isawaitable(value):
            value = await value
        if value is not None:
            self.set(key, value, ttl)
        return value

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                'size': len(self._entries),
                'max_size': self._max_size,
                'default_ttl': self._default_ttl,
                'hits': self._hits,
                'misses': self._misses,
                'hit_rate': round(self._hits / total, 4) if total else 0.0,
            }

    # =========================================================================
    # Background sweep
    # =========================================================================

    def start_sweeper(self, interval: float = 300.0) -> asyncio.Task:
        """Start a periodic cleanup task on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep(interval))
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.cleanup()

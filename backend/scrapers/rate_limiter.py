"""
Scraper Rate Limiter - Source-keyed sliding window throttling.

Each source gets its own SourceRateLimiter instance with independent state,
so throttling one source never delays another. Limits are loaded from
rate_limits.yaml (defaults plus per-source overrides).

Callers of the same source are serialized by an asyncio.Lock, which hands
the lock to waiters in arrival order. A caller that has to wait sleeps while
holding the lock, so later arrivals queue behind it instead of racing for
the freed slot.
"""
import asyncio
import logging
import time
from collections import deque
from pathlib import Path
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

import yaml

from .errors import RateLimitWait
from .observability import log_event

logger = logging.getLogger(__name__)

DEFAULT_LIMITS = {
    "max_requests": 10,
    "window_seconds": 60,
}

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[Any]]


class SourceRateLimiter:
    """Sliding window limiter for a single source."""

    def __init__(
        self,
        source_name: str,
        max_requests: int,
        window_seconds: float,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1 for {source_name}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0 for {source_name}")

        self.source_name = source_name
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._sleep = sleep
        self._timestamps: Deque[float] = deque()
        self._window_start: Optional[float] = None
        self._queued = 0
        self._lock: Optional[asyncio.Lock] = None

    @property
    def lock(self) -> asyncio.Lock:
        # Created lazily so the limiter can be built outside a running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()
        self._window_start = self._timestamps[0] if self._timestamps else None

    async def throttle(self) -> Optional[RateLimitWait]:
        """
        Wait until a request slot is free, then record the request.

        Returns:
            The last RateLimitWait event if the caller had to wait, else None
        """
        self._queued += 1
        waited: Optional[RateLimitWait] = None
        try:
            async with self.lock:
                while True:
                    now = self._clock()
                    self._prune(now)

                    if len(self._timestamps) < self.max_requests:
                        self._timestamps.append(now)
                        if self._window_start is None:
                            self._window_start = now
                        return waited

                    wait_seconds = self.window_seconds - (now - self._timestamps[0])
                    waited = RateLimitWait(
                        source_name=self.source_name,
                        wait_seconds=round(wait_seconds, 3),
                        queued_requests=self._queued - 1,
                    )
                    log_event(
                        "rate_limit_wait",
                        level=logging.DEBUG,
                        source=self.source_name,
                        wait_seconds=waited.wait_seconds,
                        queued=waited.queued_requests,
                    )
                    await self._sleep(max(wait_seconds, 0.0))
        finally:
            self._queued -= 1

    def reset(self) -> None:
        """Clear request history."""
        self._timestamps.clear()
        self._window_start = None

    def is_allowed(self) -> bool:
        """Check if a request would pass without waiting."""
        self._prune(self._clock())
        return len(self._timestamps) < self.max_requests

    def get_status(self) -> Dict[str, Any]:
        now = self._clock()
        self._prune(now)
        reset_in = 0.0
        if self._timestamps:
            reset_in = max(0.0, self.window_seconds - (now - self._timestamps[0]))
        return {
            "source": self.source_name,
            "current": len(self._timestamps),
            "limit": self.max_requests,
            "remaining": max(0, self.max_requests - len(self._timestamps)),
            "window_seconds": self.window_seconds,
            "reset_in_seconds": round(reset_in, 3),
            "is_allowed": len(self._timestamps) < self.max_requests,
        }


class ScraperRateLimiter:
    """Registry of per-source limiters built from YAML configuration."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        """
        Initialize rate limiter registry.

        Args:
            config_path: Path to YAML config file.
                        Defaults to scrapers/rate_limits.yaml
            config: Already-parsed config, takes precedence over config_path
            clock: Monotonic clock, injectable for tests
            sleep: Async sleep, injectable for tests
        """
        self.config_path = config_path or self._default_config_path()
        self._config = config
        self._clock = clock
        self._sleep = sleep
        self._limiters: Dict[str, SourceRateLimiter] = {}

    def _default_config_path(self) -> str:
        return str(Path(__file__).parent / "rate_limits.yaml")

    @property
    def config(self) -> Dict[str, Any]:
        """Load config (cached)."""
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def _load_config(self) -> Dict[str, Any]:
        """Load rate limit configuration from YAML."""
        try:
            with open(self.config_path, "r") as f:
                config = yaml.safe_load(f) or {}
                logger.info(f"Loaded rate limits from {self.config_path}")
                return config
        except FileNotFoundError:
            logger.warning(
                f"Rate limit config not found at {self.config_path}, using defaults"
            )
            return {"defaults": dict(DEFAULT_LIMITS), "sources": {}}

    def get_limits(self, source_name: str) -> Dict[str, Any]:
        """
        Get limits for a source.

        Args:
            source_name: Source identifier (e.g. 'dribbble')

        Returns:
            Dict with max_requests and window_seconds
        """
        defaults = self.config.get("defaults", {}) or {}
        source_config = (self.config.get("sources", {}) or {}).get(source_name, {}) or {}

        limits = {
            "max_requests": defaults.get("max_requests", DEFAULT_LIMITS["max_requests"]),
            "window_seconds": defaults.get("window_seconds", DEFAULT_LIMITS["window_seconds"]),
        }
        for key in limits:
            if key in source_config:
                limits[key] = source_config[key]
        return limits

    def for_source(self, source_name: str) -> SourceRateLimiter:
        """Get (or lazily create) the limiter for a source."""
        limiter = self._limiters.get(source_name)
        if limiter is None:
            limits = self.get_limits(source_name)
            limiter = SourceRateLimiter(
                source_name,
                max_requests=int(limits["max_requests"]),
                window_seconds=float(limits["window_seconds"]),
                clock=self._clock,
                sleep=self._sleep,
            )
            self._limiters[source_name] = limiter
        return limiter

    async def throttle(self, source_name: str) -> Optional[RateLimitWait]:
        return await self.for_source(source_name).throttle()

    def reset(self, source_name: str) -> None:
        if source_name in self._limiters:
            self._limiters[source_name].reset()
            logger.info(f"Rate limiter reset for {source_name}")

    def reset_all(self) -> None:
        for limiter in self._limiters.values():
            limiter.reset()
        logger.info("All rate limiters reset")

    def is_allowed(self, source_name: str) -> bool:
        return self.for_source(source_name).is_allowed()

    def get_status(self, source_name: str) -> Dict[str, Any]:
        return self.for_source(source_name).get_status()


# Global instance (lazy init)
_rate_limiter = None


def get_scraper_rate_limiter() -> ScraperRateLimiter:
    """Get the process-wide scraper rate limiter used by run_scrape_job."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = ScraperRateLimiter()
    return _rate_limiter

"""
Extraction Strategies - Ways of getting a listing page's markup.

Adapters hold an ordered list of strategies and try each in turn:

1. BrowserStrategy: headless Chromium via Playwright. Navigates, waits for
   listing cards, then runs bounded scroll/idle-wait cycles to trigger lazy
   loading, parsing the DOM after each cycle.
2. StaticFetchStrategy: a single httpx GET with browser-like headers,
   parsed once (no dynamic loading).

Both strategies parse with the adapter's own card parser, raise
NavigationError on any load failure and observe the request's cancellation
token before every network call and scroll cycle. Browser sessions and HTTP
clients are scoped with ``async with`` so they are released on success,
error and cancellation alike.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, List, Optional

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .errors import AdapterTimeout, NavigationError
from .models.records import RawRecord
from .source_config import SourceConfig

if TYPE_CHECKING:
    from .base import BaseScraper

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Upgrade-Insecure-Requests": "1",
}

VIEWPORT = {"width": 1920, "height": 1080}

# Stop scrolling after this many cycles that add nothing new
MAX_STALE_CYCLES = 2


# =============================================================================
# Request context
# =============================================================================

class CancellationToken:
    """
    Cooperative cancellation for one adapter task.

    The orchestrator cancels the token when the adapter's budget expires;
    strategies call check() at their checkpoints. The asyncio task is also
    cancelled, so a strategy blocked inside I/O is interrupted either way.
    """

    def __init__(self, deadline: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._deadline = deadline
        self._clock = clock
        self._reason: Optional[str] = None

    @classmethod
    def with_timeout(cls, seconds: float, clock: Callable[[], float] = time.monotonic) -> "CancellationToken":
        return cls(deadline=clock() + seconds, clock=clock)

    def cancel(self, reason: str = "timeout") -> None:
        if self._reason is None:
            self._reason = reason

    @property
    def cancelled(self) -> bool:
        if self._reason is not None:
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def check(self, source_name: Optional[str] = None) -> None:
        """Raise AdapterTimeout if the token has been cancelled or has expired."""
        if self.cancelled:
            raise AdapterTimeout(
                f"Cancelled at checkpoint ({self._reason or 'deadline passed'})",
                source_name=source_name,
            )


@dataclass(frozen=True)
class ExtractionRequest:
    """What an adapter is asked to fetch."""
    limit: int
    query: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)
    token: CancellationToken = field(default_factory=CancellationToken)
    # True when the caller already consumed a rate-limit slot for the first request
    slot_reserved: bool = False


class RecordCollector:
    """Accumulates raw records in listing order, unique by source_id, up to limit."""

    def __init__(self, limit: int):
        self.limit = limit
        self.records: List[RawRecord] = []
        self._seen = set()

    @property
    def full(self) -> bool:
        return len(self.records) >= self.limit

    def add_all(self, records: List[RawRecord]) -> int:
        added = 0
        for record in records:
            if self.full:
                break
            source_id = record.get("source_id")
            if source_id:
                if source_id in self._seen:
                    continue
                self._seen.add(source_id)
            self.records.append(record)
            added += 1
        return added


# =============================================================================
# Strategy interface
# =============================================================================

class ExtractionStrategy(ABC):
    """One way of obtaining and parsing a listing."""

    name: str = "base"

    @abstractmethod
    async def collect(self, adapter: "BaseScraper", request: ExtractionRequest) -> List[RawRecord]:
        """
        Fetch the adapter's listing and return parsed raw records.

        Raises:
            NavigationError: page could not be loaded
            AdapterTimeout: cancellation token observed
        """
        pass


# =============================================================================
# Browser strategy
# =============================================================================

@asynccontextmanager
async def open_browser_page(config: SourceConfig) -> AsyncIterator[Any]:
    """Launch Chromium and yield a configured page; always closes the browser."""
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(
            headless=True,
            args=["--no-sandbox", "--disable-dev-shm-usage", "--disable-gpu"],
        )
        try:
            context = await browser.new_context(
                user_agent=USER_AGENT,
                viewport=VIEWPORT,
                locale="en-US",
            )
            page = await context.new_page()

            if config.block_resources:
                async def _block_heavy(route):
                    if route.request.resource_type in config.block_resources:
                        await route.abort()
                    else:
                        await route.continue_()

                await page.route("**/*", _block_heavy)

            yield page
        finally:
            await browser.close()
            logger.debug(f"Browser closed for {config.name}")


class BrowserStrategy(ExtractionStrategy):
    """Primary strategy: rendered DOM with progressive lazy loading."""

    name = "browser"

    def __init__(
        self,
        page_factory: Callable[[SourceConfig], Any] = open_browser_page,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self._page_factory = page_factory
        self._sleep = sleep

    async def collect(self, adapter: "BaseScraper", request: ExtractionRequest) -> List[RawRecord]:
        config = adapter.config
        url = adapter.listing_url(request)

        await adapter.before_request(request)
        try:
            async with self._page_factory(config) as page:
                return await self._collect_from_page(page, adapter, request, url)
        except PlaywrightError as e:
            raise NavigationError(
                f"Browser load failed for {url}: {e}", source_name=config.name
            ) from e

    async def _collect_from_page(
        self, page, adapter: "BaseScraper", request: ExtractionRequest, url: str
    ) -> List[RawRecord]:
        config = adapter.config

        await page.goto(url, wait_until="domcontentloaded", timeout=config.navigation_timeout_ms)
        await page.wait_for_selector(config.selectors.card, timeout=config.selector_timeout_ms)

        collector = RecordCollector(request.limit)
        stale_cycles = 0

        for cycle in range(config.max_scrolls + 1):
            request.token.check(config.name)

            html = await page.content()
            added = collector.add_all(adapter.parse_listing(html, url))
            logger.debug(
                f"[{config.name}] cycle {cycle}: +{added} (total {len(collector.records)})"
            )

            if collector.full or cycle == config.max_scrolls:
                break

            stale_cycles = stale_cycles + 1 if added == 0 else 0
            if stale_cycles >= MAX_STALE_CYCLES:
                logger.debug(f"[{config.name}] no new content after {stale_cycles} cycles")
                break

            await self._scroll(page, config)
            await self._sleep(config.scroll_wait_seconds)

        return collector.records

    async def _scroll(self, page, config: SourceConfig) -> None:
        await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
        if not config.selectors.load_more:
            return
        button = await page.query_selector(config.selectors.load_more)
        if button is not None:
            try:
                await button.click()
            except PlaywrightError as e:
                # Button detached between lookup and click; the scroll still happened
                logger.debug(f"[{config.name}] load-more click failed: {e}")


# =============================================================================
# Static strategy
# =============================================================================

class StaticFetchStrategy(ExtractionStrategy):
    """Fallback strategy: initial HTML only."""

    name = "static"

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._transport = transport

    def _client(self, config: SourceConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=BROWSER_HEADERS,
            timeout=httpx.Timeout(config.navigation_timeout_ms / 1000),
            follow_redirects=True,
            transport=self._transport,
        )

    async def collect(self, adapter: "BaseScraper", request: ExtractionRequest) -> List[RawRecord]:
        config = adapter.config
        url = adapter.listing_url(request)

        await adapter.before_request(request)
        async with self._client(config) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise NavigationError(
                    f"HTTP {e.response.status_code} for {url}", source_name=config.name
                ) from e
            except httpx.HTTPError as e:
                raise NavigationError(
                    f"Request failed for {url}: {e.__class__.__name__}: {e}",
                    source_name=config.name,
                ) from e

        request.token.check(config.name)
        collector = RecordCollector(request.limit)
        collector.add_all(adapter.parse_listing(response.text, str(response.url)))
        return collector.records


def default_strategies() -> List[ExtractionStrategy]:
    return [BrowserStrategy(), StaticFetchStrategy()]

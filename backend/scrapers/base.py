"""
Base Scraper - Abstract template for all source adapters.

Provides common functionality:
- extract(): strategy chain (browser, then static) with whole-chain
  retries and exponential backoff
- Rate limiting integration (injected per-source limiter)
- Listing parsing with per-card error isolation
- Small BeautifulSoup helpers for card field extraction
"""
import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from .categories import native_category
from .errors import ExtractionError, ParseError
from .models.records import RawRecord
from .observability import log_event
from .rate_limiter import SourceRateLimiter
from .source_config import SourceConfig, get_source_config
from .strategies import ExtractionRequest, ExtractionStrategy, default_strategies

logger = logging.getLogger(__name__)


class BaseScraper(ABC):
    """
    Abstract base class for all source adapters.

    Subclasses must implement:
    - parse_card(): Turn one listing card into a RawRecord (or None to skip)

    Subclasses should set class attributes:
    - SCRAPER_NAME: Source identifier, key into SOURCE_CONFIGS
    """

    # Override in subclass
    SCRAPER_NAME: str = "base"

    def __init__(
        self,
        config: Optional[SourceConfig] = None,
        rate_limiter: Optional[SourceRateLimiter] = None,
        strategies: Optional[List[ExtractionStrategy]] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        """
        Initialize adapter.

        Args:
            config: Source configuration (defaults to SOURCE_CONFIGS entry)
            rate_limiter: This source's limiter; None disables throttling
            strategies: Ordered strategy chain (defaults to browser, static)
            sleep: Async sleep used for retry backoff, injectable for tests
        """
        self.config = config or get_source_config(self.SCRAPER_NAME)
        self.rate_limiter = rate_limiter
        self.strategies = strategies if strategies is not None else default_strategies()
        self._sleep = sleep
        self.last_strategy: Optional[str] = None
        self._requests_made = 0
        self._stats = {
            "attempts": 0,
            "requests": 0,
            "strategy_failures": 0,
            "cards_seen": 0,
            "cards_skipped": 0,
            "parse_errors": 0,
        }

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def increment_stat(self, stat_name: str, amount: int = 1):
        """Increment a statistic counter."""
        if stat_name in self._stats:
            self._stats[stat_name] += amount

    # =========================================================================
    # Extraction
    # =========================================================================

    async def extract(self, request: ExtractionRequest) -> List[RawRecord]:
        """
        Extract up to request.limit raw records.

        Tries each strategy in order per attempt. A strategy that returns
        nothing falls through to the next one; an empty result from the
        last strategy is accepted. When every strategy fails, the whole
        chain is retried after retry_delay * 2**(attempt-1) seconds.

        Raises:
            ExtractionError: all attempts failed
            AdapterTimeout: the request's token was cancelled
        """
        max_attempts = self.config.max_retries
        self._requests_made = 0
        self.last_strategy = None
        last_error: Optional[Exception] = None
        started = time.monotonic()

        for attempt in range(1, max_attempts + 1):
            self.increment_stat("attempts")
            empty_from: Optional[str] = None

            for strategy in self.strategies:
                request.token.check(self.name)
                try:
                    records = await strategy.collect(self, request)
                except ExtractionError as e:
                    last_error = e
                    self.increment_stat("strategy_failures")
                    logger.warning(
                        f"[{self.name}] {strategy.name} strategy failed "
                        f"(attempt {attempt}/{max_attempts}): {e}"
                    )
                    continue

                if records:
                    return self._finish(strategy.name, records, attempt, started)
                empty_from = empty_from or strategy.name
                logger.info(f"[{self.name}] {strategy.name} strategy returned no records")

            if empty_from is not None:
                return self._finish(empty_from, [], attempt, started)

            if attempt < max_attempts:
                delay = self.config.retry_delay_seconds * (2 ** (attempt - 1))
                logger.info(f"[{self.name}] retrying in {delay:.1f}s")
                await self._sleep(delay)

        log_event(
            "adapter_failed",
            level=logging.WARNING,
            source=self.name,
            attempts=max_attempts,
            error=str(last_error),
        )
        raise ExtractionError(
            f"All strategies failed after {max_attempts} attempts: {last_error}",
            source_name=self.name,
        ) from last_error

    def _finish(self, strategy_name: str, records: List[RawRecord], attempt: int, started: float) -> List[RawRecord]:
        self.last_strategy = strategy_name
        log_event(
            "adapter_extracted",
            source=self.name,
            strategy=strategy_name,
            attempt=attempt,
            records=len(records),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return records

    async def before_request(self, request: ExtractionRequest) -> None:
        """
        Checkpoint before every network request.

        The first request of a call uses the slot the orchestrator already
        reserved (when slot_reserved is set); later ones, such as retries
        and fallbacks, throttle on the injected limiter.
        """
        request.token.check(self.name)
        needs_slot = self._requests_made > 0 or not request.slot_reserved
        if needs_slot and self.rate_limiter is not None:
            await self.rate_limiter.throttle()
            request.token.check(self.name)
        self._requests_made += 1
        self.increment_stat("requests")

    def listing_url(self, request: ExtractionRequest) -> str:
        """URL to fetch for a request (search, category or plain listing)."""
        category = native_category(request.filters.get("category"), self.name)
        return self.config.url_for(query=request.query, category=category)

    # =========================================================================
    # Parsing
    # =========================================================================

    def parse_listing(self, html: str, page_url: str) -> List[RawRecord]:
        """
        Parse every card on a listing page.

        Cards that raise ParseError, or trip over drifted markup with an
        AttributeError, TypeError or ValueError, are logged and skipped.
        Cards for which parse_card returns None are filtered out (ads,
        off-topic items).
        """
        soup = BeautifulSoup(html, "html.parser")
        records = []
        for index, card in enumerate(soup.select(self.config.selectors.card)):
            self.increment_stat("cards_seen")
            try:
                record = self.parse_card(card, page_url)
            except ParseError as e:
                self.increment_stat("parse_errors")
                logger.debug(f"[{self.name}] skipping card {index}: {e}")
                continue
            except (AttributeError, TypeError, ValueError) as e:
                self.increment_stat("parse_errors")
                logger.warning(f"[{self.name}] skipping card {index}: {e.__class__.__name__}: {e}")
                continue
            if record is None:
                self.increment_stat("cards_skipped")
                continue
            record.setdefault("kind", self.config.kind.value)
            records.append(record)
        return records

    @abstractmethod
    def parse_card(self, card: Tag, page_url: str) -> Optional[RawRecord]:
        """
        Parse a single listing card.

        Args:
            card: BeautifulSoup element matched by the card selector
            page_url: URL of the listing page (for resolving relative links)

        Returns:
            RawRecord dict, or None to skip the card

        Raises:
            ParseError: card is structurally unusable
        """
        pass

    # =========================================================================
    # Card helpers
    # =========================================================================

    @staticmethod
    def select_text(card: Tag, selector: str) -> str:
        if not selector:
            return ""
        element = card.select_one(selector)
        return element.get_text(" ", strip=True) if element else ""

    @staticmethod
    def select_texts(card: Tag, selector: str) -> List[str]:
        if not selector:
            return []
        texts = [el.get_text(" ", strip=True) for el in card.select(selector)]
        return [t for t in texts if t]

    @staticmethod
    def select_attr(card: Tag, selector: str, *attrs: str) -> Optional[str]:
        """First non-empty attribute value among attrs on the first matching element."""
        if not selector:
            return None
        return element_attr(card.select_one(selector), *attrs)

    def absolute_url(self, href: Optional[str], page_url: Optional[str] = None) -> Optional[str]:
        if not href:
            return None
        href = href.strip()
        if href.startswith(("javascript:", "mailto:", "#")):
            return None
        return urljoin(page_url or self.config.base_url, href)

    def require(self, value: Optional[str], field: str) -> str:
        """Raise ParseError if a card is missing a structural field."""
        if not value:
            raise ParseError(f"card has no {field}", source_name=self.name)
        return value


def element_attr(element: Optional[Tag], *attrs: str) -> Optional[str]:
    """First non-empty attribute among attrs; srcset values yield their first URL."""
    if element is None:
        return None
    for attr in attrs:
        value = element.get(attr)
        if isinstance(value, list):
            value = " ".join(value)
        if value:
            value = value.strip()
            if attr.endswith("srcset"):
                value = value.split(",")[0].strip().split(" ")[0]
            return value
    return None


def last_path_segment(url: str) -> Optional[str]:
    path = re.sub(r"[?#].*$", "", url).rstrip("/")
    segment = path.rsplit("/", 1)[-1] if "/" in path else path
    return segment or None


_HEX_IN_TEXT_RE = re.compile(r"#[0-9A-Fa-f]{6}\b")
_COUNT_IN_TEXT_RE = re.compile(r"\d[\d,]*(?:\.\d+)?\s*[kKmM]?")


def select_colors(card: Tag, selector: str) -> List[str]:
    """Hex colors from swatch data-color attributes, inline styles or text."""
    colors = []
    if not selector:
        return colors
    for element in card.select(selector):
        candidates = [element.get("data-color") or "", element.get("style") or "", element.get_text(" ", strip=True)]
        for candidate in candidates:
            match = _HEX_IN_TEXT_RE.search(candidate)
            if match:
                colors.append(match.group(0))
                break
    return colors


def first_count(text: str) -> Optional[str]:
    """'1,234 participants' -> '1,234'; '2.3k views' -> '2.3k'."""
    if not text:
        return None
    match = _COUNT_IN_TEXT_RE.search(text)
    return match.group(0).replace(" ", "") if match else None

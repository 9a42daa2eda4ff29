"""
Scraping Orchestrator - Coordinates one scrape run across sources.

Responsibilities:
1. Short-circuits repeated runs through the result cache
2. Resolves which sources to run (requested ∩ registered ∩ enabled)
3. Runs adapters concurrently, each under a hard timeout that includes its
   rate-limit wait
4. Normalizes each adapter's output into a task-local buffer
5. Merges buffers and hands records to the persistence gateway in batches
6. Caches and returns the RunResult

run() never raises for source failures; they are reported per source in
RunResult.per_source_outcome.
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, Union

from pydantic import ValidationError as PydanticValidationError

from .adapters import ADAPTER_CLASSES
from .base import BaseScraper
from .cache import ResultCache
from .errors import AdapterTimeout, ConfigurationError
from .models.records import CanonicalRecord, RawRecord
from .models.run_options import RunOptions
from .models.run_result import AdapterState, RunResult, SourceOutcome
from .normalizer import normalize_many
from .observability import log_event, new_run_id
from .persistence import PersistenceGateway
from .rate_limiter import ScraperRateLimiter, SourceRateLimiter
from .scoring import TrendingScorer, engagement_trending_score
from .source_config import SOURCE_CONFIGS, sources_by_priority
from .strategies import CancellationToken, ExtractionRequest
from .utils.cache_key import build_json_cache_key

logger = logging.getLogger(__name__)

DEFAULT_ADAPTER_TIMEOUT = 9.0
DEFAULT_MAX_CONCURRENCY = 6
DEFAULT_RUN_CACHE_TTL = 3600

RUN_CACHE_PREFIX = "scrape_run"
RECORDS_CACHE_PREFIX = "records"
RECORDS_CACHE_PATTERN = r"^records:"
DEFAULT_RECORDS_CACHE_TTL = 300

AdapterFactory = Callable[[Type[BaseScraper], SourceRateLimiter], BaseScraper]
OptionsInput = Union[RunOptions, Mapping[str, Any], None]


def default_adapter_factory(adapter_class: Type[BaseScraper], rate_limiter: SourceRateLimiter) -> BaseScraper:
    return adapter_class(rate_limiter=rate_limiter)


def coerce_options(options: OptionsInput) -> RunOptions:
    """
    Accept RunOptions, a plain dict or None.

    Raises:
        ConfigurationError: options failed validation
    """
    if options is None:
        return RunOptions()
    if isinstance(options, RunOptions):
        return options
    if isinstance(options, Mapping):
        try:
            return RunOptions(**options)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid run options: {problems}") from e
    raise ConfigurationError(f"Unsupported run options type: {type(options).__name__}")


class ScrapingOrchestrator:
    """
    Main orchestrator for scrape runs.

    Coordinates:
    - Adapter execution with per-source rate limiting and timeouts
    - Normalization and trending scoring
    - Batched persistence (skipped when no gateway is configured)
    - Run-level result caching
    """

    def __init__(
        self,
        rate_limiter: Optional[ScraperRateLimiter] = None,
        cache: Optional[ResultCache] = None,
        gateway: Optional[PersistenceGateway] = None,
        adapter_timeout: float = DEFAULT_ADAPTER_TIMEOUT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        scorer: Optional[TrendingScorer] = engagement_trending_score,
        cache_ttl: float = DEFAULT_RUN_CACHE_TTL,
        adapter_factory: AdapterFactory = default_adapter_factory,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Initialize orchestrator.

        Args:
            rate_limiter: Per-source limiter registry
            cache: Result cache shared across runs
            gateway: Persistence gateway; None means dry run
            adapter_timeout: Hard per-adapter budget in seconds, including
                the rate-limit wait
            max_concurrency: Maximum adapters running at once
            scorer: Trending scorer applied during normalization
            cache_ttl: TTL for cached RunResults
            adapter_factory: Builds an adapter from its class and limiter
            clock: UTC clock for run timestamps and relative dates
        """
        if adapter_timeout <= 0:
            raise ConfigurationError("adapter_timeout must be positive")
        if max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be >= 1")

        self.rate_limiter = rate_limiter or ScraperRateLimiter()
        self.cache = cache if cache is not None else ResultCache(default_ttl=cache_ttl)
        self.gateway = gateway
        self.adapter_timeout = adapter_timeout
        self.max_concurrency = max_concurrency
        self.scorer = scorer
        self.cache_ttl = cache_ttl
        self.adapter_factory = adapter_factory
        self._clock = clock
        self.scrapers: Dict[str, Type[BaseScraper]] = {}

    def register_scraper(self, scraper_class: Type[BaseScraper]):
        """
        Register an adapter class.

        Args:
            scraper_class: BaseScraper subclass
        """
        self.scrapers[scraper_class.SCRAPER_NAME] = scraper_class
        logger.info(f"Registered scraper: {scraper_class.SCRAPER_NAME}")

    def register_default_scrapers(self) -> "ScrapingOrchestrator":
        for scraper_class in ADAPTER_CLASSES.values():
            self.register_scraper(scraper_class)
        return self

    # =========================================================================
    # Runs
    # =========================================================================

    def cache_key(self, options: RunOptions) -> str:
        return build_json_cache_key(RUN_CACHE_PREFIX, options.cache_params())

    async def run(self, options: OptionsInput = None) -> RunResult:
        """
        Execute a scrape run, or return the cached result of an identical one.

        Raises:
            ConfigurationError: options failed validation
        """
        options = coerce_options(options)
        key = self.cache_key(options)

        if not options.force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                log_event("run_cache_hit", run_id=cached.run_id, cache_key=key)
                return cached

        sources, errors = self._select_sources(options)
        result = await self._execute(options, sources, errors)

        self.cache.set(key, result, ttl=self.cache_ttl)
        return result

    async def run_scraper(self, scraper_name: str, options: OptionsInput = None) -> RunResult:
        """Run a single source, bypassing the run cache."""
        options = coerce_options(options).model_copy(update={"enabled_sources": (scraper_name,)})
        sources, errors = self._select_sources(options)
        return await self._execute(options, sources, errors)

    def _select_sources(self, options: RunOptions) -> Tuple[List[str], List[str]]:
        """Resolve runnable sources; problems become configuration errors, not exceptions."""
        errors = []
        explicit = bool(options.enabled_sources)
        requested = options.enabled_sources if explicit else tuple(self.scrapers)

        selected = []
        for name in requested:
            config = SOURCE_CONFIGS.get(name)
            if config is None:
                errors.append(f"Unknown source: {name}")
            elif name not in self.scrapers:
                errors.append(f"No adapter registered for {name}")
            elif not config.enabled:
                if explicit:
                    errors.append(f"Source disabled: {name}")
            else:
                selected.append(name)

        if not requested:
            errors.append("No sources registered")

        return sources_by_priority(tuple(selected)), errors

    async def _execute(self, options: RunOptions, sources: List[str], errors: List[str]) -> RunResult:
        run_id = new_run_id()
        started = time.monotonic()
        result = RunResult(run_id=run_id, started_at=self._clock(), configuration_errors=list(errors))

        for error in errors:
            logger.warning(f"[run {run_id[:8]}] {error}")

        if not sources:
            result.duration_ms = int((time.monotonic() - started) * 1000)
            log_event("run_empty", level=logging.WARNING, run_id=run_id, configuration_errors=errors)
            return result

        log_event(
            "run_started",
            run_id=run_id,
            sources=sources,
            limit=options.limit,
            category=options.category,
            query=options.query,
        )

        result.per_source_outcome = {name: SourceOutcome(source_name=name) for name in sources}
        semaphore = asyncio.Semaphore(self.max_concurrency)
        now = self._clock()

        buffers = await asyncio.gather(*(
            self._run_source(name, options, result.per_source_outcome[name], semaphore, now)
            for name in sources
        ))

        # Last occurrence of a merge key wins
        merged: Dict[Tuple[str, str], CanonicalRecord] = {}
        for buffer in buffers:
            for record in buffer:
                merged[record.key] = record
        result.records = list(merged.values())

        if self.gateway is not None and result.records:
            result.persistence = await self.gateway.upsert_records(result.records)
            if result.persistence.written:
                invalidated = self.cache.invalidate_pattern(RECORDS_CACHE_PATTERN)
                logger.debug(f"[run {run_id[:8]}] invalidated {invalidated} read-side cache entries")

        result.duration_ms = int((time.monotonic() - started) * 1000)
        log_event(
            "run_completed",
            run_id=run_id,
            status=result.status,
            duration_ms=result.duration_ms,
            total_records=result.total_records,
            sources={name: o.to_dict() for name, o in result.per_source_outcome.items()},
            persistence=result.persistence.to_dict() if result.persistence else None,
        )
        return result

    async def _run_source(
        self,
        name: str,
        options: RunOptions,
        outcome: SourceOutcome,
        semaphore: asyncio.Semaphore,
        now: datetime,
    ) -> List[CanonicalRecord]:
        """Run one adapter to a terminal state; never raises for adapter or normalization failures."""
        async with semaphore:
            outcome.transition(AdapterState.RUNNING)
            started = time.monotonic()
            token = CancellationToken.with_timeout(self.adapter_timeout)

            try:
                adapter = self.adapter_factory(self.scrapers[name], self.rate_limiter.for_source(name))
                request = ExtractionRequest(
                    limit=min(options.limit, adapter.config.max_limit),
                    query=options.query,
                    filters={"category": options.category} if options.category else {},
                    token=token,
                    slot_reserved=True,
                )
                raws = await asyncio.wait_for(
                    self._throttle_and_extract(adapter, request),
                    timeout=self.adapter_timeout,
                )
                records = normalize_many(raws[:request.limit], name, now=now, scorer=self.scorer)
            except (asyncio.TimeoutError, AdapterTimeout):
                token.cancel("timeout")
                outcome.error = "timeout"
                outcome.duration_ms = int((time.monotonic() - started) * 1000)
                outcome.transition(AdapterState.TIMED_OUT)
                log_event(
                    "adapter_timeout",
                    level=logging.WARNING,
                    source=name,
                    timeout_seconds=self.adapter_timeout,
                )
                return []
            except Exception as e:
                outcome.error = str(e) or e.__class__.__name__
                outcome.duration_ms = int((time.monotonic() - started) * 1000)
                outcome.transition(AdapterState.FAILED)
                logger.error(f"[{name}] adapter failed: {e.__class__.__name__}: {e}")
                return []

            outcome.raw_count = len(raws)
            outcome.count = len(records)
            outcome.rejected = min(len(raws), request.limit) - len(records)
            outcome.strategy = adapter.last_strategy
            outcome.duration_ms = int((time.monotonic() - started) * 1000)
            outcome.transition(AdapterState.SUCCEEDED)
            return records

    async def _throttle_and_extract(self, adapter: BaseScraper, request: ExtractionRequest) -> List[RawRecord]:
        if adapter.rate_limiter is not None:
            await adapter.rate_limiter.throttle()
        return await adapter.extract(request)

    # =========================================================================
    # Operations
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Registered sources with config, limiter and cache state."""
        sources = {}
        for name in sources_by_priority(tuple(self.scrapers)):
            config = SOURCE_CONFIGS.get(name)
            sources[name] = {
                "display_name": config.display_name if config else name,
                "kind": config.kind.value if config else None,
                "enabled": bool(config and config.enabled),
                "priority": config.priority if config else None,
                "rate_limit": self.rate_limiter.get_status(name),
            }
        return {
            "sources": sources,
            "adapter_timeout_seconds": self.adapter_timeout,
            "max_concurrency": self.max_concurrency,
            "persistence_enabled": self.gateway is not None,
            "cache": self.cache.stats(),
        }

    async def list_records(self, ttl: float = DEFAULT_RECORDS_CACHE_TTL, **filters: Any) -> List[Dict[str, Any]]:
        """
        Stored records through the read-side cache.

        Results are cached under records:{filters} and dropped whenever a
        run writes new or changed records.

        Args:
            ttl: Seconds to keep a listing cached
            **filters: Passed to the store's list_records (source_name,
                category, kind, active_only, limit)

        Raises:
            ConfigurationError: persistence is not configured
        """
        if self.gateway is None:
            raise ConfigurationError("Persistence is not configured (DATABASE_URL not set)")

        store = self.gateway.store
        key = build_json_cache_key(RECORDS_CACHE_PREFIX, filters)
        return await self.cache.get_or_set(
            key,
            lambda: asyncio.to_thread(store.list_records, **filters),
            ttl=ttl,
        )

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Run cache cleared")

    def reset_rate_limiters(self) -> None:
        self.rate_limiter.reset_all()


# =============================================================================
# Entry point
# =============================================================================

_default_orchestrator: Optional[ScrapingOrchestrator] = None


def build_orchestrator(persist: bool = True) -> ScrapingOrchestrator:
    """
    Build an orchestrator from environment configuration.

    Persistence is enabled when persist is set and DATABASE_URL is present.
    """
    from config import (
        get_adapter_timeout_seconds,
        get_database_url,
        get_max_concurrency,
        get_persist_batch_size,
        get_run_cache_ttl_seconds,
    )
    from .rate_limiter import get_scraper_rate_limiter

    gateway = None
    if persist and get_database_url():
        from db.engine import get_engine
        from .persistence import SqlAlchemyRecordStore

        gateway = PersistenceGateway(
            SqlAlchemyRecordStore(get_engine()),
            batch_size=get_persist_batch_size(),
        )
    elif persist:
        logger.warning("DATABASE_URL not set, records will not be persisted")

    cache_ttl = get_run_cache_ttl_seconds()
    orchestrator = ScrapingOrchestrator(
        rate_limiter=get_scraper_rate_limiter(),
        cache=ResultCache(default_ttl=cache_ttl),
        gateway=gateway,
        adapter_timeout=get_adapter_timeout_seconds(),
        max_concurrency=get_max_concurrency(),
        cache_ttl=cache_ttl,
    )
    return orchestrator.register_default_scrapers()


def get_default_orchestrator() -> ScrapingOrchestrator:
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = build_orchestrator()
    return _default_orchestrator


async def run_scrape_job(options: OptionsInput = None) -> RunResult:
    """
    Entry point for triggers (CLI, scheduler).

    Args:
        options: RunOptions or a dict of its fields

    Raises:
        ConfigurationError: options failed validation
    """
    return await get_default_orchestrator().run(options)

"""
Scheduled jobs - Entry points for cron triggers.

run_scheduled_scrape: kill switch, minimum interval between runs and
    retry while a run comes back "down" (no source succeeded)
run_cleanup: deactivate expired hackathons, delete old inactive records
    and delete stale designs
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

from config import get_job_max_retries, get_min_interval_minutes, is_scraping_enabled

from .observability import log_event
from .orchestrator import OptionsInput, ScrapingOrchestrator, coerce_options, get_default_orchestrator

logger = logging.getLogger(__name__)

LAST_RUN_CACHE_KEY = "scrape_job:last_run"
RETRY_DELAY_SECONDS = 2.0
SWEEP_INTERVAL_SECONDS = 60.0
EXPIRED_GRACE_DAYS = 7
INACTIVE_RETENTION_DAYS = 90
DESIGN_RETENTION_DAYS = 60
DESIGN_MIN_SAVES = 5


def _should_run(orchestrator: ScrapingOrchestrator, now: float) -> Optional[str]:
    """Reason to skip, or None when the run should go ahead."""
    if not is_scraping_enabled():
        return "disabled"

    last_run = orchestrator.cache.get(LAST_RUN_CACHE_KEY)
    min_interval = get_min_interval_minutes() * 60
    if last_run is not None and now - last_run < min_interval:
        logger.info(
            f"Skipping scrape - too soon since last run ({int(now - last_run)}s < {min_interval}s)"
        )
        return "too_soon"
    return None


async def run_scheduled_scrape(
    orchestrator: Optional[ScrapingOrchestrator] = None,
    options: OptionsInput = None,
    sleep: Callable[[float], Any] = asyncio.sleep,
    clock: Callable[[], float] = time.time,
) -> Dict[str, Any]:
    """
    Run a scrape on behalf of the scheduler.

    Returns:
        Dict with status, attempts and the RunResult summary (when run)
    """
    orchestrator = orchestrator or get_default_orchestrator()
    options = coerce_options(options)

    skip_reason = _should_run(orchestrator, clock())
    if skip_reason:
        log_event("job_skipped", job="scrape", reason=skip_reason)
        return {"job": "scrape", "status": "skipped", "reason": skip_reason, "attempts": 0}

    max_retries = get_job_max_retries()
    result = None
    attempt = 0

    # Sweep expired cache entries for the duration of the job
    orchestrator.cache.start_sweeper(SWEEP_INTERVAL_SECONDS)
    try:
        for attempt in range(1, max_retries + 1):
            logger.info(f"Running scheduled scrape (attempt {attempt}/{max_retries})")
            # Retries must not be answered from the run cache
            run_options = options if attempt == 1 else options.model_copy(update={"force_refresh": True})
            result = await orchestrator.run(run_options)

            if result.status != "down":
                break
            if attempt < max_retries:
                logger.warning(f"Scrape attempt {attempt} returned no data, retrying in {RETRY_DELAY_SECONDS}s")
                await sleep(RETRY_DELAY_SECONDS)
    finally:
        await orchestrator.cache.stop_sweeper()

    orchestrator.cache.set(LAST_RUN_CACHE_KEY, clock(), ttl=max(get_min_interval_minutes() * 60, 1))

    log_event(
        "job_completed",
        job="scrape",
        status=result.status,
        attempts=attempt,
        run_id=result.run_id,
        total_records=result.total_records,
    )
    return {
        "job": "scrape",
        "status": result.status,
        "attempts": attempt,
        "result": result.to_dict(),
    }


def run_cleanup(store) -> Dict[str, int]:
    """
    Run store maintenance.

    Args:
        store: SqlAlchemyRecordStore (or anything with the same maintenance methods)

    Returns:
        Counts per step
    """
    started = time.monotonic()
    counts = {
        "deactivated": store.deactivate_expired(grace_days=EXPIRED_GRACE_DAYS),
        "deleted_inactive": store.delete_inactive(retention_days=INACTIVE_RETENTION_DAYS),
        "deleted_designs": store.delete_stale_designs(
            retention_days=DESIGN_RETENTION_DAYS, min_saves=DESIGN_MIN_SAVES
        ),
    }
    log_event(
        "job_completed",
        job="cleanup",
        duration_ms=int((time.monotonic() - started) * 1000),
        **counts,
    )
    return counts

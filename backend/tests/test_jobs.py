"""
Tests for scheduled job entry points.

run_scheduled_scrape is driven with a stub orchestrator that returns canned
RunResults, so retry and skip behaviour is checked without any adapters.
"""

import asyncio
from datetime import datetime
from unittest.mock import MagicMock

from scrapers.cache import ResultCache
from scrapers.jobs import LAST_RUN_CACHE_KEY, run_cleanup, run_scheduled_scrape
from scrapers.models import AdapterState, RunResult, SourceOutcome


def make_result(status, run_id="run-1"):
    """RunResult whose status property evaluates to status ('ok' or 'down')."""
    outcome = SourceOutcome("dribbble")
    outcome.transition(AdapterState.RUNNING)
    outcome.transition(AdapterState.SUCCEEDED if status == "ok" else AdapterState.FAILED)
    return RunResult(
        run_id=run_id,
        started_at=datetime(2025, 1, 10),
        per_source_outcome={"dribbble": outcome},
    )


class StubOrchestrator:
    def __init__(self, statuses):
        self.cache = ResultCache()
        self.statuses = list(statuses)
        self.calls = []
        self.sweeping = []

    async def run(self, options):
        self.calls.append(options)
        self.sweeping.append(self.cache._sweeper is not None and not self.cache._sweeper.done())
        return make_result(self.statuses.pop(0), run_id=f"run-{len(self.calls)}")


class TestScheduledScrape:
    """Tests for run_scheduled_scrape()"""

    def _run(self, orchestrator, fake_clock, options=None):
        return asyncio.run(run_scheduled_scrape(
            orchestrator, options=options, sleep=fake_clock.sleep, clock=fake_clock,
        ))

    def test_kill_switch(self, monkeypatch, fake_clock):
        monkeypatch.setenv("SCRAPING_ENABLED", "false")
        orchestrator = StubOrchestrator(["ok"])

        outcome = self._run(orchestrator, fake_clock)

        assert outcome == {"job": "scrape", "status": "skipped", "reason": "disabled", "attempts": 0}
        assert orchestrator.calls == []

    def test_too_soon(self, fake_clock):
        orchestrator = StubOrchestrator(["ok"])
        orchestrator.cache.set(LAST_RUN_CACHE_KEY, fake_clock() - 60)

        outcome = self._run(orchestrator, fake_clock)

        assert outcome["status"] == "skipped"
        assert outcome["reason"] == "too_soon"
        assert orchestrator.calls == []

    def test_zero_interval_allows_back_to_back(self, monkeypatch, fake_clock):
        monkeypatch.setenv("SCRAPE_MIN_INTERVAL_MINUTES", "0")
        orchestrator = StubOrchestrator(["ok"])
        orchestrator.cache.set(LAST_RUN_CACHE_KEY, fake_clock())

        assert self._run(orchestrator, fake_clock)["status"] == "ok"

    def test_success_first_attempt(self, fake_clock):
        orchestrator = StubOrchestrator(["ok"])

        outcome = self._run(orchestrator, fake_clock, options={"limit": 5})

        assert outcome["status"] == "ok"
        assert outcome["attempts"] == 1
        assert outcome["result"]["run_id"] == "run-1"
        assert orchestrator.calls[0].limit == 5
        assert fake_clock.sleeps == []

    def test_retry_after_down(self, fake_clock):
        """A down run is retried with force_refresh so the cache cannot answer"""
        orchestrator = StubOrchestrator(["down", "ok"])

        outcome = self._run(orchestrator, fake_clock)

        assert outcome["status"] == "ok"
        assert outcome["attempts"] == 2
        assert fake_clock.sleeps == [2.0]
        assert orchestrator.calls[0].force_refresh is False
        assert orchestrator.calls[1].force_refresh is True

    def test_gives_up_after_max_retries(self, fake_clock):
        orchestrator = StubOrchestrator(["down", "down", "down"])

        outcome = self._run(orchestrator, fake_clock)

        assert outcome["status"] == "down"
        assert outcome["attempts"] == 3
        assert fake_clock.sleeps == [2.0, 2.0]

    def test_max_retries_from_env(self, monkeypatch, fake_clock):
        monkeypatch.setenv("SCRAPE_JOB_MAX_RETRIES", "1")
        orchestrator = StubOrchestrator(["down"])

        outcome = self._run(orchestrator, fake_clock)

        assert outcome["attempts"] == 1
        assert fake_clock.sleeps == []

    def test_records_last_run(self, fake_clock):
        orchestrator = StubOrchestrator(["ok"])

        self._run(orchestrator, fake_clock)

        assert orchestrator.cache.get(LAST_RUN_CACHE_KEY) == fake_clock()

    def test_cache_swept_only_while_running(self, fake_clock):
        orchestrator = StubOrchestrator(["down", "ok"])

        self._run(orchestrator, fake_clock)

        assert orchestrator.sweeping == [True, True]
        assert orchestrator.cache._sweeper is None


class TestCleanup:
    """Tests for run_cleanup()"""

    def test_runs_each_step(self):
        store = MagicMock()
        store.deactivate_expired.return_value = 2
        store.delete_inactive.return_value = 3
        store.delete_stale_designs.return_value = 4

        counts = run_cleanup(store)

        assert counts == {"deactivated": 2, "deleted_inactive": 3, "deleted_designs": 4}
        store.deactivate_expired.assert_called_once_with(grace_days=7)
        store.delete_inactive.assert_called_once_with(retention_days=90)
        store.delete_stale_designs.assert_called_once_with(retention_days=60, min_saves=5)

    def test_against_real_store(self, record_store, record_factory):
        record_store.bulk_upsert([record_factory("1")])

        counts = run_cleanup(record_store)

        assert counts == {"deactivated": 0, "deleted_inactive": 0, "deleted_designs": 0}
        assert record_store.count() == 1

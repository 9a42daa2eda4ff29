"""
Tests for the click CLI.

build_orchestrator and the record store are replaced with mocks; commands
import build_orchestrator at call time, so patching the module attribute is
enough.
"""

import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

import cli as cli_module
from scrapers.errors import ConfigurationError
from scrapers.models import AdapterState, RunResult, SourceOutcome


def make_result(state=AdapterState.SUCCEEDED, records=()):
    outcome = SourceOutcome("dribbble")
    outcome.transition(AdapterState.RUNNING)
    outcome.transition(state)
    outcome.count = len(records)
    outcome.strategy = "browser" if state is AdapterState.SUCCEEDED else None
    if state is AdapterState.TIMED_OUT:
        outcome.error = "timeout"
    return RunResult(
        run_id="run-1",
        started_at=datetime(2025, 1, 10),
        per_source_outcome={"dribbble": outcome},
        records=list(records),
    )


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(cli_module, "setup_logging", lambda level: None)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def orchestrator(monkeypatch):
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock(return_value=make_result())
    orchestrator.run_scraper = AsyncMock(return_value=make_result())
    build = MagicMock(return_value=orchestrator)
    monkeypatch.setattr("scrapers.orchestrator.build_orchestrator", build)
    orchestrator.build = build
    return orchestrator


@pytest.fixture
def store(monkeypatch):
    store = MagicMock()
    monkeypatch.setattr(cli_module, "get_record_store", lambda: store)
    return store


# =============================================================================
# scrape / test-source
# =============================================================================

class TestScrapeCommand:
    """Tests for `scrape`"""

    def test_summary(self, runner, orchestrator, record_factory):
        orchestrator.run.return_value = make_result(records=[record_factory("1")])

        result = runner.invoke(cli_module.cli, ["scrape", "-s", "dribbble", "-n", "10", "-c", "ui-ux"])

        assert result.exit_code == 0
        assert "Mode: LIVE" in result.output
        assert "RUN SUMMARY" in result.output
        assert "dribbble" in result.output
        assert "via browser" in result.output
        orchestrator.build.assert_called_once_with(persist=True)
        orchestrator.run.assert_called_once_with({
            "enabled_sources": ["dribbble"],
            "limit": 10,
            "category": "ui-ux",
            "query": None,
            "force_refresh": False,
        })

    def test_dry_run(self, runner, orchestrator):
        result = runner.invoke(cli_module.cli, ["scrape", "--dry-run"])

        assert result.exit_code == 0
        assert "Mode: DRY RUN" in result.output
        orchestrator.build.assert_called_once_with(persist=False)

    def test_json_output(self, runner, orchestrator, record_factory):
        orchestrator.run.return_value = make_result(records=[record_factory("1")])

        result = runner.invoke(cli_module.cli, ["scrape", "--json"])

        data = json.loads(result.output)
        assert data["status"] == "ok"
        assert data["records"][0]["source_id"] == "1"

    def test_down_exits_1(self, runner, orchestrator):
        orchestrator.run.return_value = make_result(AdapterState.TIMED_OUT)

        result = runner.invoke(cli_module.cli, ["scrape"])

        assert result.exit_code == 1
        assert "(timeout)" in result.output

    def test_configuration_error_exits_2(self, runner, orchestrator):
        orchestrator.run.side_effect = ConfigurationError("Invalid run options: limit")

        result = runner.invoke(cli_module.cli, ["scrape", "-n", "0"])

        assert result.exit_code == 2
        assert "Invalid run options" in result.output

    def test_unknown_category_rejected_by_click(self, runner, orchestrator):
        result = runner.invoke(cli_module.cli, ["scrape", "-c", "posters"])

        assert result.exit_code == 2
        orchestrator.run.assert_not_called()


class TestTestSourceCommand:
    """Tests for `test-source`"""

    def test_prints_records(self, runner, orchestrator, record_factory):
        orchestrator.run_scraper.return_value = make_result(records=[record_factory("1")])

        result = runner.invoke(cli_module.cli, ["test-source", "Dribbble", "-n", "3"])

        assert result.exit_code == 0
        assert "[ui-ux] Shot 1" in result.output
        orchestrator.build.assert_called_once_with(persist=False)
        orchestrator.run_scraper.assert_called_once_with("dribbble", {"limit": 3, "query": None})

    def test_failure_exits_1(self, runner, orchestrator):
        orchestrator.run_scraper.return_value = make_result(AdapterState.FAILED)

        result = runner.invoke(cli_module.cli, ["test-source", "dribbble"])

        assert result.exit_code == 1


# =============================================================================
# Inspection and maintenance
# =============================================================================

class TestOtherCommands:
    """Tests for status, list-records, cleanup, trending and init-db"""

    def test_status(self, runner, orchestrator):
        orchestrator.get_status.return_value = {"sources": {"dribbble": {"enabled": True}}}

        result = runner.invoke(cli_module.cli, ["status"])

        assert result.exit_code == 0
        assert json.loads(result.output)["sources"]["dribbble"]["enabled"] is True

    def test_list_records(self, runner, orchestrator):
        orchestrator.list_records = AsyncMock(return_value=[
            {"source_name": "dribbble", "category": "ui-ux", "title": "Shot 1", "is_trending": True},
        ])

        result = runner.invoke(cli_module.cli, ["list-records", "-s", "dribbble"])

        assert result.exit_code == 0
        assert "Shot 1" in result.output
        assert "*trending*" in result.output
        orchestrator.build.assert_called_once_with()
        orchestrator.list_records.assert_called_once_with(
            source_name="dribbble", category=None, kind=None, active_only=True, limit=20,
        )

    def test_list_records_empty(self, runner, orchestrator):
        orchestrator.list_records = AsyncMock(return_value=[])

        result = runner.invoke(cli_module.cli, ["list-records", "--include-inactive", "-c", "branding-logos"])

        assert "No records found" in result.output
        assert orchestrator.list_records.call_args.kwargs["category"] == "branding-logos"
        assert orchestrator.list_records.call_args.kwargs["active_only"] is False

    def test_list_records_without_database_exits_2(self, runner, orchestrator):
        orchestrator.list_records = AsyncMock(side_effect=ConfigurationError("Persistence is not configured"))

        result = runner.invoke(cli_module.cli, ["list-records"])

        assert result.exit_code == 2
        assert "Persistence is not configured" in result.output

    def test_cleanup(self, runner, store):
        store.deactivate_expired.return_value = 1
        store.delete_inactive.return_value = 2
        store.delete_stale_designs.return_value = 3

        result = runner.invoke(cli_module.cli, ["cleanup"])

        assert result.exit_code == 0
        assert "Deactivated:       1" in result.output
        assert "Deleted designs:   3" in result.output

    def test_trending(self, runner, store):
        store.refresh_trending.return_value = 4

        result = runner.invoke(cli_module.cli, ["trending", "--days", "7"])

        assert "Trending flags changed: 4" in result.output
        store.refresh_trending.assert_called_once_with(days=7)

    def test_init_db(self, runner, store):
        result = runner.invoke(cli_module.cli, ["init-db"])

        assert result.exit_code == 0
        store.create_tables.assert_called_once_with()

"""
Unit tests for environment configuration.
"""

import pytest

import config


class TestKillSwitch:
    """Tests for is_scraping_enabled()"""

    def test_enabled_by_default(self):
        assert config.is_scraping_enabled() is True

    @pytest.mark.parametrize("value", ["false", "0", "NO", "off", "disabled"])
    def test_disabled_values(self, monkeypatch, value):
        monkeypatch.setenv("SCRAPING_ENABLED", value)

        assert config.is_scraping_enabled() is False


class TestBudgets:
    """Tests for numeric settings"""

    def test_defaults(self):
        assert config.get_adapter_timeout_seconds() == 9.0
        assert config.get_max_concurrency() == 6
        assert config.get_persist_batch_size() == 100
        assert config.get_run_cache_ttl_seconds() == 3600
        assert config.get_min_interval_minutes() == 30
        assert config.get_job_max_retries() == 3

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("SCRAPER_TIMEOUT_SECONDS", "4.5")
        monkeypatch.setenv("SCRAPER_MAX_CONCURRENCY", "2")

        assert config.get_adapter_timeout_seconds() == 4.5
        assert config.get_max_concurrency() == 2

    def test_invalid_falls_back(self, monkeypatch):
        monkeypatch.setenv("PERSIST_BATCH_SIZE", "lots")

        assert config.get_persist_batch_size() == 100

    def test_minimums(self, monkeypatch):
        monkeypatch.setenv("SCRAPER_MAX_CONCURRENCY", "0")
        monkeypatch.setenv("SCRAPE_MIN_INTERVAL_MINUTES", "-5")

        assert config.get_max_concurrency() == 1
        assert config.get_min_interval_minutes() == 0


class TestDatabaseUrl:
    """Tests for get_database_url()"""

    def test_unset(self):
        assert config.get_database_url() is None

    def test_postgres_scheme_rewritten(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://u:p@localhost:5432/db")

        assert config.get_database_url() == "postgresql://u:p@localhost:5432/db"

    def test_remote_gets_sslmode(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db.example.com:5432/db")

        assert config.get_database_url() == "postgresql://u:p@db.example.com:5432/db?sslmode=require"

    def test_existing_sslmode_kept(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db.example.com/db?sslmode=disable")

        assert config.get_database_url().endswith("sslmode=disable")

    def test_sqlite_untouched(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///records.db")

        assert config.get_database_url() == "sqlite:///records.db"

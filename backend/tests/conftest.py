"""
Root pytest configuration for backend tests.

Provides:
- backend/ on sys.path so `from scrapers...` and `from config import ...` work
- FakeClock: monotonic clock plus async sleep that advances it
- SQLite-backed record store on a temp file
- make_record(): CanonicalRecord factory
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add backend directory to Python path so imports like
# `from scrapers.cache import ...` and `from db.engine import ...` work
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import pytest

from scrapers.categories import CanonicalCategory
from scrapers.models.records import CanonicalRecord, RecordKind, RecordStats


class FakeClock:
    """Manually advanced clock; sleep() advances it instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


class MutableDatetimeClock:
    """datetime clock for store tests (set .now to move time)."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def _clean_scraper_env(monkeypatch):
    """Keep scraper tests independent of the developer's environment."""
    for name in (
        "SCRAPING_ENABLED",
        "SCRAPER_TIMEOUT_SECONDS",
        "SCRAPER_MAX_CONCURRENCY",
        "PERSIST_BATCH_SIZE",
        "RUN_CACHE_TTL_SECONDS",
        "SCRAPE_MIN_INTERVAL_MINUTES",
        "SCRAPE_JOB_MAX_RETRIES",
        "DATABASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store_clock():
    return MutableDatetimeClock(datetime(2025, 1, 10, 12, 0, 0))


@pytest.fixture
def record_store(tmp_path, store_clock):
    """SqlAlchemyRecordStore on a throwaway SQLite file."""
    from db.engine import build_engine
    from scrapers.persistence import SqlAlchemyRecordStore

    engine = build_engine(f"sqlite:///{tmp_path / 'records.db'}", warmup=False)
    store = SqlAlchemyRecordStore(engine, clock=store_clock)
    store.create_tables()
    yield store
    engine.dispose()


def make_record(source_id="1", source_name="dribbble", **overrides) -> CanonicalRecord:
    fields = {
        "title": f"Shot {source_id}",
        "url": f"https://example.com/{source_name}/{source_id}",
        "source_name": source_name,
        "source_id": source_id,
        "kind": RecordKind.DESIGN,
        "category": CanonicalCategory.UI_UX,
        "tags": ("ui",),
        "stats": RecordStats(views=10, likes=2, saves=1),
    }
    fields.update(overrides)
    return CanonicalRecord(**fields)


@pytest.fixture
def record_factory():
    return make_record

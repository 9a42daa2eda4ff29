"""
Tests for batched persistence and the SQLAlchemy record store.

Store tests run against a throwaway SQLite file (see conftest.record_store),
which exercises the ON CONFLICT DO UPDATE path.
"""

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from scrapers.models.records import RecordKind, RecordStats
from scrapers.models.stored_record import StoredRecord
from scrapers.persistence import PersistenceGateway, content_hash, record_to_row


class FakeStore:
    """Records batch sizes; optionally fails on given call numbers (1-based)."""

    def __init__(self, fail_on=()):
        self.batch_sizes = []
        self.fail_on = set(fail_on)

    def bulk_upsert(self, records):
        self.batch_sizes.append(len(records))
        if len(self.batch_sizes) in self.fail_on:
            raise RuntimeError("db down")
        return {"inserted": len(records), "updated": 0, "unchanged": 0}


def _rows(store):
    with store.engine.connect() as conn:
        result = conn.execute(select(StoredRecord.__table__).order_by(StoredRecord.source_id))
        return {row.source_id: row for row in result}


# =============================================================================
# PersistenceGateway
# =============================================================================

class TestPersistenceGateway:
    """Tests for PersistenceGateway.upsert_records()"""

    def test_batches_of_fixed_size(self, record_factory):
        store = FakeStore()
        gateway = PersistenceGateway(store, batch_size=100)
        records = [record_factory(str(i)) for i in range(250)]

        summary = asyncio.run(gateway.upsert_records(records))

        assert store.batch_sizes == [100, 100, 50]
        assert summary.batches == 3
        assert summary.inserted == 250
        assert summary.failed_batches == 0

    def test_failed_batch_does_not_stop_others(self, record_factory):
        store = FakeStore(fail_on={2})
        gateway = PersistenceGateway(store, batch_size=100)
        records = [record_factory(str(i)) for i in range(250)]

        summary = asyncio.run(gateway.upsert_records(records))

        assert store.batch_sizes == [100, 100, 50]
        assert summary.inserted == 150
        assert summary.failed_batches == 1
        assert summary.failed_records == 100
        assert summary.errors == ["Batch 1 failed: RuntimeError: db down"]

    def test_no_records(self):
        store = FakeStore()

        summary = asyncio.run(PersistenceGateway(store).upsert_records([]))

        assert summary.batches == 0
        assert store.batch_sizes == []

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            PersistenceGateway(FakeStore(), batch_size=0)


# =============================================================================
# Row mapping
# =============================================================================

class TestRowMapping:
    """Tests for record_to_row() and content_hash()"""

    def test_record_to_row(self, record_factory):
        now = datetime(2025, 1, 10)
        row = record_to_row(record_factory("7", tags=("ui", "web")), now)

        assert row["source_name"] == "dribbble"
        assert row["source_id"] == "7"
        assert row["kind"] == "design"
        assert row["category"] == "ui-ux"
        assert row["tags"] == ["ui", "web"]
        assert row["views"] == 10
        assert row["created_at"] == now
        assert len(row["content_hash"]) == 64

    def test_hash_tracks_listing_fields(self, record_factory):
        base = record_factory("1")

        assert content_hash(base) == content_hash(record_factory("1"))
        assert content_hash(base) != content_hash(record_factory("1", stats=RecordStats(likes=99)))
        assert content_hash(base) != content_hash(record_factory("1", title="Renamed"))


# =============================================================================
# SqlAlchemyRecordStore
# =============================================================================

class TestBulkUpsert:
    """Tests for SqlAlchemyRecordStore.bulk_upsert()"""

    def test_insert_then_unchanged_then_update(self, record_store, store_clock, record_factory):
        t0 = store_clock.now
        first = record_store.bulk_upsert([record_factory("1"), record_factory("2")])
        assert first == {"inserted": 2, "updated": 0, "unchanged": 0}

        store_clock.now = t0 + timedelta(hours=1)
        second = record_store.bulk_upsert([record_factory("1"), record_factory("2")])
        assert second == {"inserted": 0, "updated": 0, "unchanged": 2}

        store_clock.now = t0 + timedelta(hours=2)
        third = record_store.bulk_upsert([record_factory("1", title="Renamed"), record_factory("2")])
        assert third == {"inserted": 0, "updated": 1, "unchanged": 1}

        rows = _rows(record_store)
        assert record_store.count() == 2
        assert rows["1"].title == "Renamed"
        assert rows["1"].created_at == t0
        assert rows["1"].updated_at == t0 + timedelta(hours=2)
        # Unchanged rows keep updated_at but record the latest scrape
        assert rows["2"].updated_at == t0
        assert rows["2"].last_scraped_at == t0 + timedelta(hours=2)

    def test_idempotent(self, record_store, record_factory):
        records = [record_factory(str(i)) for i in range(5)]

        record_store.bulk_upsert(records)
        record_store.bulk_upsert(records)

        assert record_store.count() == 5

    def test_duplicate_keys_in_batch_last_wins(self, record_store, record_factory):
        counts = record_store.bulk_upsert([
            record_factory("1", title="First"),
            record_factory("1", title="Second"),
        ])

        assert counts == {"inserted": 1, "updated": 0, "unchanged": 0}
        assert _rows(record_store)["1"].title == "Second"

    def test_same_id_different_sources(self, record_store, record_factory):
        record_store.bulk_upsert([
            record_factory("1", source_name="dribbble"),
            record_factory("1", source_name="behance"),
        ])

        assert record_store.count() == 2

    def test_json_columns_round_trip(self, record_store, record_factory):
        record_store.bulk_upsert([record_factory("1", platform_data={"colors": ["#FF0000"]})])

        row = _rows(record_store)["1"]
        assert row.platform_data == {"colors": ["#FF0000"]}
        assert row.tags == ["ui"]

    def test_update_then_insert_fallback(self, monkeypatch, record_store, store_clock, record_factory):
        """Dialects without ON CONFLICT go through update-then-insert"""
        monkeypatch.setattr("scrapers.persistence.ON_CONFLICT_DIALECTS", {})
        t0 = store_clock.now

        record_store.bulk_upsert([record_factory("1")])
        store_clock.now = t0 + timedelta(days=1)
        counts = record_store.bulk_upsert([record_factory("1", title="Renamed"), record_factory("2")])

        assert counts == {"inserted": 1, "updated": 1, "unchanged": 0}
        rows = _rows(record_store)
        assert rows["1"].title == "Renamed"
        assert rows["1"].created_at == t0

    def test_empty_batch(self, record_store):
        assert record_store.bulk_upsert([]) == {"inserted": 0, "updated": 0, "unchanged": 0}


class TestMaintenance:
    """Tests for cleanup and trending maintenance"""

    def test_deactivate_expired(self, record_store, store_clock, record_factory):
        now = store_clock.now
        record_store.bulk_upsert([
            record_factory("old", source_name="devpost", kind=RecordKind.HACKATHON,
                           published_or_deadline_date=now - timedelta(days=9)),
            record_factory("recent", source_name="devpost", kind=RecordKind.HACKATHON,
                           published_or_deadline_date=now - timedelta(days=5)),
            record_factory("design", published_or_deadline_date=now - timedelta(days=30)),
        ])

        assert record_store.deactivate_expired(grace_days=7) == 1

        rows = _rows(record_store)
        assert rows["old"].is_active is False
        assert rows["recent"].is_active is True
        assert rows["design"].is_active is True

    def test_delete_inactive(self, record_store, store_clock, record_factory):
        t0 = store_clock.now
        record_store.bulk_upsert([
            record_factory("gone", is_active=False),
            record_factory("kept"),
        ])
        store_clock.now = t0 + timedelta(days=100)

        assert record_store.delete_inactive(retention_days=90) == 1
        assert set(_rows(record_store)) == {"kept"}

    def test_delete_stale_designs(self, record_store, store_clock, record_factory):
        t0 = store_clock.now
        record_store.bulk_upsert([
            record_factory("stale", stats=RecordStats(saves=1)),
            record_factory("saved", stats=RecordStats(saves=10)),
            record_factory("hot", stats=RecordStats(saves=1), is_trending=True),
            record_factory("event", source_name="devpost", kind=RecordKind.HACKATHON),
        ])
        store_clock.now = t0 + timedelta(days=61)

        assert record_store.delete_stale_designs(retention_days=60, min_saves=5) == 1
        assert set(_rows(record_store)) == {"saved", "hot", "event"}

    def test_refresh_trending(self, record_store, record_factory):
        record_store.bulk_upsert([
            record_factory("popular", stats=RecordStats(likes=50)),
            record_factory("quiet", stats=RecordStats(likes=1)),
            record_factory("inactive", stats=RecordStats(likes=500), is_active=False),
        ])

        assert record_store.refresh_trending() == 1

        rows = _rows(record_store)
        assert rows["popular"].is_trending is True
        assert rows["quiet"].is_trending is False
        assert rows["inactive"].is_trending is False

    def test_refresh_trending_custom_scorer(self, record_store, record_factory):
        record_store.bulk_upsert([record_factory("1"), record_factory("2")])

        assert record_store.refresh_trending(scorer=lambda record, now: True) == 2


class TestListRecords:
    """Tests for SqlAlchemyRecordStore.list_records()"""

    def test_filters(self, record_store, record_factory):
        from scrapers.categories import CanonicalCategory

        record_store.bulk_upsert([
            record_factory("1"),
            record_factory("2", category=CanonicalCategory.BRANDING_LOGOS),
            record_factory("3", source_name="devpost", kind=RecordKind.HACKATHON),
            record_factory("4", is_active=False),
        ])

        assert {r["source_id"] for r in record_store.list_records()} == {"1", "2", "3"}
        assert [r["source_id"] for r in record_store.list_records(category="branding-logos")] == ["2"]
        assert [r["source_id"] for r in record_store.list_records(kind="hackathon")] == ["3"]
        assert {r["source_id"] for r in record_store.list_records(source_name="dribbble", active_only=False)} == {
            "1", "2", "4",
        }

    def test_most_recent_first(self, record_store, store_clock, record_factory):
        t0 = store_clock.now
        record_store.bulk_upsert([record_factory("old")])
        store_clock.now = t0 + timedelta(hours=1)
        record_store.bulk_upsert([record_factory("new")])

        records = record_store.list_records(limit=1)

        assert [r["source_id"] for r in records] == ["new"]
        assert records[0]["stats"] == {"views": 10, "likes": 2, "saves": 1}


@pytest.mark.integration
class TestPostgresUpsert:
    """ON CONFLICT path against a live PostgreSQL (TEST_DATABASE_URL)"""

    @pytest.fixture
    def pg_store(self, store_clock):
        import os

        from db.engine import build_engine
        from scrapers.persistence import SqlAlchemyRecordStore

        url = os.environ.get("TEST_DATABASE_URL")
        if not url:
            pytest.skip("TEST_DATABASE_URL not set")

        engine = build_engine(url)
        store = SqlAlchemyRecordStore(engine, clock=store_clock)
        store.create_tables()
        with engine.begin() as conn:
            conn.execute(StoredRecord.__table__.delete())
        yield store
        engine.dispose()

    def test_upsert_is_idempotent(self, pg_store, record_factory):
        records = [record_factory(str(i)) for i in range(3)]

        assert pg_store.bulk_upsert(records) == {"inserted": 3, "updated": 0, "unchanged": 0}
        assert pg_store.bulk_upsert(records) == {"inserted": 0, "updated": 0, "unchanged": 3}
        assert pg_store.count() == 3

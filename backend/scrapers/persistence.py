"""
Persistence - Batched idempotent upserts of canonical records.

PersistenceGateway chunks a run's records into fixed-size batches and hands
each batch to a RecordStore on a worker thread (SQLAlchemy is synchronous).
A failing batch is logged and counted; the remaining batches still run.

SqlAlchemyRecordStore writes to the scraped_records table, keyed by
(source_name, source_id). On PostgreSQL and SQLite it uses the dialect's
INSERT ... ON CONFLICT DO UPDATE; other dialects fall back to
update-then-insert per row. A content hash over the listing fields tells
an updated row from an unchanged re-scrape.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session

from .categories import CanonicalCategory
from .errors import PersistenceBatchError
from .models.database import Base
from .models.records import CanonicalRecord, RecordKind, RecordStats
from .models.run_result import PersistenceSummary
from .models.stored_record import StoredRecord
from .observability import log_event
from .scoring import TrendingScorer, engagement_trending_score
from .utils.hashing import compute_json_hash

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

# Columns replaced on conflict; created_at is only written on insert
UPDATABLE_COLUMNS = (
    "kind",
    "title",
    "description",
    "url",
    "category",
    "tags",
    "image_url",
    "published_or_deadline_date",
    "views",
    "likes",
    "saves",
    "platform_data",
    "is_active",
    "is_trending",
    "content_hash",
    "updated_at",
    "last_scraped_at",
)

ON_CONFLICT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

RecordKey = Tuple[str, str]


class RecordStore(Protocol):
    """Anything that can upsert a batch of canonical records."""

    def bulk_upsert(self, records: Sequence[CanonicalRecord]) -> Dict[str, int]:
        """Returns counts keyed by inserted, updated and unchanged."""
        ...


def content_hash(record: CanonicalRecord) -> str:
    return compute_json_hash(record.content_fields())


def record_to_row(record: CanonicalRecord, now: datetime) -> Dict[str, Any]:
    """Flatten a CanonicalRecord into scraped_records column values."""
    return {
        "source_name": record.source_name,
        "source_id": record.source_id,
        "kind": record.kind.value,
        "title": record.title,
        "description": record.description,
        "url": record.url,
        "category": record.category.value,
        "tags": list(record.tags),
        "image_url": record.image_url,
        "published_or_deadline_date": record.published_or_deadline_date,
        "views": record.stats.views,
        "likes": record.stats.likes,
        "saves": record.stats.saves,
        "platform_data": dict(record.platform_data),
        "is_active": record.is_active,
        "is_trending": record.is_trending,
        "content_hash": content_hash(record),
        "created_at": now,
        "updated_at": now,
        "last_scraped_at": now,
    }


def _batches(records: Sequence[CanonicalRecord], size: int) -> Iterable[Sequence[CanonicalRecord]]:
    for start in range(0, len(records), size):
        yield records[start:start + size]


# =============================================================================
# Gateway
# =============================================================================

class PersistenceGateway:
    """Runs a store's bulk upsert over fixed-size batches."""

    def __init__(self, store: RecordStore, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.store = store
        self.batch_size = batch_size

    async def upsert_records(self, records: Sequence[CanonicalRecord]) -> PersistenceSummary:
        """
        Upsert records batch by batch.

        Never raises for a batch failure; failures are aggregated into the
        returned summary.
        """
        summary = PersistenceSummary()

        for index, batch in enumerate(_batches(list(records), self.batch_size)):
            summary.batches += 1
            try:
                counts = await asyncio.to_thread(self.store.bulk_upsert, batch)
            except Exception as e:
                error = PersistenceBatchError(
                    f"Batch {index} failed: {e.__class__.__name__}: {e}",
                    batch_index=index,
                    batch_size=len(batch),
                )
                summary.failed_batches += 1
                summary.failed_records += len(batch)
                summary.errors.append(str(error))
                logger.error(str(error))
                log_event(
                    "persistence_batch_failed",
                    level=logging.ERROR,
                    batch_index=index,
                    batch_size=len(batch),
                    error=str(e),
                )
                continue

            summary.inserted += counts.get("inserted", 0)
            summary.updated += counts.get("updated", 0)
            summary.unchanged += counts.get("unchanged", 0)

        log_event("persistence_completed", **summary.to_dict())
        return summary


# =============================================================================
# SQLAlchemy store
# =============================================================================

class SqlAlchemyRecordStore:
    """RecordStore backed by the scraped_records table."""

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = datetime.utcnow):
        self.engine = engine
        self._clock = clock
        self.table = StoredRecord.__table__

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine, tables=[self.table])

    # -------------------------------------------------------------------------
    # Upsert
    # -------------------------------------------------------------------------

    def bulk_upsert(self, records: Sequence[CanonicalRecord]) -> Dict[str, int]:
        """
        Upsert one batch in a single transaction.

        Returns:
            {"inserted": n, "updated": n, "unchanged": n}
        """
        now = self._clock()

        # Last occurrence of a key wins within the batch
        rows: Dict[RecordKey, Dict[str, Any]] = {}
        for record in records:
            rows[record.key] = record_to_row(record, now)

        counts = {"inserted": 0, "updated": 0, "unchanged": 0}
        if not rows:
            return counts

        with self.engine.begin() as conn:
            existing = self._existing_hashes(conn, rows.keys())

            changed: List[Dict[str, Any]] = []
            unchanged: List[RecordKey] = []
            for key, row in rows.items():
                previous = existing.get(key)
                if previous is None:
                    counts["inserted"] += 1
                    changed.append(row)
                elif previous != row["content_hash"]:
                    counts["updated"] += 1
                    changed.append(row)
                else:
                    counts["unchanged"] += 1
                    unchanged.append(key)

            if changed:
                self._write(conn, changed)
            if unchanged:
                self._touch(conn, unchanged, now)

        return counts

    def _existing_hashes(self, conn: Connection, keys: Iterable[RecordKey]) -> Dict[RecordKey, str]:
        by_source: Dict[str, List[str]] = {}
        for source_name, source_id in keys:
            by_source.setdefault(source_name, []).append(source_id)

        found = {}
        t = self.table
        for source_name, source_ids in by_source.items():
            result = conn.execute(
                select(t.c.source_id, t.c.content_hash).where(
                    t.c.source_name == source_name,
                    t.c.source_id.in_(source_ids),
                )
            )
            for source_id, hash_value in result:
                found[(source_name, source_id)] = hash_value
        return found

    def _write(self, conn: Connection, rows: List[Dict[str, Any]]) -> None:
        t = self.table
        dialect_insert = ON_CONFLICT_DIALECTS.get(conn.dialect.name)

        if dialect_insert is not None:
            stmt = dialect_insert(t)
            stmt = stmt.on_conflict_do_update(
                index_elements=[t.c.source_name, t.c.source_id],
                set_={column: stmt.excluded[column] for column in UPDATABLE_COLUMNS},
            )
            conn.execute(stmt, rows)
            return

        for row in rows:
            result = conn.execute(
                update(t)
                .where(t.c.source_name == row["source_name"], t.c.source_id == row["source_id"])
                .values({column: row[column] for column in UPDATABLE_COLUMNS})
            )
            if result.rowcount == 0:
                conn.execute(insert(t).values(row))

    def _touch(self, conn: Connection, keys: List[RecordKey], now: datetime) -> None:
        by_source: Dict[str, List[str]] = {}
        for source_name, source_id in keys:
            by_source.setdefault(source_name, []).append(source_id)

        t = self.table
        for source_name, source_ids in by_source.items():
            conn.execute(
                update(t)
                .where(t.c.source_name == source_name, t.c.source_id.in_(source_ids))
                .values(last_scraped_at=now)
            )

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def deactivate_expired(self, grace_days: int = 7) -> int:
        """Mark hackathons whose deadline passed more than grace_days ago inactive."""
        now = self._clock()
        cutoff = now - timedelta(days=grace_days)
        t = self.table
        with self.engine.begin() as conn:
            result = conn.execute(
                update(t)
                .where(
                    t.c.kind == RecordKind.HACKATHON.value,
                    t.c.is_active.is_(True),
                    t.c.published_or_deadline_date < cutoff,
                )
                .values(is_active=False, updated_at=now)
            )
        logger.info(f"Marked {result.rowcount} expired hackathons inactive")
        return result.rowcount

    def delete_inactive(self, retention_days: int = 90) -> int:
        """Delete inactive records not updated within retention_days."""
        cutoff = self._clock() - timedelta(days=retention_days)
        t = self.table
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(t).where(t.c.is_active.is_(False), t.c.updated_at < cutoff)
            )
        logger.info(f"Deleted {result.rowcount} old inactive records")
        return result.rowcount

    def delete_stale_designs(self, retention_days: int = 60, min_saves: int = 5) -> int:
        """Delete old, non-trending designs with fewer than min_saves saves."""
        cutoff = self._clock() - timedelta(days=retention_days)
        t = self.table
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(t).where(
                    t.c.kind == RecordKind.DESIGN.value,
                    t.c.is_trending.is_(False),
                    t.c.created_at < cutoff,
                    t.c.saves < min_saves,
                )
            )
        logger.info(f"Deleted {result.rowcount} stale designs")
        return result.rowcount

    def refresh_trending(self, scorer: TrendingScorer = engagement_trending_score, days: int = 30) -> int:
        """
        Recompute is_trending for active records scraped within the last days.

        Returns:
            Number of rows whose flag changed
        """
        now = self._clock()
        cutoff = now - timedelta(days=days)
        changed = 0

        with Session(self.engine) as session, session.begin():
            rows = session.scalars(
                select(StoredRecord).where(
                    StoredRecord.is_active.is_(True),
                    StoredRecord.last_scraped_at >= cutoff,
                )
            ).all()
            for row in rows:
                trending = bool(scorer(stored_to_record(row), now))
                if trending != row.is_trending:
                    row.is_trending = trending
                    changed += 1

        logger.info(f"Trending refresh: {changed} of {len(rows)} records changed")
        return changed

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def list_records(
        self,
        source_name: Optional[str] = None,
        category: Optional[str] = None,
        kind: Optional[str] = None,
        active_only: bool = True,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        """Most recently scraped records, as dicts."""
        query = select(StoredRecord)
        if source_name:
            query = query.where(StoredRecord.source_name == source_name)
        if category:
            query = query.where(StoredRecord.category == category)
        if kind:
            query = query.where(StoredRecord.kind == kind)
        if active_only:
            query = query.where(StoredRecord.is_active.is_(True))
        query = query.order_by(StoredRecord.last_scraped_at.desc(), StoredRecord.id.desc()).limit(limit)

        with Session(self.engine) as session:
            return [row.to_dict() for row in session.scalars(query)]

    def count(self) -> int:
        with Session(self.engine) as session:
            return session.scalar(select(func.count()).select_from(StoredRecord)) or 0


def stored_to_record(row: StoredRecord) -> CanonicalRecord:
    """Rebuild a CanonicalRecord from a stored row (for rescoring)."""
    return CanonicalRecord(
        title=row.title,
        url=row.url,
        source_name=row.source_name,
        source_id=row.source_id,
        kind=RecordKind(row.kind),
        description=row.description or "",
        category=CanonicalCategory(row.category),
        tags=tuple(row.tags or ()),
        image_url=row.image_url,
        published_or_deadline_date=row.published_or_deadline_date,
        stats=RecordStats(views=row.views or 0, likes=row.likes or 0, saves=row.saves or 0),
        platform_data=dict(row.platform_data or {}),
        is_active=row.is_active,
        is_trending=row.is_trending,
    )

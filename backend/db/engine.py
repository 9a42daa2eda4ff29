"""
Database engine factory for the record store.

Every caller (CLI, scheduled jobs, orchestrator persistence) gets its engine
here so pool and connect settings live in one place.

Usage:
    from db.engine import get_engine

    engine = get_engine()

Engines use NullPool: a scrape, listing or cleanup run opens a handful of
connections and exits, so pooling only adds stale-connection risk behind
PgBouncer.

New engines are warmed up with SELECT 1, retrying with exponential backoff
(0.75s, 1.5s, 3s, 6s) to ride out managed-Postgres cold starts.

SQLite URLs (local runs, tests) skip the Postgres connect_timeout.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool

log = logging.getLogger(__name__)

WARMUP_ATTEMPTS = 4
WARMUP_BASE_SLEEP = 0.75

# Per-process engine for DATABASE_URL
_ENGINE: Optional[Engine] = None


def _engine_options() -> Dict[str, Any]:
    from config import Config

    return dict(getattr(Config, "SQLALCHEMY_ENGINE_OPTIONS", {}) or {})


def _warmup(engine: Engine, attempts: int = WARMUP_ATTEMPTS, base_sleep: float = WARMUP_BASE_SLEEP) -> None:
    """
    Run SELECT 1 until it succeeds, doubling the sleep after each failure.

    Raises:
        OperationalError: the last failure, once attempts are exhausted
    """
    for attempt in range(1, attempts + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            log.info("db_warmup_success attempt=%d", attempt)
            return
        except OperationalError as e:
            if attempt == attempts:
                log.error("db_warmup_failed after %d attempts", attempts)
                raise
            sleep_s = base_sleep * (2 ** (attempt - 1))
            log.warning(
                "db_warmup_retry attempt=%d/%d sleep_s=%.2f err=%s",
                attempt, attempts, sleep_s, str(e)[:100]
            )
            time.sleep(sleep_s)


def build_engine(database_url: str, warmup: bool = True) -> Engine:
    """
    Create an engine for an explicit URL (not cached).

    Args:
        database_url: SQLAlchemy URL (postgresql:// or sqlite://)
        warmup: Run the SELECT 1 retry loop before returning

    Raises:
        OperationalError: warmup failed
    """
    opts = _engine_options()
    connect_args = dict(opts.pop("connect_args", {}) or {})
    if database_url.startswith("sqlite"):
        # Persistence batches run on worker threads
        connect_args.setdefault("check_same_thread", False)
    else:
        connect_args.setdefault("connect_timeout", 30)

    engine = create_engine(
        database_url,
        poolclass=NullPool,
        connect_args=connect_args,
        pool_pre_ping=opts.get("pool_pre_ping", True),
    )
    log.info("db_engine_created dialect=%s", engine.dialect.name)

    if warmup:
        _warmup(engine)
    return engine


def get_engine() -> Engine:
    """
    Cached engine for DATABASE_URL.

    Raises:
        RuntimeError: DATABASE_URL is not set
        OperationalError: warmup failed
    """
    global _ENGINE
    if _ENGINE is not None:
        return _ENGINE

    # config normalizes postgres:// and adds sslmode for remote hosts
    from config import get_database_url

    database_url = get_database_url()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set")

    _ENGINE = build_engine(database_url)
    return _ENGINE


def dispose_engine() -> None:
    """Dispose and forget the cached engine."""
    global _ENGINE
    if _ENGINE is None:
        return
    _ENGINE.dispose()
    _ENGINE = None
    log.info("db_engine_disposed")

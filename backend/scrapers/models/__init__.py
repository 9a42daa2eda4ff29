"""Scraper record, run and storage models."""

from .database import Base
from .records import CanonicalRecord, RawRecord, RecordKind, RecordStats
from .run_options import DEFAULT_LIMIT, MAX_LIMIT, RunOptions
from .run_result import (
    AdapterState,
    PersistenceSummary,
    RunResult,
    SourceOutcome,
    TERMINAL_STATES,
)
from .stored_record import StoredRecord

__all__ = [
    # Canonical records
    "CanonicalRecord",
    "RawRecord",
    "RecordKind",
    "RecordStats",
    # Run contract
    "RunOptions",
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "RunResult",
    "SourceOutcome",
    "AdapterState",
    "TERMINAL_STATES",
    "PersistenceSummary",
    # Storage
    "Base",
    "StoredRecord",
]

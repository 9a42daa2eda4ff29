"""
Run result types.

A RunResult is owned by the orchestrator invocation that produced it and is
only shared across runs through the result cache.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .records import CanonicalRecord


class AdapterState(Enum):
    """Lifecycle of one adapter task within a run."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


TERMINAL_STATES = frozenset({
    AdapterState.SUCCEEDED,
    AdapterState.TIMED_OUT,
    AdapterState.FAILED,
})

ALLOWED_TRANSITIONS = {
    AdapterState.PENDING: frozenset({AdapterState.RUNNING}),
    AdapterState.RUNNING: TERMINAL_STATES,
}


@dataclass
class SourceOutcome:
    """Per-source line of the run breakdown."""
    source_name: str
    state: AdapterState = AdapterState.PENDING
    count: int = 0
    error: Optional[str] = None
    raw_count: int = 0
    rejected: int = 0
    strategy: Optional[str] = None
    duration_ms: int = 0

    def transition(self, new_state: AdapterState) -> None:
        """Move to new_state; terminal states are final."""
        allowed = ALLOWED_TRANSITIONS.get(self.state, frozenset())
        if new_state not in allowed:
            raise ValueError(
                f"Invalid adapter transition for {self.source_name}: "
                f"{self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    @property
    def succeeded(self) -> bool:
        return self.state is AdapterState.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "error": self.error,
            "state": self.state.value,
            "raw_count": self.raw_count,
            "rejected": self.rejected,
            "strategy": self.strategy,
            "duration_ms": self.duration_ms,
        }


@dataclass
class PersistenceSummary:
    """Aggregate of one batched upsert."""
    batches: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    failed_batches: int = 0
    failed_records: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def written(self) -> int:
        return self.inserted + self.updated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batches": self.batches,
            "inserted": self.inserted,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "failed_batches": self.failed_batches,
            "failed_records": self.failed_records,
            "errors": list(self.errors),
        }


@dataclass
class RunResult:
    """Summary returned to the trigger surface."""
    run_id: str
    started_at: datetime
    per_source_outcome: Dict[str, SourceOutcome] = field(default_factory=dict)
    records: List[CanonicalRecord] = field(default_factory=list)
    duration_ms: int = 0
    persistence: Optional[PersistenceSummary] = None
    configuration_errors: List[str] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return len(self.records)

    @property
    def succeeded_sources(self) -> List[str]:
        return [name for name, o in self.per_source_outcome.items() if o.succeeded]

    @property
    def failed_sources(self) -> List[str]:
        return [name for name, o in self.per_source_outcome.items() if not o.succeeded]

    @property
    def status(self) -> str:
        """
        Health of the run as seen by callers.

        - empty: no source was attempted (configuration)
        - down: zero sources succeeded and zero records
        - degraded: some sources failed
        - ok: every attempted source succeeded
        """
        if not self.per_source_outcome:
            return "empty"
        if not self.succeeded_sources and not self.records:
            return "down"
        if self.failed_sources:
            return "degraded"
        return "ok"

    def to_dict(self, include_records: bool = False) -> Dict[str, Any]:
        data = {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "status": self.status,
            "duration_ms": self.duration_ms,
            "total_records": self.total_records,
            "per_source_outcome": {
                name: outcome.to_dict() for name, outcome in self.per_source_outcome.items()
            },
            "persistence": self.persistence.to_dict() if self.persistence else None,
            "configuration_errors": list(self.configuration_errors),
        }
        if include_records:
            data["records"] = [r.to_dict() for r in self.records]
        return data

"""Operational records: checkpoints, dead letters, jobs and financial snapshots."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from firmrecon.domain.model.base import Entity, new_id, utcnow
from firmrecon.domain.model.enums import JobStatus


@dataclass(slots=True, kw_only=True)
class RunStats:
    discovered: int = 0
    upserted: int = 0
    errors: int = 0
    last_run_at: datetime = field(default_factory=utcnow)
    cursor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["last_run_at"] = self.last_run_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> RunStats:
        return cls(
            discovered=int(payload.get("discovered", 0)),
            upserted=int(payload.get("upserted", 0)),
            errors=int(payload.get("errors", 0)),
            last_run_at=datetime.fromisoformat(payload["last_run_at"]),
            cursor=payload.get("cursor"),
        )


@dataclass(slots=True, kw_only=True)
class Checkpoint:
    source_id: str
    cursor: str | None = None
    last_run: RunStats | None = None


@dataclass(slots=True, frozen=True, kw_only=True)
class DeadLetterEntry:
    cui: str
    reason: str
    timestamp: datetime = field(default_factory=utcnow)
    attempt: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "cui": self.cui,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "attempt": self.attempt,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> DeadLetterEntry:
        return cls(
            cui=str(payload["cui"]),
            reason=str(payload.get("reason", "")),
            timestamp=datetime.fromisoformat(payload["timestamp"]),
            attempt=int(payload.get("attempt", 1)),
        )


@dataclass(slots=True, kw_only=True)
class IngestJob:
    """Persisted record of a detached ingestion run that callers can poll."""

    source_id: str
    limit: int
    dry_run: bool = False
    id: UUID = field(default_factory=new_id)
    status: JobStatus = JobStatus.QUEUED
    result: dict[str, Any] | None = None
    error: str | None = None
    queued_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "source_id": self.source_id,
            "limit": self.limit,
            "dry_run": self.dry_run,
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
            "queued_at": self.queued_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> IngestJob:
        def _dt(value: str | None) -> datetime | None:
            return datetime.fromisoformat(value) if value else None

        return cls(
            id=UUID(payload["id"]),
            source_id=payload["source_id"],
            limit=int(payload["limit"]),
            dry_run=bool(payload.get("dry_run", False)),
            status=JobStatus(payload["status"]),
            result=payload.get("result"),
            error=payload.get("error"),
            queued_at=datetime.fromisoformat(payload["queued_at"]),
            started_at=_dt(payload.get("started_at")),
            finished_at=_dt(payload.get("finished_at")),
        )


@dataclass(eq=False, kw_only=True)
class FinancialSnapshot(Entity):
    """Normalized yearly financial statement for one company from one source."""

    company_id: UUID
    fiscal_year: int
    data_source: str
    revenue: float | None = None
    profit: float | None = None
    employees: int | None = None
    currency: str = "RON"
    checksum: str | None = None
    fetched_at: datetime = field(default_factory=utcnow)

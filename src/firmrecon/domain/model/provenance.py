from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from firmrecon.domain.model.base import Entity, utcnow
from firmrecon.domain.model.enums import SourceId

if TYPE_CHECKING:
    from uuid import UUID


@dataclass(slots=True, frozen=True, kw_only=True)
class FieldProvenance:
    """Which source last supplied a field's value, and how confident it was."""

    source_id: SourceId
    source_ref: str | None = None
    observed_at: datetime = field(default_factory=utcnow)
    confidence: int = 0
    approved: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id.value,
            "source_ref": self.source_ref,
            "observed_at": self.observed_at.isoformat(),
            "confidence": self.confidence,
            "approved": self.approved,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> FieldProvenance:
        return cls(
            source_id=SourceId(payload["source_id"]),
            source_ref=payload.get("source_ref"),
            observed_at=datetime.fromisoformat(payload["observed_at"]),
            confidence=int(payload.get("confidence", 0)),
            approved=bool(payload.get("approved", False)),
        )


type FieldProvenanceMap = dict[str, FieldProvenance]


def cap_field_provenance(entries: FieldProvenanceMap, cap: int) -> FieldProvenanceMap:
    """Keep the ``cap`` most recently observed entries."""

    if len(entries) <= cap:
        return dict(entries)
    newest = sorted(entries.items(), key=lambda item: item[1].observed_at, reverse=True)
    return dict(newest[:cap])


@dataclass(eq=False, kw_only=True)
class ProvenanceRecord(Entity):
    """One row per (company, source, row hash): evidence that a source reported a company."""

    company_id: UUID
    source_id: SourceId
    row_hash: str
    source_ref: str | None = None
    first_seen_at: datetime = field(default_factory=utcnow)
    last_seen_at: datetime = field(default_factory=utcnow)
    contract_value: float | None = None
    contract_year: int | None = None
    raw: dict[str, Any] | None = None

    @property
    def key(self) -> tuple[UUID, SourceId, str]:
        return (self.company_id, self.source_id, self.row_hash)


@dataclass(slots=True, frozen=True, kw_only=True)
class FieldChange:
    """Audit event for one accepted field write."""

    field: str
    old_value: object
    new_value: object
    source_id: SourceId
    confidence: int

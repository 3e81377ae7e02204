"""Ports for discovering company records from external sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from firmrecon.domain.model import SourceCandidateRecord, SourceId


@dataclass(slots=True)
class DiscoveryBatch:
    """Records from one ``discover`` call plus where the next call should resume.

    ``exhausted`` is set when the source ran out of rows before filling ``limit``;
    the caller then clears its checkpoint instead of storing ``next_cursor``.
    ``record_cursors[i]`` resumes right after ``records[i]``, so a run halted part-way
    through the batch can checkpoint exactly what it processed.
    """

    records: list[SourceCandidateRecord] = field(default_factory=list)
    record_cursors: list[str] = field(default_factory=list)
    next_cursor: str | None = None
    rows_scanned: int = 0
    rows_dropped: int = 0
    exhausted: bool = False


@dataclass(slots=True, frozen=True)
class HealthStatus:
    available: bool
    reason: str | None = None
    status_code: int | None = None


@runtime_checkable
class SourceAdapter(Protocol):
    """One external source of company records."""

    @property
    def source_id(self) -> SourceId: ...

    def discover(self, cursor: str | None, limit: int) -> DiscoveryBatch: ...

    def health_check(self) -> HealthStatus: ...

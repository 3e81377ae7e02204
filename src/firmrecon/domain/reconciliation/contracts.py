"""Identity resolution outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from firmrecon.domain.model import Company


class ResolutionStatus(StrEnum):
    """Outcome produced by identity resolution for one candidate record."""

    NEW = "new"
    RESOLVED = "resolved"
    CONFLICT = "conflict"


class MatchKind(StrEnum):
    """How the resolver matched a record against canonical companies."""

    EXACT = "exact"
    HEURISTIC = "heuristic"


type LookupKey = tuple[str, ...]


@dataclass(slots=True, kw_only=True)
class NewEntityResolution:
    """Record has no canonical match and should be created."""

    status: Literal[ResolutionStatus.NEW] = ResolutionStatus.NEW
    reason: str | None = None


@dataclass(slots=True, kw_only=True)
class ResolvedEntityResolution:
    """Record resolved to one canonical company."""

    target: Company
    match_kind: MatchKind
    matched_key: LookupKey | None = None
    reason: str | None = None
    status: Literal[ResolutionStatus.RESOLVED] = ResolutionStatus.RESOLVED


@dataclass(slots=True, kw_only=True)
class ConflictEntityResolution:
    """Record matched only companies it must never be merged with."""

    candidates: tuple[Company, ...]
    matched_key: LookupKey | None = None
    reason: str | None = None
    status: Literal[ResolutionStatus.CONFLICT] = ResolutionStatus.CONFLICT

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ValueError("Conflict resolution must include at least one candidate")


type EntityResolution = NewEntityResolution | ResolvedEntityResolution | ConflictEntityResolution

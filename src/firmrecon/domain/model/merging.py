from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from firmrecon.domain.model.base import Entity
from firmrecon.domain.model.enums import MergeStatus

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from firmrecon.domain.model.enums import AliasType, MatchReason


@dataclass(eq=False, kw_only=True)
class MergeCandidate(Entity):
    """A scored pair of companies that may describe the same legal entity."""

    source_id: UUID
    target_id: UUID
    confidence: int
    reasons: list[MatchReason] = field(default_factory=list)
    diff: dict[str, Any] = field(default_factory=dict)
    status: MergeStatus = MergeStatus.PENDING
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None

    @property
    def pair(self) -> frozenset[UUID]:
        return frozenset((self.source_id, self.target_id))

    @property
    def is_open(self) -> bool:
        return self.status is MergeStatus.PENDING


@dataclass(eq=False, kw_only=True)
class CompanyAlias(Entity):
    company_id: UUID
    alias: str
    alias_type: AliasType
    source: str | None = None

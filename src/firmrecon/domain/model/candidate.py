from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from firmrecon.domain.model.base import utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from firmrecon.domain.model.enums import SourceId


@dataclass(slots=True, kw_only=True)
class SourceCandidateRecord:
    """A single record yielded by a source adapter. Never persisted as-is."""

    source_id: SourceId
    source_ref: str | None = None
    cui: str | None = None
    name: str | None = None
    domain: str | None = None
    address: str | None = None
    county: str | None = None
    industry: str | None = None

    employees: int | None = None
    revenue: float | None = None
    profit: float | None = None
    contract_value: float | None = None
    contract_year: int | None = None

    email: str | None = None
    phone: str | None = None
    website: str | None = None
    socials: dict[str, str] | None = None
    description: str | None = None

    confidence: int = 50
    seen_at: datetime = field(default_factory=utcnow)
    raw: dict[str, Any] = field(default_factory=dict)

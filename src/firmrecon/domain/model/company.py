from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from firmrecon.domain.model.base import RedirectableEntity, utcnow
from firmrecon.domain.model.enums import Visibility
from firmrecon.domain.model.provenance import FieldProvenance, cap_field_provenance

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from firmrecon.domain.model.provenance import FieldProvenanceMap


@dataclass(eq=False, kw_only=True)
class Company(RedirectableEntity):
    """The canonical, authoritative record for one legal entity."""

    MERGEABLE_FIELDS: ClassVar[tuple[str, ...]] = (
        "name",
        "legal_name",
        "trade_name",
        "domain",
        "address",
        "county_slug",
        "industry_slug",
        "employees",
        "revenue_latest",
        "profit_latest",
        "email",
        "phone",
        "website",
        "socials",
        "description_short",
    )

    cui: str | None = None
    name: str | None = None
    legal_name: str | None = None
    trade_name: str | None = None
    slug: str | None = None
    domain: str | None = None
    address: str | None = None
    county_slug: str | None = None
    industry_slug: str | None = None

    employees: int | None = None
    revenue_latest: float | None = None
    profit_latest: float | None = None

    email: str | None = None
    phone: str | None = None
    website: str | None = None
    socials: dict[str, str] | None = None
    description_short: str | None = None

    data_confidence: int = 0
    field_provenance: FieldProvenanceMap = field(default_factory=dict)

    visibility: Visibility = Visibility.PUBLIC
    is_public: bool = True
    is_demo: bool = False

    is_active: bool | None = None
    is_vat_registered: bool | None = None
    verification_status: str | None = None
    last_verified_at: datetime | None = None
    last_enriched_at: datetime | None = None
    updated_at: datetime | None = None

    def provenance_for(self, field_name: str) -> FieldProvenance | None:
        return self.field_provenance.get(field_name)

    def record_provenance(
        self, field_name: str, provenance: FieldProvenance, *, cap: int
    ) -> None:
        # Reassign so column-level change detection sees the new mapping.
        entries = dict(self.field_provenance)
        entries[field_name] = provenance
        self.field_provenance = cap_field_provenance(entries, cap)

    def mark_merged_into(self, winner_id: UUID) -> None:
        self.merged_into = winner_id
        self.visibility = Visibility.HIDDEN
        self.is_public = False
        self.touch()

    def completeness_score(self) -> int:
        return sum(
            value is not None
            for value in (
                self.domain,
                self.revenue_latest,
                self.employees,
                self.last_enriched_at,
            )
        )

    def touch(self) -> None:
        self.updated_at = utcnow()

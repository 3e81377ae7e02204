"""Merge engine: turn candidate records into field-level patches and apply them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from firmrecon.config.ingestion import FIELD_PROVENANCE_CAP
from firmrecon.domain.model import Company, FieldChange, FieldProvenance, SourceId, utcnow

from .normalize import (
    collapse_whitespace,
    normalize_domain,
    normalize_email,
    slugify,
)
from .policy import MATERIAL_FIELDS, FieldDecision, decide_field_update, source_priority

if TYPE_CHECKING:
    from collections.abc import Iterable

    from firmrecon.domain.model import SourceCandidateRecord

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True, kw_only=True)
class PatchMetadata:
    source_id: SourceId
    source_ref: str | None = None
    confidence: int = 0
    observed_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True, kw_only=True)
class CompanyPatch:
    """Proposed field values from one source, with the trust metadata to judge them."""

    values: dict[str, Any]
    metadata: PatchMetadata

    @property
    def priority(self) -> int:
        return source_priority(self.metadata.source_id)


@dataclass(slots=True)
class MergeOutcome:
    changes: list[FieldChange] = field(default_factory=list)
    decisions: list[FieldDecision] = field(default_factory=list)
    confidence_raised: bool = False

    @property
    def accepted_fields(self) -> list[str]:
        return [decision.field for decision in self.decisions if decision.accepted]

    @property
    def rejected_fields(self) -> list[str]:
        return [decision.field for decision in self.decisions if not decision.accepted]

    @property
    def material_changes(self) -> list[FieldChange]:
        return [change for change in self.changes if change.field in MATERIAL_FIELDS]

    @property
    def changed(self) -> bool:
        return bool(self.changes) or self.confidence_raised


def build_company_patch(record: SourceCandidateRecord) -> CompanyPatch:
    name = collapse_whitespace(record.name)
    values: dict[str, Any] = {
        "name": name,
        "legal_name": name,
        "domain": normalize_domain(record.domain or record.website),
        "address": collapse_whitespace(record.address),
        "county_slug": slugify(record.county) or None,
        "industry_slug": slugify(record.industry) or None,
        "employees": record.employees,
        "revenue_latest": record.revenue,
        "profit_latest": record.profit,
        "email": normalize_email(record.email),
        "phone": collapse_whitespace(record.phone),
        "website": collapse_whitespace(record.website),
        "socials": record.socials or None,
        "description_short": collapse_whitespace(record.description),
    }
    return CompanyPatch(
        values={key: value for key, value in values.items() if value is not None},
        metadata=PatchMetadata(
            source_id=record.source_id,
            source_ref=record.source_ref,
            confidence=record.confidence,
            observed_at=record.seen_at,
        ),
    )


def merge_patches(patches: Iterable[CompanyPatch]) -> CompanyPatch | None:
    """Fold several patches into one; the highest-priority source wins each field.

    The merged metadata is that of the highest-priority patch.
    """

    ordered = sorted(patches, key=lambda patch: patch.priority, reverse=True)
    if not ordered:
        return None
    values: dict[str, Any] = {}
    for patch in ordered:
        for key, value in patch.values.items():
            values.setdefault(key, value)
    return CompanyPatch(values=values, metadata=ordered[0].metadata)


@dataclass(slots=True)
class MergeEngine:
    """Apply patches to companies according to the field policy.

    Every accepted write refreshes the field's provenance and emits a ``FieldChange``.
    """

    field_provenance_cap: int = FIELD_PROVENANCE_CAP

    def plan(self, company: Company, patch: CompanyPatch) -> list[FieldDecision]:
        decisions: list[FieldDecision] = []
        for field_name in patch.values:
            if field_name not in Company.MERGEABLE_FIELDS:
                continue
            decisions.append(
                decide_field_update(
                    field=field_name,
                    current_value=getattr(company, field_name),
                    current=company.provenance_for(field_name),
                    source_id=patch.metadata.source_id,
                    confidence=patch.metadata.confidence,
                )
            )
        return decisions

    def apply(self, company: Company, patch: CompanyPatch) -> MergeOutcome:
        outcome = MergeOutcome(decisions=self.plan(company, patch))
        metadata = patch.metadata
        provenance = FieldProvenance(
            source_id=metadata.source_id,
            source_ref=metadata.source_ref,
            observed_at=metadata.observed_at,
            confidence=metadata.confidence,
            approved=metadata.source_id is SourceId.USER_APPROVED,
        )

        for decision in outcome.decisions:
            if not decision.accepted:
                continue
            new_value = patch.values[decision.field]
            old_value = getattr(company, decision.field)
            company.record_provenance(decision.field, provenance, cap=self.field_provenance_cap)
            if old_value == new_value:
                continue
            setattr(company, decision.field, new_value)
            outcome.changes.append(
                FieldChange(
                    field=decision.field,
                    old_value=old_value,
                    new_value=new_value,
                    source_id=metadata.source_id,
                    confidence=metadata.confidence,
                )
            )

        if outcome.accepted_fields and metadata.confidence > company.data_confidence:
            company.data_confidence = min(100, metadata.confidence)
            outcome.confidence_raised = True

        if outcome.changed:
            company.touch()
            log.debug(
                "Applied %s patch to %s: changed=%s rejected=%s",
                metadata.source_id,
                company.id,
                [change.field for change in outcome.changes],
                outcome.rejected_fields,
            )
        return outcome

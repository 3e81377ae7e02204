"""Single-record ingestion: validate, resolve, merge, upsert provenance.

Each record runs in its own unit of work. A dry run walks the exact same path and
rolls back instead of committing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from firmrecon.config.ingestion import RAW_PAYLOAD_MAX_BYTES
from firmrecon.domain.cui import require_cui
from firmrecon.domain.errors import DuplicateKeyError, ValidationError
from firmrecon.domain.model import Company, ProvenanceRecord, utcnow
from firmrecon.domain.reconciliation import (
    IdentityResolver,
    MergeEngine,
    ResolutionStatus,
    build_company_patch,
)
from firmrecon.domain.reconciliation.normalize import slugify
from firmrecon.domain.reconciliation.policy import MATERIAL_FIELDS

from .payload import hash_row, sanitize_payload

if TYPE_CHECKING:
    from uuid import UUID

    from firmrecon.domain.model import FieldChange, SourceCandidateRecord
    from firmrecon.domain.ports import ReconciliationRepositories, ReconciliationUnitOfWork

    from .hooks import PostIngestionHooks

log = logging.getLogger(__name__)

MIN_CONTRACT_YEAR: Final[int] = 2000


@dataclass(slots=True)
class RecordOutcome:
    cui: str
    company_id: UUID
    created: bool = False
    updated: bool = False
    provenance_created: bool = False
    resolution_reason: str | None = None
    changes: list[FieldChange] = field(default_factory=list)

    @property
    def material_changes(self) -> int:
        return sum(1 for change in self.changes if change.field in MATERIAL_FIELDS)


def sanitize_contract_value(value: float | None) -> float | None:
    return value if value is not None and value > 0 else None


def sanitize_contract_year(year: int | None) -> int | None:
    if year is None:
        return None
    return year if MIN_CONTRACT_YEAR <= year <= utcnow().year + 1 else None


def _max_optional[T: (int, float)](current: T | None, incoming: T | None) -> T | None:
    if current is None:
        return incoming
    if incoming is None:
        return current
    return max(current, incoming)


def upsert_provenance(
    repositories: ReconciliationRepositories,
    company: Company,
    record: SourceCandidateRecord,
    *,
    raw_payload_max_bytes: int = RAW_PAYLOAD_MAX_BYTES,
) -> bool:
    """Insert or refresh the provenance row for ``record``; return whether it was new.

    Re-ingesting identical input only advances ``last_seen_at``.
    """

    raw = sanitize_payload(record.raw, max_bytes=raw_payload_max_bytes)
    row_hash = hash_row(raw or {"cui": record.cui, "source_ref": record.source_ref})
    contract_value = sanitize_contract_value(record.contract_value)
    contract_year = sanitize_contract_year(record.contract_year)

    existing = repositories.provenance.get(company.id, record.source_id, row_hash)
    if existing is not None:
        existing.last_seen_at = max(existing.last_seen_at, record.seen_at)
        existing.contract_value = _max_optional(existing.contract_value, contract_value)
        existing.contract_year = _max_optional(existing.contract_year, contract_year)
        return False

    repositories.provenance.add(
        ProvenanceRecord(
            company_id=company.id,
            source_id=record.source_id,
            row_hash=row_hash,
            source_ref=record.source_ref,
            first_seen_at=record.seen_at,
            last_seen_at=record.seen_at,
            contract_value=contract_value,
            contract_year=contract_year,
            raw=raw,
        )
    )
    return True


def unique_slug(repositories: ReconciliationRepositories, name: str, cui: str) -> str:
    base = slugify(name) or f"company-{cui}"
    if not repositories.companies.slug_exists(base):
        return base
    return f"{base}-{cui}"


@dataclass(slots=True)
class RecordIngestor:
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork]
    engine: MergeEngine = field(default_factory=MergeEngine)
    hooks: PostIngestionHooks | None = None
    raw_payload_max_bytes: int = RAW_PAYLOAD_MAX_BYTES

    def ingest(self, record: SourceCandidateRecord, *, dry_run: bool = False) -> RecordOutcome:
        """Ingest one record; raises ``ValidationError`` for rows that must be skipped."""

        cui = require_cui(record.cui)
        try:
            outcome = self._ingest_once(record, cui, dry_run=dry_run)
        except DuplicateKeyError:
            # Another worker created this company between our lookup and commit.
            log.info("Retrying %s after concurrent insert", cui)
            outcome = self._ingest_once(record, cui, dry_run=dry_run)

        if not dry_run and self.hooks is not None and (outcome.created or outcome.updated):
            self.hooks.run(outcome.company_id)
        return outcome

    def _ingest_once(
        self, record: SourceCandidateRecord, cui: str, *, dry_run: bool
    ) -> RecordOutcome:
        with self.unit_of_work_factory() as uow:
            repositories = uow.repositories
            resolution = IdentityResolver(repositories.companies, repositories.aliases).resolve(
                record
            )
            patch = build_company_patch(record)

            if resolution.status is ResolutionStatus.RESOLVED:
                company = resolution.target
                created = False
                if company.cui is None:
                    # Domain matches can land on a company that never carried a tax id.
                    company.cui = cui
            else:
                name = patch.values.get("name")
                if not name:
                    raise ValidationError(f"Record for {cui} has no name", field="name")
                company = Company(cui=cui, slug=unique_slug(repositories, name, cui))
                repositories.companies.add(company)
                created = True

            merge_outcome = self.engine.apply(company, patch)
            if created and company.name is None:
                raise ValidationError(
                    f"Record for {cui} is below the confidence needed to create a company",
                    field="name",
                )
            provenance_created = upsert_provenance(
                repositories,
                company,
                record,
                raw_payload_max_bytes=self.raw_payload_max_bytes,
            )

            outcome = RecordOutcome(
                cui=cui,
                company_id=company.id,
                created=created,
                updated=not created and merge_outcome.changed,
                provenance_created=provenance_created,
                resolution_reason=resolution.reason,
                changes=merge_outcome.changes,
            )
            if dry_run:
                uow.rollback()
            else:
                uow.commit()
        return outcome

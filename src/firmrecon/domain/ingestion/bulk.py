"""Bulk upsert of national company listings, committed in fixed-size transactions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from itertools import batched
from typing import TYPE_CHECKING, Any, Final

from firmrecon.config.ingestion import BULK_UPSERT_BATCH_SIZE
from firmrecon.domain.cui import require_cui
from firmrecon.domain.errors import ReconciliationError, ValidationError
from firmrecon.domain.model import Company, SourceCandidateRecord, SourceId
from firmrecon.domain.reconciliation import MergeEngine, build_company_patch

from .batch import RecordError
from .pipeline import unique_slug, upsert_provenance

if TYPE_CHECKING:
    from firmrecon.domain.ports import ReconciliationRepositories, ReconciliationUnitOfWork

log = logging.getLogger(__name__)

NAME_MIN_CONFIDENCE: Final[int] = 60
DEFAULT_LISTING_CONFIDENCE: Final[int] = 40


@dataclass(slots=True, kw_only=True)
class NationalListing:
    """One CUI from a national registry dump, optionally with a name."""

    cui: str
    name: str | None = None
    source_id: SourceId = SourceId.NATIONAL
    source_ref: str | None = None
    confidence: int = DEFAULT_LISTING_CONFIDENCE
    raw: dict[str, Any] = field(default_factory=dict)

    def _reference_payload(self, cui: str) -> dict[str, Any]:
        return {"cui": cui, "source_ref": self.source_ref} if self.source_ref else {}

    def to_candidate(self, cui: str) -> SourceCandidateRecord:
        # Names from bulk listings are only trusted from confident sources.
        name = self.name if self.confidence >= NAME_MIN_CONFIDENCE else None
        return SourceCandidateRecord(
            source_id=self.source_id,
            source_ref=self.source_ref,
            cui=cui,
            name=name,
            confidence=self.confidence,
            raw=self.raw or self._reference_payload(cui),
        )


@dataclass(slots=True)
class BulkUpsertResult:
    created: int = 0
    updated: int = 0
    errors: int = 0
    error_details: list[RecordError] = field(default_factory=list)
    dry_run: bool = False

    def fail(self, listing: NationalListing, exc: Exception) -> None:
        self.errors += 1
        self.error_details.append(
            RecordError(cui=listing.cui, source_ref=listing.source_ref, error=str(exc))
        )


def _upsert_listing(
    repositories: ReconciliationRepositories,
    engine: MergeEngine,
    listing: NationalListing,
) -> bool:
    """Apply one listing; return True when a company was created."""

    cui = require_cui(listing.cui)
    candidate = listing.to_candidate(cui)
    company = repositories.companies.get_by_cui(cui)
    created = company is None
    if company is None:
        company = Company(
            cui=cui,
            slug=unique_slug(repositories, candidate.name or "", cui),
            data_confidence=min(100, listing.confidence),
        )
        repositories.companies.add(company)

    engine.apply(company, build_company_patch(candidate))
    if candidate.raw:
        upsert_provenance(repositories, company, candidate)
    return created


def upsert_companies_from_cuis(
    items: Iterable[NationalListing],
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    dry_run: bool = False,
    batch_size: int = BULK_UPSERT_BATCH_SIZE,
    engine: MergeEngine | None = None,
) -> BulkUpsertResult:
    """Create or refresh minimal company rows for every listing.

    Each chunk of ``batch_size`` listings shares one transaction. Invalid CUIs are counted
    and skipped. A chunk that fails to commit is counted as errors in full.
    """

    engine = engine or MergeEngine()
    result = BulkUpsertResult(dry_run=dry_run)
    log.info("Starting national upsert (batch_size=%s, dry_run=%s)", batch_size, dry_run)

    for chunk in batched(items, batch_size):
        _upsert_chunk(chunk, unit_of_work_factory, engine, result, dry_run=dry_run)

    log.info(
        "Finished national upsert: created=%s updated=%s errors=%s",
        result.created,
        result.updated,
        result.errors,
    )
    return result


def _upsert_chunk(
    chunk: Sequence[NationalListing],
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    engine: MergeEngine,
    result: BulkUpsertResult,
    *,
    dry_run: bool,
) -> None:
    created = updated = 0
    skipped: list[tuple[NationalListing, ValidationError]] = []
    try:
        with unit_of_work_factory() as uow:
            for listing in chunk:
                try:
                    if _upsert_listing(uow.repositories, engine, listing):
                        created += 1
                    else:
                        updated += 1
                except ValidationError as exc:
                    log.warning("Skipping national listing %s: %s", listing.cui, exc)
                    skipped.append((listing, exc))
            if dry_run:
                uow.rollback()
            else:
                uow.commit()
    except ReconciliationError as exc:
        log.warning("National upsert chunk of %s failed: %s", len(chunk), exc)
        for listing in chunk:
            result.fail(listing, exc)
        return
    result.created += created
    result.updated += updated
    for listing, exc in skipped:
        result.fail(listing, exc)

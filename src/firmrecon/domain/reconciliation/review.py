"""Merge-candidate workflow: scan for duplicates, queue them, review them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from firmrecon.config.dedup import DEFAULT_MAX_BLOCK_SIZE, DEFAULT_MIN_CONFIDENCE
from firmrecon.domain.errors import ConflictError, ValidationError
from firmrecon.domain.model import MergeStatus, utcnow

from .apply_merge import MergeResult, apply_merge
from .dedup import BlockKey, DedupScanner

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from firmrecon.domain.model import MergeCandidate
    from firmrecon.domain.ports import ReconciliationRepositories, ReconciliationUnitOfWork

log = logging.getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class DedupScanResult:
    candidates: list[MergeCandidate] = field(default_factory=list)
    persisted: int = 0
    skipped_blocks: list[BlockKey] = field(default_factory=list)
    dry_run: bool = False


def scan_duplicates(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    min_confidence: int = DEFAULT_MIN_CONFIDENCE,
    max_block_size: int = DEFAULT_MAX_BLOCK_SIZE,
    dry_run: bool = False,
) -> DedupScanResult:
    """Score duplicate pairs and queue new ones as PENDING candidates.

    Pairs that already have a PENDING or APPROVED candidate are never proposed again.
    """

    scanner = DedupScanner(min_confidence=min_confidence, max_block_size=max_block_size)
    result = DedupScanResult(dry_run=dry_run)
    log.info("Starting duplicate scan (min_confidence=%s, dry_run=%s)", min_confidence, dry_run)

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        skip_pairs = repositories.merge_candidates.open_pairs()
        companies = list(repositories.companies.iter_dedup_pool())
        result.candidates = scanner.scan(companies, skip_pairs=skip_pairs)
        result.skipped_blocks = list(scanner.skipped_blocks)

        if dry_run:
            uow.rollback()
        else:
            for candidate in result.candidates:
                repositories.merge_candidates.add(candidate)
            uow.commit()
            result.persisted = len(result.candidates)

    log.info(
        "Finished duplicate scan: scanned=%s candidates=%s skipped_blocks=%s",
        len(companies),
        len(result.candidates),
        len(result.skipped_blocks),
    )
    return result


def _pending_candidate(
    repositories: ReconciliationRepositories, candidate_id: UUID
) -> MergeCandidate:
    candidate = repositories.merge_candidates.get(candidate_id)
    if candidate is None:
        raise ValidationError(f"Merge candidate {candidate_id} not found", field="candidate_id")
    if candidate.status is not MergeStatus.PENDING:
        raise ConflictError(f"Candidate {candidate_id} already {candidate.status.value}")
    return candidate


def approve_candidate(
    repositories: ReconciliationRepositories, candidate_id: UUID, reviewer: str | None
) -> MergeResult:
    """Merge the candidate's companies and mark the candidate APPROVED."""

    candidate = _pending_candidate(repositories, candidate_id)
    result = apply_merge(repositories, candidate.source_id, candidate.target_id)
    candidate.status = MergeStatus.APPROVED
    candidate.reviewed_by = reviewer
    candidate.reviewed_at = utcnow()
    log.info("Candidate %s approved by %s", candidate_id, reviewer)
    return result


def reject_candidate(
    repositories: ReconciliationRepositories, candidate_id: UUID, reviewer: str | None
) -> MergeCandidate:
    candidate = _pending_candidate(repositories, candidate_id)
    candidate.status = MergeStatus.REJECTED
    candidate.reviewed_by = reviewer
    candidate.reviewed_at = utcnow()
    log.info("Candidate %s rejected by %s", candidate_id, reviewer)
    return candidate

"""Merge two canonical companies: pick the survivor, redirect the loser, keep its names."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from firmrecon.config.ingestion import FIELD_PROVENANCE_CAP
from firmrecon.domain.errors import ConflictError, ValidationError
from firmrecon.domain.model import AliasType, CompanyAlias, MergeStatus, ProvenanceRecord, utcnow

from .resolve import conflicting_tax_ids

if TYPE_CHECKING:
    from uuid import UUID

    from firmrecon.domain.model import Company
    from firmrecon.domain.ports import ReconciliationRepositories

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class MergeResult:
    canonical_id: UUID
    merged_id: UUID
    aliases_created: int
    provenance_copied: int = 0
    candidates_approved: int = 0


def _age_key(company: Company) -> tuple[object, str]:
    return (company.created_at, str(company.id))


def choose_canonical(first: Company, second: Company) -> tuple[Company, Company]:
    """Return ``(winner, loser)``.

    Tax id beats none; between two tax-id holders the older wins; otherwise the more
    complete record wins, and ties go to the older one.
    """

    if bool(first.cui) != bool(second.cui):
        return (first, second) if first.cui else (second, first)
    if not first.cui:
        first_score = first.completeness_score()
        second_score = second.completeness_score()
        if first_score != second_score:
            return (first, second) if first_score > second_score else (second, first)
    older, newer = sorted((first, second), key=_age_key)
    return older, newer


def _alias_values(winner: Company, loser: Company) -> list[tuple[str, AliasType]]:
    values: list[tuple[str, AliasType]] = []
    for value, alias_type, winner_value in (
        (loser.name, AliasType.NAME, winner.name),
        (loser.legal_name, AliasType.NAME, winner.legal_name),
        (loser.slug, AliasType.SLUG, winner.slug),
        (loser.domain, AliasType.DOMAIN, winner.domain),
        (loser.cui, AliasType.CUI, winner.cui),
    ):
        if not value or value == winner_value:
            continue
        if (value, alias_type) not in values:
            values.append((value, alias_type))
    return values


def apply_merge(
    repositories: ReconciliationRepositories,
    source_id: UUID,
    target_id: UUID,
) -> MergeResult:
    """Merge ``source_id`` and ``target_id``; raises ``ConflictError`` on differing tax ids."""

    if source_id == target_id:
        raise ValidationError("Cannot merge a company with itself")
    first = repositories.companies.get(source_id)
    second = repositories.companies.get(target_id)
    if first is None or second is None:
        missing = source_id if first is None else target_id
        raise ValidationError(f"Company {missing} not found")
    if first.merged_into is not None or second.merged_into is not None:
        raise ConflictError("One of the companies has already been merged")
    if conflicting_tax_ids(first.cui, second.cui):
        raise ConflictError(
            f"Refusing to merge companies with different tax ids ({first.cui} != {second.cui})"
        )

    winner, loser = choose_canonical(first, second)

    aliases_created = 0
    for value, alias_type in _alias_values(winner, loser):
        if repositories.aliases.exists(value, alias_type):
            continue
        repositories.aliases.add(
            CompanyAlias(
                company_id=winner.id,
                alias=value,
                alias_type=alias_type,
                source=f"merge:{loser.id}",
            )
        )
        aliases_created += 1

    winner_keys = {
        (record.source_id, record.row_hash)
        for record in repositories.provenance.list_for_company(winner.id)
    }
    provenance_copied = 0
    for record in repositories.provenance.list_for_company(loser.id):
        if (record.source_id, record.row_hash) in winner_keys:
            continue
        repositories.provenance.add(
            ProvenanceRecord(
                company_id=winner.id,
                source_id=record.source_id,
                row_hash=record.row_hash,
                source_ref=record.source_ref,
                first_seen_at=record.first_seen_at,
                last_seen_at=record.last_seen_at,
                contract_value=record.contract_value,
                contract_year=record.contract_year,
                raw=record.raw,
            )
        )
        provenance_copied += 1

    for field_name, provenance in loser.field_provenance.items():
        if winner.provenance_for(field_name) is None:
            winner.record_provenance(field_name, provenance, cap=FIELD_PROVENANCE_CAP)

    loser.mark_merged_into(winner.id)
    winner.touch()

    candidates_approved = 0
    reviewed_at = utcnow()
    pair = frozenset((winner.id, loser.id))
    for candidate in repositories.merge_candidates.list_involving((winner.id, loser.id)):
        if candidate.pair != pair or candidate.status is MergeStatus.APPROVED:
            continue
        candidate.status = MergeStatus.APPROVED
        candidate.reviewed_at = candidate.reviewed_at or reviewed_at
        candidates_approved += 1

    log.info(
        "Merged company %s into %s (aliases=%s, provenance=%s)",
        loser.id,
        winner.id,
        aliases_created,
        provenance_copied,
    )
    return MergeResult(
        canonical_id=winner.id,
        merged_id=loser.id,
        aliases_created=aliases_created,
        provenance_copied=provenance_copied,
        candidates_approved=candidates_approved,
    )

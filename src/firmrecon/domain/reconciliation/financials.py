"""Checksummed persistence of yearly financial statements."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from firmrecon.domain.ingestion.payload import ROW_HASH_LENGTH, stable_json
from firmrecon.domain.model import FinancialSnapshot, SourceId, utcnow

from .merge import CompanyPatch, MergeEngine, PatchMetadata

if TYPE_CHECKING:
    from collections.abc import Sequence

    from firmrecon.domain.model import Company, FieldChange
    from firmrecon.domain.ports import ReconciliationRepositories

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True, kw_only=True)
class FinancialYear:
    year: int
    revenue: float | None = None
    profit: float | None = None
    employees: int | None = None
    currency: str = "RON"

    def as_tuple(self) -> tuple[int, float | None, float | None, int | None, str]:
        return (self.year, self.revenue, self.profit, self.employees, self.currency)

    @property
    def completeness_confidence(self) -> int:
        score = 0
        if self.revenue is not None:
            score += 40
        if self.profit is not None:
            score += 30
        if self.employees is not None:
            score += 30
        return min(100, score)


class FinancialSyncStatus(StrEnum):
    SYNCED = "synced"
    ALREADY_SYNCED = "already_synced"
    DRY_RUN = "dry_run"
    NO_DATA = "no_data"


@dataclass(slots=True)
class FinancialSyncResult:
    status: FinancialSyncStatus
    checksum: str | None = None
    years_written: list[int] = field(default_factory=list)
    changes: list[FieldChange] = field(default_factory=list)
    message: str | None = None


def financial_checksum(years: Sequence[FinancialYear]) -> str:
    """Checksum over normalized values sorted by year; key order of raw data is irrelevant."""

    rows = [list(item.as_tuple()) for item in sorted(years, key=lambda item: item.year)]
    digest = hashlib.sha256(stable_json(rows).encode("utf-8")).hexdigest()
    return digest[:ROW_HASH_LENGTH]


def sync_financial_snapshots(
    repositories: ReconciliationRepositories,
    company: Company,
    years: Sequence[FinancialYear],
    *,
    data_source: SourceId = SourceId.ANAF_FINANCIALS,
    confidence: int | None = None,
    dry_run: bool = False,
    engine: MergeEngine | None = None,
) -> FinancialSyncResult:
    if not years:
        return FinancialSyncResult(status=FinancialSyncStatus.NO_DATA, message="No years")

    checksum = financial_checksum(years)
    requested_years = [item.year for item in years]
    existing = {
        snapshot.fiscal_year: snapshot
        for snapshot in repositories.financials.list_for_company(
            company.id, data_source=data_source.value, years=requested_years
        )
    }
    if existing and all(
        existing.get(year) is not None and existing[year].checksum == checksum
        for year in requested_years
    ):
        return FinancialSyncResult(
            status=FinancialSyncStatus.ALREADY_SYNCED,
            checksum=checksum,
            message="Data already synced (checksum match)",
        )
    if dry_run:
        return FinancialSyncResult(
            status=FinancialSyncStatus.DRY_RUN,
            checksum=checksum,
            years_written=sorted(requested_years),
        )

    fetched_at = utcnow()
    for item in years:
        snapshot = existing.get(item.year)
        if snapshot is None:
            repositories.financials.add(
                FinancialSnapshot(
                    company_id=company.id,
                    fiscal_year=item.year,
                    data_source=data_source.value,
                    revenue=item.revenue,
                    profit=item.profit,
                    employees=item.employees,
                    currency=item.currency,
                    checksum=checksum,
                    fetched_at=fetched_at,
                )
            )
            continue
        snapshot.revenue = item.revenue
        snapshot.profit = item.profit
        snapshot.employees = item.employees
        snapshot.currency = item.currency
        snapshot.checksum = checksum
        snapshot.fetched_at = fetched_at

    latest = max(years, key=lambda item: item.year)
    values = {
        "revenue_latest": latest.revenue,
        "profit_latest": latest.profit,
        "employees": latest.employees,
    }
    patch = CompanyPatch(
        values={key: value for key, value in values.items() if value is not None},
        metadata=PatchMetadata(
            source_id=data_source,
            source_ref=f"fiscal_year:{latest.year}",
            confidence=latest.completeness_confidence if confidence is None else confidence,
        ),
    )
    outcome = (engine or MergeEngine()).apply(company, patch)
    log.info(
        "Synced %s financial years for %s (checksum %s)", len(years), company.cui, checksum
    )
    return FinancialSyncResult(
        status=FinancialSyncStatus.SYNCED,
        checksum=checksum,
        years_written=sorted(requested_years),
        changes=outcome.changes,
    )

"""Batch sync of yearly financial statements into snapshots and latest metrics."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from firmrecon.domain.errors import ReconciliationError, TransientError
from firmrecon.domain.reconciliation import MergeEngine
from firmrecon.domain.reconciliation.financials import (
    FinancialSyncStatus,
    sync_financial_snapshots,
)

from .verification import BackoffPolicy, retry_with_backoff

if TYPE_CHECKING:
    from uuid import UUID

    from firmrecon.domain.ports import FinancialStatementsSource, ReconciliationUnitOfWork
    from firmrecon.domain.reconciliation.financials import FinancialYear

    from .verification import DeadLetterQueue

log = logging.getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class FinancialBatchResult:
    processed: int = 0
    synced: int = 0
    already_synced: int = 0
    no_data: int = 0
    errors: int = 0
    cursor: str | None = None
    dry_run: bool = False
    error_details: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class FinancialSyncService:
    source: FinancialStatementsSource
    dead_letters: DeadLetterQueue | None = None
    engine: MergeEngine = field(default_factory=MergeEngine)
    policy: BackoffPolicy = field(default_factory=BackoffPolicy)
    sleep: Callable[[float], None] = time.sleep

    def fetch(self, cui: str, *, years: Collection[int] | None = None) -> list[FinancialYear]:
        statements = retry_with_backoff(
            lambda: self.source.fetch(cui), policy=self.policy, sleep=self.sleep
        )
        if years:
            return [item for item in statements if item.year in years]
        return list(statements)

    def run(
        self,
        unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
        *,
        limit: int,
        years: Collection[int] | None = None,
        after_id: UUID | None = None,
        dry_run: bool = False,
    ) -> FinancialBatchResult:
        result = FinancialBatchResult(dry_run=dry_run)
        with unit_of_work_factory() as uow:
            targets = [
                (company.id, company.cui)
                for company in uow.repositories.companies.list_with_cui(
                    after_id=after_id, limit=limit
                )
                if company.cui
            ]
        log.info("Starting financial sync for %s companies (dry_run=%s)", len(targets), dry_run)

        for company_id, cui in targets:
            result.processed += 1
            result.cursor = str(company_id)
            try:
                statements = self.fetch(cui, years=years)
            except ReconciliationError as exc:
                result.errors += 1
                result.error_details[cui] = str(exc)
                if isinstance(exc, TransientError) and not dry_run and self.dead_letters:
                    self.dead_letters.add(cui, str(exc), attempt=self.policy.attempts)
                else:
                    log.warning("Financial fetch for %s failed: %s", cui, exc)
                continue
            if not dry_run and self.dead_letters:
                self.dead_letters.remove(cui)

            with unit_of_work_factory() as uow:
                company = uow.repositories.companies.get(company_id)
                if company is None:
                    continue
                sync = sync_financial_snapshots(
                    uow.repositories, company, statements, dry_run=dry_run, engine=self.engine
                )
                if sync.status is FinancialSyncStatus.SYNCED:
                    uow.commit()
                    result.synced += 1
                elif sync.status is FinancialSyncStatus.ALREADY_SYNCED:
                    result.already_synced += 1
                elif sync.status is FinancialSyncStatus.NO_DATA:
                    result.no_data += 1
                else:
                    result.synced += 1

        if len(targets) < limit:
            result.cursor = None
        log.info(
            "Finished financial sync: processed=%s synced=%s already_synced=%s errors=%s",
            result.processed,
            result.synced,
            result.already_synced,
            result.errors,
        )
        return result

"""Budgeted batch runner: discover, ingest in waves, checkpoint."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any

from firmrecon.config.ingestion import DEFAULT_CONCURRENCY, DEFAULT_TIME_BUDGET_MS
from firmrecon.domain.errors import ReconciliationError, ValidationError
from firmrecon.domain.model import RunStats

from .budget import Budget

if TYPE_CHECKING:
    from firmrecon.domain.model import SourceCandidateRecord
    from firmrecon.domain.ports import SourceAdapter

    from .checkpoints import CheckpointStore
    from .pipeline import RecordIngestor, RecordOutcome

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RecordError:
    cui: str | None
    source_ref: str | None
    error: str


@dataclass(slots=True, kw_only=True)
class IngestBatchResult:
    source_id: str
    discovered: int = 0
    upserted: int = 0
    created: int = 0
    updated: int = 0
    material_changes: int = 0
    errors: int = 0
    error_details: list[RecordError] = field(default_factory=list)
    next_cursor: str | None = None
    dropped: int = 0
    dry_run: bool = False
    already_running: bool = False
    halted_by_budget: bool = False
    fetch_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def record(self, outcome: RecordOutcome) -> None:
        self.upserted += 1
        if outcome.created:
            self.created += 1
        elif outcome.updated:
            self.updated += 1
        self.material_changes += outcome.material_changes

    def fail(self, record: SourceCandidateRecord, exc: Exception) -> None:
        self.errors += 1
        self.error_details.append(
            RecordError(cui=record.cui, source_ref=record.source_ref, error=str(exc))
        )


@dataclass(slots=True)
class BatchRunner:
    """Runs one bounded ingestion batch for a single source.

    Records are submitted in waves of at most ``concurrency``; the budget is consulted
    before each submission. With ``concurrency`` of 1 records are ingested inline.
    The cursor written at the end points right after the last record actually processed,
    so a halted run resumes without skipping or repeating rows.
    """

    adapter: SourceAdapter
    ingestor: RecordIngestor
    checkpoints: CheckpointStore
    concurrency: int = DEFAULT_CONCURRENCY
    time_budget_ms: int = DEFAULT_TIME_BUDGET_MS
    clock: Callable[[], float] = time.monotonic

    def run(self, limit: int, *, dry_run: bool = False) -> IngestBatchResult:
        source_id = self.adapter.source_id.value
        result = IngestBatchResult(source_id=source_id, dry_run=dry_run)
        budget = Budget(
            records_remaining=limit, time_limit_ms=self.time_budget_ms, clock=self.clock
        )
        cursor = self.checkpoints.get_cursor(source_id)
        log.info(
            "Starting %s batch (limit=%s, cursor=%s, dry_run=%s)", source_id, limit, cursor, dry_run
        )

        try:
            batch = self.adapter.discover(cursor, limit)
        except ReconciliationError as exc:
            log.warning("Fetch from %s failed: %s", source_id, exc)
            result.fetch_error = str(exc)
            result.next_cursor = cursor
            self._finish(result, dry_run=dry_run)
            return result

        result.discovered = len(batch.records)
        result.dropped = batch.rows_dropped
        processed = self._process(batch.records, budget, result, dry_run=dry_run)

        if processed < len(batch.records):
            result.halted_by_budget = True
            result.next_cursor = (
                (batch.record_cursors[processed - 1] or None) if processed else cursor
            )
        elif batch.exhausted or len(batch.records) < limit:
            result.next_cursor = None
        else:
            result.next_cursor = batch.next_cursor

        self._finish(result, dry_run=dry_run)
        return result

    def _process(
        self,
        records: list[SourceCandidateRecord],
        budget: Budget,
        result: IngestBatchResult,
        *,
        dry_run: bool,
    ) -> int:
        processed = 0
        if self.concurrency <= 1:
            for record in records:
                if not budget.consume_record():
                    break
                ingest = partial(self.ingestor.ingest, record, dry_run=dry_run)
                self._collect(record, ingest, result)
                processed += 1
            return processed

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            while processed < len(records):
                wave: list[SourceCandidateRecord] = []
                for record in records[processed : processed + self.concurrency]:
                    if not budget.consume_record():
                        break
                    wave.append(record)
                if not wave:
                    break
                futures = [
                    executor.submit(self.ingestor.ingest, record, dry_run=dry_run)
                    for record in wave
                ]
                for record, future in zip(wave, futures, strict=True):
                    self._collect(record, future.result, result)
                processed += len(wave)
        return processed

    def _collect(
        self,
        record: SourceCandidateRecord,
        outcome: Callable[[], RecordOutcome],
        result: IngestBatchResult,
    ) -> None:
        try:
            result.record(outcome())
        except ValidationError as exc:
            log.warning("Skipping %s from %s: %s", record.cui, result.source_id, exc)
            result.fail(record, exc)
        except Exception as exc:
            log.warning(
                "Failed to ingest %s from %s", record.cui, result.source_id, exc_info=exc
            )
            result.fail(record, exc)

    def _finish(self, result: IngestBatchResult, *, dry_run: bool) -> None:
        log.info(
            "Finished %s batch: discovered=%s upserted=%s created=%s updated=%s errors=%s",
            result.source_id,
            result.discovered,
            result.upserted,
            result.created,
            result.updated,
            result.errors,
        )
        if dry_run:
            return
        self.checkpoints.set_cursor(result.source_id, result.next_cursor)
        self.checkpoints.write_stats(
            result.source_id,
            RunStats(
                discovered=result.discovered,
                upserted=result.upserted,
                errors=result.errors,
                cursor=result.next_cursor,
            ),
        )

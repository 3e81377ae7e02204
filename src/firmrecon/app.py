"""Application orchestration entry points.

Every entry point wires the configured adapters unless callers pass their own, and
every write path accepts ``dry_run``: the same matching and decisions, nothing stored.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import UUID

from firmrecon.adapters.anaf import AnafFinancialsClient, AnafVerificationClient
from firmrecon.adapters.sources import (
    HTTP_PROVIDER_ID,
    INGESTIBLE_SOURCES,
    ProviderRegistry,
    build_source_adapter,
)
from firmrecon.adapters.sqlalchemy.kv_store import SqlAlchemyKeyValueStore
from firmrecon.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    configured_engine,
    startup,
)
from firmrecon.config import get_anaf_config, get_dedup_config, get_ingestion_config
from firmrecon.domain import verification
from firmrecon.domain.errors import ReconciliationError, ValidationError
from firmrecon.domain.financial_sync import FinancialBatchResult, FinancialSyncService
from firmrecon.domain.ingestion.batch import BatchRunner, IngestBatchResult
from firmrecon.domain.ingestion.bulk import (
    BulkUpsertResult,
    NationalListing,
    upsert_companies_from_cuis,
)
from firmrecon.domain.ingestion.checkpoints import CheckpointStore
from firmrecon.domain.ingestion.hooks import default_hooks
from firmrecon.domain.ingestion.jobs import IngestJobStore, start_job
from firmrecon.domain.ingestion.locks import DistributedLock
from firmrecon.domain.ingestion.pipeline import RecordIngestor
from firmrecon.domain.model import IngestJob, SourceId
from firmrecon.domain.ports import HealthStatus
from firmrecon.domain.ports.unit_of_work import ReconciliationUnitOfWork
from firmrecon.domain.reconciliation import (
    MergeEngine,
    MergeResult,
    scan_duplicates,
)
from firmrecon.domain.reconciliation import apply_merge as merge_companies
from firmrecon.domain.reconciliation import approve_candidate as approve
from firmrecon.domain.reconciliation import reject_candidate as reject
from firmrecon.domain.verification import (
    FINANCIALS_SUBSYSTEM,
    VERIFICATION_SUBSYSTEM,
    BackoffPolicy,
    DeadLetterQueue,
    VerificationBatchResult,
    VerificationService,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from firmrecon.domain.model import Checkpoint, DeadLetterEntry, MergeCandidate
    from firmrecon.domain.ports import (
        CompanyVerifier,
        FinancialStatementsSource,
        KeyValueStore,
        SourceAdapter,
    )

UnitOfWorkFactory = Callable[[], ReconciliationUnitOfWork]

VERIFICATION_CHECKPOINT = SourceId.ANAF_VERIFY.value
FINANCIALS_CHECKPOINT = SourceId.ANAF_FINANCIALS.value

log = getLogger(__name__)


def _engine() -> Engine:
    return configured_engine() or startup()


def _unit_of_work(factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if factory is not None:
        return factory
    _engine()
    return SqlAlchemyUnitOfWork


def _store(store: KeyValueStore | None) -> KeyValueStore:
    return store if store is not None else SqlAlchemyKeyValueStore(_engine())


def _require_positive(name: str, value: int) -> int:
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}", field=name)
    return value


def _cursor_id(checkpoints: CheckpointStore, checkpoint: str) -> UUID | None:
    cursor = checkpoints.get_cursor(checkpoint)
    if cursor is None:
        return None
    try:
        return UUID(cursor)
    except ValueError:
        log.warning("Discarding malformed %s cursor %r", checkpoint, cursor)
        checkpoints.reset_cursor(checkpoint)
        return None


# Ingestion ---------------------------------------------------------------------


def run_ingest_batch(
    source_id: SourceId | str,
    limit: int | None = None,
    *,
    dry_run: bool = False,
    adapter: SourceAdapter | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    store: KeyValueStore | None = None,
    provider_id: str = HTTP_PROVIDER_ID,
    registry: ProviderRegistry | None = None,
    concurrency: int | None = None,
    time_budget_ms: int | None = None,
) -> IngestBatchResult:
    """Run one bounded ingestion batch for ``source_id`` under its distributed lock."""

    config = get_ingestion_config()
    effective_limit = _require_positive("limit", config.batch_limit if limit is None else limit)
    effective_adapter = adapter or build_source_adapter(
        source_id, provider_id=provider_id, registry=registry
    )
    effective_uow = _unit_of_work(unit_of_work_factory)
    effective_store = _store(store)
    source = effective_adapter.source_id.value

    lock = DistributedLock(effective_store, f"ingest:{source}", ttl_seconds=config.lock_ttl_seconds)
    if not lock.acquire():
        log.info("Ingestion for %s already running, skipping", source)
        return IngestBatchResult(source_id=source, dry_run=dry_run, already_running=True)

    try:
        ingestor = RecordIngestor(
            effective_uow,
            engine=MergeEngine(field_provenance_cap=config.field_provenance_cap),
            hooks=default_hooks(effective_uow),
            raw_payload_max_bytes=config.raw_payload_max_bytes,
        )
        runner = BatchRunner(
            adapter=effective_adapter,
            ingestor=ingestor,
            checkpoints=CheckpointStore(effective_store, ttl_seconds=config.cursor_ttl_seconds),
            concurrency=concurrency or config.concurrency,
            time_budget_ms=time_budget_ms or config.time_budget_ms,
        )
        return runner.run(effective_limit, dry_run=dry_run)
    finally:
        lock.release()


def upsert_national(
    items: Iterable[NationalListing],
    *,
    dry_run: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> BulkUpsertResult:
    config = get_ingestion_config()
    return upsert_companies_from_cuis(
        items,
        _unit_of_work(unit_of_work_factory),
        dry_run=dry_run,
        batch_size=config.bulk_batch_size,
        engine=MergeEngine(field_provenance_cap=config.field_provenance_cap),
    )


def start_ingest_job(
    source_id: SourceId | str,
    limit: int | None = None,
    *,
    dry_run: bool = False,
    detach: bool = True,
    adapter: SourceAdapter | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    store: KeyValueStore | None = None,
) -> IngestJob:
    """Queue an ingestion run; poll it with ``get_ingest_job``."""

    config = get_ingestion_config()
    effective_limit = _require_positive("limit", config.batch_limit if limit is None else limit)
    effective_store = _store(store)
    job = IngestJob(source_id=str(source_id), limit=effective_limit, dry_run=dry_run)
    run_batch = partial(
        run_ingest_batch,
        source_id,
        effective_limit,
        dry_run=dry_run,
        adapter=adapter,
        unit_of_work_factory=unit_of_work_factory,
        store=effective_store,
    )
    start_job(IngestJobStore(effective_store), job, run_batch, detach=detach)
    log.info("Queued ingest job %s for %s", job.id, source_id)
    return job


def get_ingest_job(job_id: UUID | str, *, store: KeyValueStore | None = None) -> IngestJob | None:
    return IngestJobStore(_store(store)).get(job_id)


def check_sources_health(
    source_ids: Iterable[SourceId | str] | None = None,
    *,
    provider_id: str = HTTP_PROVIDER_ID,
) -> dict[str, HealthStatus]:
    statuses: dict[str, HealthStatus] = {}
    for source_id in source_ids or INGESTIBLE_SOURCES:
        key = str(source_id)
        try:
            statuses[key] = build_source_adapter(source_id, provider_id=provider_id).health_check()
        except ReconciliationError as exc:
            statuses[key] = HealthStatus(available=False, reason=str(exc))
    return statuses


# Checkpoints -------------------------------------------------------------------


def reset_cursor(source_id: SourceId | str, *, store: KeyValueStore | None = None) -> None:
    CheckpointStore(_store(store)).reset_cursor(str(source_id))


def read_checkpoint(
    source_id: SourceId | str, *, store: KeyValueStore | None = None
) -> Checkpoint:
    return CheckpointStore(_store(store)).read(str(source_id))


def checkpoint_snapshot(
    source_ids: Iterable[SourceId | str] | None = None,
    *,
    store: KeyValueStore | None = None,
) -> dict[str, Checkpoint]:
    ids = [str(source_id) for source_id in source_ids or INGESTIBLE_SOURCES]
    return CheckpointStore(_store(store)).snapshot(ids)


# Verification and financials ---------------------------------------------------


def run_verification_batch(
    limit: int | None = None,
    *,
    dry_run: bool = False,
    ttl_days: int | None = None,
    verifier: CompanyVerifier | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    store: KeyValueStore | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> VerificationBatchResult:
    """Verify companies whose ANAF verification is missing or stale, resuming by id."""

    anaf = get_anaf_config()
    effective_limit = _require_positive(
        "limit", get_ingestion_config().batch_limit if limit is None else limit
    )
    effective_uow = _unit_of_work(unit_of_work_factory)
    effective_store = _store(store)
    checkpoints = CheckpointStore(effective_store)
    service = VerificationService(
        verifier=verifier or AnafVerificationClient(effective_store, anaf),
        dead_letters=DeadLetterQueue(
            effective_store, VERIFICATION_SUBSYSTEM, cap=anaf.dead_letter_cap
        ),
        policy=BackoffPolicy.from_config(anaf),
        sleep=sleep,
    )
    result = verification.run_verification_batch(
        effective_uow,
        service,
        limit=effective_limit,
        ttl_days=ttl_days if ttl_days is not None else anaf.verification_ttl_days,
        after_id=_cursor_id(checkpoints, VERIFICATION_CHECKPOINT),
        dry_run=dry_run,
    )
    if not dry_run:
        checkpoints.set_cursor(VERIFICATION_CHECKPOINT, result.cursor)
    return result


def run_financial_sync(
    limit: int | None = None,
    *,
    years: Iterable[int] | None = None,
    dry_run: bool = False,
    source: FinancialStatementsSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    store: KeyValueStore | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FinancialBatchResult:
    anaf = get_anaf_config()
    effective_limit = _require_positive(
        "limit", get_ingestion_config().batch_limit if limit is None else limit
    )
    effective_uow = _unit_of_work(unit_of_work_factory)
    effective_store = _store(store)
    checkpoints = CheckpointStore(effective_store)
    service = FinancialSyncService(
        source=source or AnafFinancialsClient(effective_store, anaf),
        dead_letters=DeadLetterQueue(
            effective_store, FINANCIALS_SUBSYSTEM, cap=anaf.dead_letter_cap
        ),
        engine=MergeEngine(field_provenance_cap=get_ingestion_config().field_provenance_cap),
        policy=BackoffPolicy.from_config(anaf),
        sleep=sleep,
    )
    result = service.run(
        effective_uow,
        limit=effective_limit,
        years=set(years) if years is not None else None,
        after_id=_cursor_id(checkpoints, FINANCIALS_CHECKPOINT),
        dry_run=dry_run,
    )
    if not dry_run:
        checkpoints.set_cursor(FINANCIALS_CHECKPOINT, result.cursor)
    return result


def _dead_letters(subsystem: str, store: KeyValueStore | None) -> DeadLetterQueue:
    if subsystem not in {VERIFICATION_SUBSYSTEM, FINANCIALS_SUBSYSTEM}:
        raise ValidationError(f"Unknown dead-letter list: {subsystem}", field="subsystem")
    return DeadLetterQueue(_store(store), subsystem, cap=get_anaf_config().dead_letter_cap)


def list_dead_letters(
    subsystem: str = VERIFICATION_SUBSYSTEM,
    limit: int = verification.DEFAULT_DEAD_LETTER_LIST_LIMIT,
    *,
    store: KeyValueStore | None = None,
) -> list[DeadLetterEntry]:
    return _dead_letters(subsystem, store).list(limit)


def remove_dead_letter(
    cui: str, subsystem: str = VERIFICATION_SUBSYSTEM, *, store: KeyValueStore | None = None
) -> int:
    return _dead_letters(subsystem, store).remove(cui)


def clear_dead_letters(
    subsystem: str = VERIFICATION_SUBSYSTEM, *, store: KeyValueStore | None = None
) -> int:
    return _dead_letters(subsystem, store).clear()


# Duplicates and merges ---------------------------------------------------------


def run_dedup_scan(
    min_confidence: int | None = None,
    *,
    dry_run: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[MergeCandidate]:
    config = get_dedup_config()
    result = scan_duplicates(
        _unit_of_work(unit_of_work_factory),
        min_confidence=min_confidence if min_confidence is not None else config.min_confidence,
        max_block_size=config.max_block_size,
        dry_run=dry_run,
    )
    return result.candidates


def apply_merge(
    source_id: UUID,
    target_id: UUID,
    *,
    dry_run: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> MergeResult:
    # A dry run leaves the block without committing; closing the session discards it.
    with _unit_of_work(unit_of_work_factory)() as uow:
        result = merge_companies(uow.repositories, source_id, target_id)
        if not dry_run:
            uow.commit()
    return result


def approve_candidate(
    candidate_id: UUID,
    reviewer: str | None = None,
    *,
    dry_run: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> MergeResult:
    with _unit_of_work(unit_of_work_factory)() as uow:
        result = approve(uow.repositories, candidate_id, reviewer)
        if not dry_run:
            uow.commit()
    return result


def reject_candidate(
    candidate_id: UUID,
    reviewer: str | None = None,
    *,
    dry_run: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> MergeCandidate:
    with _unit_of_work(unit_of_work_factory)() as uow:
        candidate = reject(uow.repositories, candidate_id, reviewer)
        if not dry_run:
            uow.commit()
    return candidate

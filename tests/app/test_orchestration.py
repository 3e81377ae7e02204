from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from firmrecon import app
from firmrecon.domain.errors import ConflictError, ValidationError
from firmrecon.domain.ingestion.bulk import NationalListing
from firmrecon.domain.ingestion.locks import DistributedLock
from firmrecon.domain.model import JobStatus, MergeStatus, VerificationState
from firmrecon.domain.ports import VerificationOutcome
from firmrecon.domain.reconciliation.financials import FinancialYear
from tests.helpers.companies import make_company, make_record
from tests.helpers.fakes import (
    FakeFinancialsSource,
    FakeSourceAdapter,
    FakeVerifier,
    InMemoryKeyValueStore,
    RecordingSleep,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from firmrecon.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from firmrecon.domain.model import Company

    UowFactory = Callable[[], SqlAlchemyUnitOfWork]


def _seap_adapter() -> FakeSourceAdapter:
    return FakeSourceAdapter(
        [
            make_record("RO1000001", name="Alpha SRL", source_ref="c-1"),
            make_record("RO1000002", name="Beta SRL", source_ref="c-2"),
            make_record("RO1000001", name="Alpha SRL", source_ref="c-3"),
        ]
    )


def _persist(uow_factory: UowFactory, *companies: Company) -> None:
    with uow_factory() as uow:
        for company in companies:
            uow.repositories.companies.add(company)
        uow.commit()


def test_ingest_batch_end_to_end(sqlite_unit_of_work: UowFactory) -> None:
    store = InMemoryKeyValueStore()

    result = app.run_ingest_batch(
        "seap",
        2,
        adapter=_seap_adapter(),
        unit_of_work_factory=sqlite_unit_of_work,
        store=store,
        concurrency=1,
    )
    follow_up = app.run_ingest_batch(
        "seap",
        2,
        adapter=_seap_adapter(),
        unit_of_work_factory=sqlite_unit_of_work,
        store=store,
        concurrency=1,
    )

    assert result.created == 2
    assert result.next_cursor == "2"
    assert follow_up.discovered == 1
    assert follow_up.created == 0
    assert follow_up.next_cursor is None
    checkpoint = app.read_checkpoint("seap", store=store)
    assert checkpoint.cursor is None
    assert checkpoint.last_run is not None
    assert checkpoint.last_run.discovered == 1
    assert store.get("lock:ingest:seap") is None
    with sqlite_unit_of_work() as uow:
        alpha = uow.repositories.companies.get_by_cui("1000001")
        assert alpha is not None
        evidence = uow.repositories.provenance.list_for_company(alpha.id)
    assert len(evidence) == 2


def test_ingest_skips_when_lock_is_held(sqlite_unit_of_work: UowFactory) -> None:
    store = InMemoryKeyValueStore()
    assert DistributedLock(store, "ingest:seap", ttl_seconds=60).acquire()
    adapter = _seap_adapter()

    result = app.run_ingest_batch(
        "seap", 10, adapter=adapter, unit_of_work_factory=sqlite_unit_of_work, store=store
    )

    assert result.already_running
    assert adapter.calls == []


def test_ingest_rejects_non_positive_limit(sqlite_unit_of_work: UowFactory) -> None:
    with pytest.raises(ValidationError):
        app.run_ingest_batch(
            "seap",
            0,
            adapter=_seap_adapter(),
            unit_of_work_factory=sqlite_unit_of_work,
            store=InMemoryKeyValueStore(),
        )


def test_ingest_job_inline(
    sqlite_unit_of_work: UowFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    # in-memory SQLite is per-thread
    monkeypatch.setenv("INGEST_CONCURRENCY", "1")
    store = InMemoryKeyValueStore()

    job = app.start_ingest_job(
        "seap",
        10,
        detach=False,
        adapter=_seap_adapter(),
        unit_of_work_factory=sqlite_unit_of_work,
        store=store,
    )

    stored = app.get_ingest_job(job.id, store=store)
    assert stored is not None
    assert stored.status is JobStatus.SUCCEEDED
    assert stored.result is not None
    assert stored.result["created"] == 2


def test_cursor_reset_and_snapshot() -> None:
    store = InMemoryKeyValueStore()
    store.set("cursor:seap", "40")

    snapshot = app.checkpoint_snapshot(store=store)
    app.reset_cursor("seap", store=store)

    assert set(snapshot) == {"seap", "eu_funds", "third_party"}
    assert snapshot["seap"].cursor == "40"
    assert app.read_checkpoint("seap", store=store).cursor is None


def test_national_upsert(sqlite_unit_of_work: UowFactory) -> None:
    result = app.upsert_national(
        [NationalListing(cui="1000001"), NationalListing(cui="bad")],
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert result.created == 1
    assert result.errors == 1


def test_verification_batch_moves_failures_to_dead_letters(
    sqlite_unit_of_work: UowFactory,
) -> None:
    _persist(
        sqlite_unit_of_work,
        make_company("Good Co", cui="1000001"),
        make_company("Throttled Co", cui="1000002"),
    )
    store = InMemoryKeyValueStore()
    throttled = VerificationOutcome(
        state=VerificationState.RATE_LIMITED, cui="1000002", retryable=True
    )
    verifier = FakeVerifier({"1000002": [throttled]})

    result = app.run_verification_batch(
        10,
        verifier=verifier,
        unit_of_work_factory=sqlite_unit_of_work,
        store=store,
        sleep=RecordingSleep(),
    )

    assert result.verified == 1
    assert result.rate_limited == 1
    assert result.cursor is None
    entries = app.list_dead_letters("verification", store=store)
    assert [entry.cui for entry in entries] == ["1000002"]
    assert app.remove_dead_letter("1000002", store=store) == 1
    assert app.clear_dead_letters("verification", store=store) == 0
    with pytest.raises(ValidationError):
        app.list_dead_letters("unknown", store=store)


def test_verification_resumes_after_partial_batch(sqlite_unit_of_work: UowFactory) -> None:
    _persist(
        sqlite_unit_of_work,
        *(make_company(f"Company {index}", cui=f"100000{index}") for index in range(1, 4)),
    )
    store = InMemoryKeyValueStore()
    verifier = FakeVerifier()

    first = app.run_verification_batch(
        2, verifier=verifier, unit_of_work_factory=sqlite_unit_of_work, store=store
    )
    second = app.run_verification_batch(
        2, verifier=verifier, unit_of_work_factory=sqlite_unit_of_work, store=store
    )

    assert first.processed == 2
    assert first.cursor is not None
    assert store.get("cursor:anaf_verify") == first.cursor
    assert second.processed == 1
    assert second.cursor is None
    assert sorted(verifier.calls) == ["1000001", "1000002", "1000003"]


def test_financial_sync_through_app(sqlite_unit_of_work: UowFactory) -> None:
    company = make_company("Alpha SRL", cui="1000001")
    _persist(sqlite_unit_of_work, company)
    source = FakeFinancialsSource(
        {"1000001": [FinancialYear(year=2023, revenue=5000.0, profit=100.0, employees=3)]}
    )

    result = app.run_financial_sync(
        10,
        source=source,
        unit_of_work_factory=sqlite_unit_of_work,
        store=InMemoryKeyValueStore(),
        sleep=RecordingSleep(),
    )

    assert result.synced == 1
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.companies.get(company.id)
    assert stored is not None
    assert stored.revenue_latest == 5000.0


def test_duplicate_review_flow(sqlite_unit_of_work: UowFactory) -> None:
    registered = make_company("Alpha SRL", cui="1000001", domain="alpha.ro", county_slug="cluj")
    listed = make_company("Alpha", cui=None, domain="alpha.ro", county_slug="cluj")
    _persist(sqlite_unit_of_work, registered, listed)

    preview = app.run_dedup_scan(dry_run=True, unit_of_work_factory=sqlite_unit_of_work)
    candidates = app.run_dedup_scan(unit_of_work_factory=sqlite_unit_of_work)
    assert len(preview) == 1
    assert len(candidates) == 1
    assert app.run_dedup_scan(unit_of_work_factory=sqlite_unit_of_work) == []

    merged = app.approve_candidate(
        candidates[0].id, "reviewer@example.ro", unit_of_work_factory=sqlite_unit_of_work
    )

    assert merged.canonical_id == registered.id
    assert merged.merged_id == listed.id
    with sqlite_unit_of_work() as uow:
        loser = uow.repositories.companies.get(listed.id)
        candidate = uow.repositories.merge_candidates.get(candidates[0].id)
    assert loser is not None
    assert loser.merged_into == registered.id
    assert candidate is not None
    assert candidate.status is MergeStatus.APPROVED
    assert candidate.reviewed_by == "reviewer@example.ro"
    with pytest.raises(ConflictError):
        app.reject_candidate(candidates[0].id, unit_of_work_factory=sqlite_unit_of_work)


def test_direct_merge_dry_run_changes_nothing(sqlite_unit_of_work: UowFactory) -> None:
    registered = make_company("Alpha SRL", cui="1000001")
    listed = make_company("Alpha", cui=None)
    _persist(sqlite_unit_of_work, registered, listed)

    result = app.apply_merge(
        listed.id, registered.id, dry_run=True, unit_of_work_factory=sqlite_unit_of_work
    )

    assert result.canonical_id == registered.id
    with sqlite_unit_of_work() as uow:
        loser = uow.repositories.companies.get(listed.id)
    assert loser is not None
    assert loser.merged_into is None


def test_merging_different_tax_ids_is_refused(sqlite_unit_of_work: UowFactory) -> None:
    first = make_company("Alpha SRL", cui="1000001")
    second = make_company("Alpha Two SRL", cui="1000002")
    _persist(sqlite_unit_of_work, first, second)

    with pytest.raises(ConflictError):
        app.apply_merge(first.id, second.id, unit_of_work_factory=sqlite_unit_of_work)


def test_health_reports_unconfigured_and_unsupported_sources(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("SEAP_CSV_URL", raising=False)

    statuses = app.check_sources_health(["seap", "national"])

    assert not statuses["seap"].available
    assert not statuses["national"].available
    assert statuses["national"].reason is not None

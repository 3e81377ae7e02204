from __future__ import annotations

from typing import TYPE_CHECKING

from firmrecon.domain.financial_sync import FinancialSyncService
from firmrecon.domain.model import SourceId
from firmrecon.domain.reconciliation.financials import (
    FinancialSyncStatus,
    FinancialYear,
    financial_checksum,
    sync_financial_snapshots,
)
from firmrecon.domain.verification import DeadLetterQueue
from tests.helpers.companies import make_company
from tests.helpers.fakes import FakeFinancialsSource, InMemoryKeyValueStore, RecordingSleep

if TYPE_CHECKING:
    from collections.abc import Callable

    from firmrecon.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from firmrecon.domain.model import Company

    UowFactory = Callable[[], SqlAlchemyUnitOfWork]


YEARS = [
    FinancialYear(year=2022, revenue=800_000.0, profit=50_000.0, employees=12),
    FinancialYear(year=2023, revenue=1_000_000.0, profit=75_000.0, employees=15),
]


def _stored(uow_factory: UowFactory, company: Company) -> Company:
    with uow_factory() as uow:
        uow.repositories.companies.add(company)
        uow.commit()
    return company


def test_checksum_ignores_input_order() -> None:
    assert financial_checksum(YEARS) == financial_checksum(list(reversed(YEARS)))
    assert len(financial_checksum(YEARS)) == 32
    changed = [YEARS[0], FinancialYear(year=2023, revenue=1.0, profit=75_000.0, employees=15)]
    assert financial_checksum(changed) != financial_checksum(YEARS)


def test_completeness_confidence() -> None:
    assert YEARS[0].completeness_confidence == 100
    assert FinancialYear(year=2023, revenue=10.0).completeness_confidence == 40
    assert FinancialYear(year=2023).completeness_confidence == 0


def test_sync_writes_snapshots_and_latest_metrics(sqlite_unit_of_work: UowFactory) -> None:
    company = _stored(sqlite_unit_of_work, make_company())

    with sqlite_unit_of_work() as uow:
        loaded = uow.repositories.companies.get(company.id)
        assert loaded is not None
        result = sync_financial_snapshots(uow.repositories, loaded, YEARS)
        uow.commit()

    assert result.status is FinancialSyncStatus.SYNCED
    assert result.years_written == [2022, 2023]
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.companies.get(company.id)
        snapshots = uow.repositories.financials.list_for_company(
            company.id, data_source=SourceId.ANAF_FINANCIALS.value
        )
    assert stored is not None
    assert stored.revenue_latest == 1_000_000.0
    assert stored.profit_latest == 75_000.0
    assert stored.employees == 15
    assert sorted(snapshot.fiscal_year for snapshot in snapshots) == [2022, 2023]
    assert {snapshot.checksum for snapshot in snapshots} == {result.checksum}


def test_sync_is_skipped_when_checksum_matches(sqlite_unit_of_work: UowFactory) -> None:
    company = _stored(sqlite_unit_of_work, make_company())
    for expected in (FinancialSyncStatus.SYNCED, FinancialSyncStatus.ALREADY_SYNCED):
        with sqlite_unit_of_work() as uow:
            loaded = uow.repositories.companies.get(company.id)
            assert loaded is not None
            result = sync_financial_snapshots(uow.repositories, loaded, YEARS)
            uow.commit()
        assert result.status is expected


def test_sync_without_years_or_in_dry_run(sqlite_unit_of_work: UowFactory) -> None:
    company = _stored(sqlite_unit_of_work, make_company())

    with sqlite_unit_of_work() as uow:
        loaded = uow.repositories.companies.get(company.id)
        assert loaded is not None
        empty = sync_financial_snapshots(uow.repositories, loaded, [])
        preview = sync_financial_snapshots(uow.repositories, loaded, YEARS, dry_run=True)
        uow.rollback()

    assert empty.status is FinancialSyncStatus.NO_DATA
    assert preview.status is FinancialSyncStatus.DRY_RUN
    assert preview.years_written == [2022, 2023]
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.financials.list_for_company(
            company.id, data_source=SourceId.ANAF_FINANCIALS.value
        ) == []


def test_service_run_counts_each_outcome(sqlite_unit_of_work: UowFactory) -> None:
    synced = _stored(sqlite_unit_of_work, make_company("Synced Co", cui="1000001"))
    _stored(sqlite_unit_of_work, make_company("Empty Co", cui="1000002"))
    _stored(sqlite_unit_of_work, make_company("Down Co", cui="1000003"))
    store = InMemoryKeyValueStore()
    source = FakeFinancialsSource({"1000001": YEARS}, transient={"1000003"})
    service = FinancialSyncService(
        source,
        dead_letters=DeadLetterQueue(store, "financials"),
        sleep=RecordingSleep(),
    )

    result = service.run(sqlite_unit_of_work, limit=10)

    assert result.processed == 3
    assert result.synced == 1
    assert result.no_data == 1
    assert result.errors == 1
    assert "1000003" in result.error_details
    assert source.calls.count("1000003") == 3
    assert [entry["cui"] for entry in store.list_range("deadletter:financials")] == ["1000003"]
    assert result.cursor is None
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.companies.get(synced.id)
    assert stored is not None
    assert stored.revenue_latest == 1_000_000.0

    again = service.run(sqlite_unit_of_work, limit=10)
    assert again.already_synced == 1


def test_service_filters_requested_years() -> None:
    service = FinancialSyncService(FakeFinancialsSource({"1000001": YEARS}))

    assert [item.year for item in service.fetch("1000001", years={2023})] == [2023]


def test_recovered_company_leaves_the_dead_letter_list(sqlite_unit_of_work: UowFactory) -> None:
    _stored(sqlite_unit_of_work, make_company("Flaky Co", cui="1000001"))
    store = InMemoryKeyValueStore()
    queue = DeadLetterQueue(store, "financials")
    source = FakeFinancialsSource({"1000001": YEARS}, transient={"1000001"})
    service = FinancialSyncService(source, dead_letters=queue, sleep=RecordingSleep())

    service.run(sqlite_unit_of_work, limit=10)
    assert [entry.cui for entry in queue.list()] == ["1000001"]

    source.transient.clear()
    result = service.run(sqlite_unit_of_work, limit=10)

    assert result.synced == 1
    assert queue.list() == []

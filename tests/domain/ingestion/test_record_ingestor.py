from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from firmrecon.domain.errors import ValidationError
from firmrecon.domain.ingestion import pipeline
from firmrecon.domain.ingestion.hooks import PostIngestionHooks
from firmrecon.domain.ingestion.pipeline import (
    RecordIngestor,
    sanitize_contract_value,
    sanitize_contract_year,
)
from firmrecon.domain.model import SourceId
from firmrecon.domain.reconciliation import IdentityResolver, NewEntityResolution
from tests.helpers.companies import make_company, make_record

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from firmrecon.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from firmrecon.domain.model import Company, SourceCandidateRecord
    from firmrecon.domain.ports import CompanyRepository

    UowFactory = Callable[[], SqlAlchemyUnitOfWork]


def _company(uow_factory: UowFactory, cui: str) -> Company | None:
    with uow_factory() as uow:
        return uow.repositories.companies.get_by_cui(cui)


def test_new_record_creates_company_and_provenance(sqlite_unit_of_work: UowFactory) -> None:
    outcome = RecordIngestor(sqlite_unit_of_work).ingest(
        make_record("RO14399840", county="Cluj", contract_value=1500.0, contract_year=2024)
    )

    assert outcome.created
    assert outcome.provenance_created
    assert outcome.cui == "14399840"
    company = _company(sqlite_unit_of_work, "14399840")
    assert company is not None
    assert company.id == outcome.company_id
    assert company.name == "Example Solutions SRL"
    assert company.slug == "example-solutions-srl"
    assert company.county_slug == "cluj"
    assert company.revenue_latest is None
    with sqlite_unit_of_work() as uow:
        records = uow.repositories.provenance.list_for_company(company.id)
    assert len(records) == 1
    assert records[0].source_id is SourceId.SEAP
    assert records[0].contract_value == 1500.0
    assert records[0].contract_year == 2024


def test_same_record_twice_is_idempotent(sqlite_unit_of_work: UowFactory) -> None:
    ingestor = RecordIngestor(sqlite_unit_of_work)
    first_seen = datetime(2025, 3, 1, tzinfo=UTC)
    ingestor.ingest(make_record(seen_at=first_seen))

    again = ingestor.ingest(make_record(seen_at=first_seen + timedelta(days=2)))

    assert not again.created
    assert not again.updated
    assert not again.provenance_created
    with sqlite_unit_of_work() as uow:
        records = uow.repositories.provenance.list_for_company(again.company_id)
    assert len(records) == 1
    assert records[0].first_seen_at == first_seen
    assert records[0].last_seen_at == first_seen + timedelta(days=2)


def test_distinct_rows_add_provenance_to_same_company(sqlite_unit_of_work: UowFactory) -> None:
    ingestor = RecordIngestor(sqlite_unit_of_work)
    first = ingestor.ingest(make_record(source_ref="contract-1"))
    second = ingestor.ingest(make_record(source_ref="contract-2"))

    assert second.company_id == first.company_id
    assert second.provenance_created
    with sqlite_unit_of_work() as uow:
        assert len(uow.repositories.provenance.list_for_company(first.company_id)) == 2


def test_invalid_cui_is_rejected(sqlite_unit_of_work: UowFactory) -> None:
    with pytest.raises(ValidationError):
        RecordIngestor(sqlite_unit_of_work).ingest(make_record("RO"))


def test_new_company_needs_a_name(sqlite_unit_of_work: UowFactory) -> None:
    ingestor = RecordIngestor(sqlite_unit_of_work)

    with pytest.raises(ValidationError):
        ingestor.ingest(make_record(name=None))
    with pytest.raises(ValidationError):
        ingestor.ingest(make_record(confidence=20))

    assert _company(sqlite_unit_of_work, "14399840") is None


def test_dry_run_stores_nothing(sqlite_unit_of_work: UowFactory) -> None:
    outcome = RecordIngestor(sqlite_unit_of_work).ingest(make_record(), dry_run=True)

    assert outcome.created
    assert outcome.changes
    assert _company(sqlite_unit_of_work, "14399840") is None


def test_higher_priority_source_updates_existing_company(
    sqlite_unit_of_work: UowFactory,
) -> None:
    ingestor = RecordIngestor(sqlite_unit_of_work)
    ingestor.ingest(make_record(name="Example Solutions", source_id=SourceId.THIRD_PARTY))

    outcome = ingestor.ingest(
        make_record(name="Example Solutions SRL", source_id=SourceId.EU_FUNDS, confidence=70)
    )

    assert outcome.updated
    assert outcome.material_changes >= 1
    company = _company(sqlite_unit_of_work, "14399840")
    assert company is not None
    assert company.name == "Example Solutions SRL"


def test_domain_match_adopts_tax_id_for_later_rows(sqlite_unit_of_work: UowFactory) -> None:
    seeded = make_company("Acme", cui=None, domain="acme.ro", county_slug="cluj")
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(seeded)
        uow.commit()
    ingestor = RecordIngestor(sqlite_unit_of_work)

    first = ingestor.ingest(make_record("RO14399840", domain="acme.ro", county="Cluj"))
    second = ingestor.ingest(make_record("RO14399840", source_ref="contract-2"))

    assert not first.created
    assert first.resolution_reason == "domain_county_match"
    assert not second.created
    assert second.company_id == first.company_id == seeded.id
    company = _company(sqlite_unit_of_work, "14399840")
    assert company is not None
    assert company.id == seeded.id


def test_slug_collision_appends_tax_id(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(
            make_company("Example Solutions SRL", cui="22222222", slug="example-solutions-srl")
        )
        uow.commit()

    RecordIngestor(sqlite_unit_of_work).ingest(make_record())

    company = _company(sqlite_unit_of_work, "14399840")
    assert company is not None
    assert company.slug == "example-solutions-srl-14399840"


def test_concurrent_insert_is_retried_as_update(
    sqlite_unit_of_work: UowFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(make_company("Example Solutions", cui="14399840"))
        uow.commit()
    calls: list[str | None] = []

    class StaleFirstRead:
        def __init__(self, companies: CompanyRepository, aliases: object = None) -> None:
            self._resolver = IdentityResolver(companies)

        def resolve(self, record: SourceCandidateRecord) -> object:
            calls.append(record.cui)
            if len(calls) == 1:
                return NewEntityResolution(reason="stale_read")
            return self._resolver.resolve(record)

    monkeypatch.setattr(pipeline, "IdentityResolver", StaleFirstRead)

    outcome = RecordIngestor(sqlite_unit_of_work).ingest(make_record())

    assert len(calls) == 2
    assert not outcome.created
    assert outcome.provenance_created


def test_hooks_run_after_write_and_failures_are_isolated(
    sqlite_unit_of_work: UowFactory,
) -> None:
    seen: list[UUID] = []

    def failing(_company_id: UUID) -> None:
        raise RuntimeError("boom")

    hooks = PostIngestionHooks()
    hooks.register("failing", failing)
    hooks.register("recording", seen.append)
    ingestor = RecordIngestor(sqlite_unit_of_work, hooks=hooks)

    outcome = ingestor.ingest(make_record())
    ingestor.ingest(make_record())
    ingestor.ingest(make_record("22222222"), dry_run=True)

    assert seen == [outcome.company_id]


def test_contract_sanitizers() -> None:
    assert sanitize_contract_value(-5.0) is None
    assert sanitize_contract_value(0) is None
    assert sanitize_contract_value(10.5) == 10.5
    assert sanitize_contract_year(1999) is None
    assert sanitize_contract_year(datetime.now(UTC).year + 2) is None
    assert sanitize_contract_year(2020) == 2020
    assert sanitize_contract_year(None) is None

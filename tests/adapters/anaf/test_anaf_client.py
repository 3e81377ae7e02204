from __future__ import annotations

import json
from datetime import date
from typing import TYPE_CHECKING

import httpx
import pytest

from firmrecon.adapters.anaf import AnafFinancialsClient, AnafVerificationClient
from firmrecon.adapters.anaf.client import verification_cache_key
from firmrecon.config.anaf import AnafConfig
from firmrecon.domain.errors import TransientError
from firmrecon.domain.model import VerificationState
from firmrecon.domain.verification import VerificationService, run_verification_batch
from tests.helpers.companies import make_company
from tests.helpers.fakes import InMemoryKeyValueStore
from tests.helpers.http import make_client_factory

if TYPE_CHECKING:
    from collections.abc import Callable

    from firmrecon.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork

    UowFactory = Callable[[], SqlAlchemyUnitOfWork]

CONFIG = AnafConfig(
    verify_url="https://anaf.example/tva",
    financials_url="https://anaf.example/bilant",
)


def _found(cui: int, name: str = "EXAMPLE SOLUTIONS SRL") -> dict[str, object]:
    return {
        "cod": 200,
        "found": [
            {
                "date_generale": {"cui": cui, "denumire": name, "adresa": "CLUJ-NAPOCA"},
                "inregistrare_scop_Tva": {"scpTVA": True},
            }
        ],
        "notFound": [],
    }


class Recorder:
    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def _verifier(store: InMemoryKeyValueStore, recorder: Recorder) -> AnafVerificationClient:
    return AnafVerificationClient(
        store,
        config=CONFIG,
        client_factory=make_client_factory(recorder),
        today=lambda: date(2025, 3, 1),
    )


def test_verify_posts_and_caches() -> None:
    store = InMemoryKeyValueStore()
    recorder = Recorder(httpx.Response(200, json=_found(14399840)))
    client = _verifier(store, recorder)

    outcome = client.verify("RO14399840")
    again = client.verify("14399840")

    assert outcome.state is VerificationState.SUCCESS
    assert outcome.data is not None
    assert outcome.data.official_name == "EXAMPLE SOLUTIONS SRL"
    assert not outcome.cached
    assert again.cached
    assert again.succeeded
    assert len(recorder.requests) == 1
    request = recorder.requests[0]
    assert request.method == "POST"
    assert json.loads(request.content) == [{"cui": 14399840, "data": "2025-03-01"}]
    assert store.get(verification_cache_key("14399840")) is not None


def test_dry_run_batch_caches_registry_answer_only(sqlite_unit_of_work: UowFactory) -> None:
    company = make_company("Example Solutions", cui="14399840")
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(company)
        uow.commit()
    store = InMemoryKeyValueStore()
    recorder = Recorder(httpx.Response(200, json=_found(14399840)))
    service = VerificationService(_verifier(store, recorder))

    result = run_verification_batch(
        sqlite_unit_of_work, service, limit=10, ttl_days=30, dry_run=True
    )

    assert result.verified == 1
    assert store.get(verification_cache_key("14399840")) is not None
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.companies.get(company.id)
    assert stored is not None
    assert stored.name == "Example Solutions"
    assert stored.last_verified_at is None


def test_verify_is_spaced_across_callers() -> None:
    store = InMemoryKeyValueStore()
    recorder = Recorder(httpx.Response(200, json=_found(1000002)))
    client = _verifier(store, recorder)
    client.verify("1000001")

    limited = client.verify("1000002")
    store.advance(1.0)
    allowed = client.verify("1000002")

    assert limited.state is VerificationState.RATE_LIMITED
    assert limited.retryable
    assert limited.retry_after == 1.0
    assert allowed.state is VerificationState.SUCCESS
    assert len(recorder.requests) == 2


@pytest.mark.parametrize(
    ("response", "retryable"),
    [
        (httpx.Response(503), True),
        (httpx.Response(404), False),
        (httpx.Response(200, content=b"<html>"), False),
        (httpx.Response(200, json={"cod": 200, "found": [], "notFound": [14399840]}), False),
    ],
)
def test_verify_failures(response: httpx.Response, retryable: bool) -> None:  # noqa: FBT001
    outcome = _verifier(InMemoryKeyValueStore(), Recorder(response)).verify("14399840")

    assert outcome.state is VerificationState.ERROR
    assert outcome.retryable is retryable
    assert outcome.error


def test_verify_rejects_invalid_tax_id_without_request() -> None:
    recorder = Recorder(httpx.Response(200, json=_found(1)))

    outcome = _verifier(InMemoryKeyValueStore(), recorder).verify("RO")

    assert outcome.state is VerificationState.ERROR
    assert recorder.requests == []


def test_unreadable_cache_entry_is_discarded() -> None:
    store = InMemoryKeyValueStore()
    store.set(verification_cache_key("14399840"), {"cui": "14399840"})
    recorder = Recorder(httpx.Response(200, json=_found(14399840)))

    outcome = _verifier(store, recorder).verify("14399840")

    assert outcome.succeeded
    assert not outcome.cached
    assert len(recorder.requests) == 1


def test_financials_fetch_previous_year() -> None:
    store = InMemoryKeyValueStore()
    recorder = Recorder(
        httpx.Response(200, json={"an": 2024, "cifra_afaceri": 1000, "profit": 10})
    )
    client = AnafFinancialsClient(
        store,
        config=CONFIG,
        client_factory=make_client_factory(recorder),
        today=lambda: date(2025, 3, 1),
    )

    years = client.fetch("RO14399840")

    assert [item.year for item in years] == [2024]
    params = recorder.requests[0].url.params
    assert params["an"] == "2024"
    assert params["cui"] == "14399840"
    with pytest.raises(TransientError):
        client.fetch("14399840")

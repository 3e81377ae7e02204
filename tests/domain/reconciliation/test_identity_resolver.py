from __future__ import annotations

from typing import TYPE_CHECKING

from firmrecon.domain.model import AliasType, CompanyAlias
from firmrecon.domain.reconciliation import (
    IdentityResolver,
    MatchKind,
    ResolutionStatus,
    identity_lookup_keys,
)
from tests.helpers.companies import make_company, make_record

if TYPE_CHECKING:
    from collections.abc import Callable

    from firmrecon.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork

    UowFactory = Callable[[], SqlAlchemyUnitOfWork]


def test_lookup_keys_are_ordered_by_trust() -> None:
    record = make_record("RO14399840", domain="https://alfa.ro", county="Cluj")

    assert identity_lookup_keys(record) == [
        ("cui", "14399840"),
        ("domain_county", "alfa.ro", "cluj"),
    ]


def test_lookup_keys_need_county_for_domain() -> None:
    record = make_record("invalid", domain="alfa.ro")

    assert identity_lookup_keys(record) == []


def test_resolves_exact_tax_id(sqlite_unit_of_work: UowFactory) -> None:
    company = make_company("Alfa", cui="14399840")
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(company)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        resolver = IdentityResolver(uow.repositories.companies, uow.repositories.aliases)
        resolution = resolver.resolve(make_record("RO 14399840"))

    assert resolution.status is ResolutionStatus.RESOLVED
    assert resolution.target.id == company.id  # type: ignore[union-attr]
    assert resolution.match_kind is MatchKind.EXACT  # type: ignore[union-attr]
    assert resolution.reason == "tax_id_match"


def test_follows_merge_redirects(sqlite_unit_of_work: UowFactory) -> None:
    winner = make_company("Alfa Group", cui="22222222")
    loser = make_company("Alfa", cui="14399840")
    loser.mark_merged_into(winner.id)
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(winner)
        uow.repositories.companies.add(loser)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        resolution = IdentityResolver(uow.repositories.companies).resolve(
            make_record("14399840")
        )

    assert resolution.status is ResolutionStatus.RESOLVED
    assert resolution.target.id == winner.id  # type: ignore[union-attr]


def test_resolves_tax_id_alias(sqlite_unit_of_work: UowFactory) -> None:
    owner = make_company("Alfa", cui="22222222")
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(owner)
        uow.repositories.aliases.add(
            CompanyAlias(company_id=owner.id, alias="14399840", alias_type=AliasType.CUI)
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        resolver = IdentityResolver(uow.repositories.companies, uow.repositories.aliases)
        resolution = resolver.resolve(make_record("14399840"))

    assert resolution.status is ResolutionStatus.RESOLVED
    assert resolution.target.id == owner.id  # type: ignore[union-attr]


def test_domain_within_county_is_heuristic_match(sqlite_unit_of_work: UowFactory) -> None:
    company = make_company("Alfa", cui=None, domain="alfa.ro", county_slug="cluj")
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(company)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        resolution = IdentityResolver(uow.repositories.companies).resolve(
            make_record("14399840", domain="www.alfa.ro", county="Cluj")
        )

    assert resolution.status is ResolutionStatus.RESOLVED
    assert resolution.match_kind is MatchKind.HEURISTIC  # type: ignore[union-attr]
    assert resolution.reason == "domain_county_match"


def test_domain_in_other_county_does_not_match(sqlite_unit_of_work: UowFactory) -> None:
    company = make_company("Alfa", cui=None, domain="alfa.ro", county_slug="iasi")
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(company)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        resolution = IdentityResolver(uow.repositories.companies).resolve(
            make_record("14399840", domain="alfa.ro", county="Cluj")
        )

    assert resolution.status is ResolutionStatus.NEW


def test_domain_match_with_other_tax_id_is_conflict(sqlite_unit_of_work: UowFactory) -> None:
    company = make_company("Alfa", cui="22222222", domain="alfa.ro", county_slug="cluj")
    with sqlite_unit_of_work() as uow:
        uow.repositories.companies.add(company)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        resolution = IdentityResolver(uow.repositories.companies).resolve(
            make_record("14399840", domain="alfa.ro", county="Cluj")
        )

    assert resolution.status is ResolutionStatus.CONFLICT
    assert resolution.reason == "tax_id_mismatch"


def test_no_match_is_new(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        resolution = IdentityResolver(uow.repositories.companies).resolve(
            make_record("14399840")
        )

    assert resolution.status is ResolutionStatus.NEW
    assert resolution.reason == "no_match"

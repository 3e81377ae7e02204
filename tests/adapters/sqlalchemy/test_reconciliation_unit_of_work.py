from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from firmrecon.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from firmrecon.domain.errors import DuplicateKeyError
from tests.helpers.companies import make_company

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_commit_persists_and_exit_rolls_back(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    kept = make_company("Kept", cui="1000001")
    dropped = make_company("Dropped", cui="1000002")

    with SqlAlchemyUnitOfWork() as uow:
        uow.repositories.companies.add(kept)
        uow.commit()
    with SqlAlchemyUnitOfWork() as uow:
        uow.repositories.companies.add(dropped)

    with SqlAlchemyUnitOfWork() as uow:
        assert uow.repositories.companies.get(kept.id) is not None
        assert uow.repositories.companies.get(dropped.id) is None


def test_unique_violation_on_commit_is_duplicate_key(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    with SqlAlchemyUnitOfWork() as uow:
        uow.repositories.companies.add(make_company("First", cui="1000001"))
        uow.commit()

    with SqlAlchemyUnitOfWork() as uow, pytest.raises(DuplicateKeyError):
        uow.repositories.companies.add(make_company("Second", cui="1000001"))
        uow.commit()


def test_unique_violation_on_autoflush_is_duplicate_key(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    with SqlAlchemyUnitOfWork() as uow:
        uow.repositories.companies.add(make_company("First", cui="1000001"))
        uow.commit()

    with pytest.raises(DuplicateKeyError), SqlAlchemyUnitOfWork() as uow:
        uow.repositories.companies.add(make_company("Second", cui="1000001"))
        uow.repositories.companies.get_by_cui("1000001")


def test_repositories_unavailable_outside_context(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories

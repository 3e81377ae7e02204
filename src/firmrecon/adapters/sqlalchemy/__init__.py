"""SQLAlchemy adapter package for firmrecon."""

from __future__ import annotations

from .kv_store import SqlAlchemyKeyValueStore
from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAliasRepository,
    SqlAlchemyCompanyRepository,
    SqlAlchemyFinancialSnapshotRepository,
    SqlAlchemyMergeCandidateRepository,
    SqlAlchemyProvenanceRepository,
)
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAliasRepository",
    "SqlAlchemyCompanyRepository",
    "SqlAlchemyFinancialSnapshotRepository",
    "SqlAlchemyKeyValueStore",
    "SqlAlchemyMergeCandidateRepository",
    "SqlAlchemyProvenanceRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]

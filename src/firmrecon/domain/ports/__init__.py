"""Domain ports."""

from __future__ import annotations

from .fetching import DiscoveryBatch, HealthStatus, SourceAdapter
from .kv import KeyValueStore
from .persistence import (
    AliasRepository,
    CompanyRepository,
    FinancialSnapshotRepository,
    MergeCandidateRepository,
    ProvenanceRepository,
    Repository,
)
from .unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)
from .verification import (
    CompanyVerifier,
    FinancialStatementsSource,
    VerificationData,
    VerificationOutcome,
)

__all__ = [
    "AliasRepository",
    "CompanyRepository",
    "CompanyVerifier",
    "DiscoveryBatch",
    "FinancialSnapshotRepository",
    "FinancialStatementsSource",
    "HealthStatus",
    "KeyValueStore",
    "MergeCandidateRepository",
    "ProvenanceRepository",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "Repository",
    "RepositoryCollection",
    "SourceAdapter",
    "UnitOfWork",
    "VerificationData",
    "VerificationOutcome",
]

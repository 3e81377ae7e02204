"""Ports for persisting companies and their evidence."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from firmrecon.domain.model import (
    Company,
    CompanyAlias,
    FinancialSnapshot,
    MergeCandidate,
    ProvenanceRecord,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from datetime import datetime
    from uuid import UUID

    from firmrecon.domain.model import AliasType, MergeStatus, SourceId


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class CompanyRepository(Repository[Company], Protocol):
    def get(self, company_id: UUID) -> Company | None: ...

    def get_by_cui(self, cui: str) -> Company | None:
        """Exact lookup on the stored tax id, merged rows included."""
        ...

    def find_by_domain(self, domain: str, *, county_slug: str | None) -> list[Company]:
        """Active (non-merged) companies on ``domain``, optionally within a county."""
        ...

    def slug_exists(self, slug: str) -> bool: ...

    def iter_dedup_pool(self, *, chunk_size: int = 500) -> Iterator[Company]:
        """Every company eligible for duplicate scans (not demo, not merged)."""
        ...

    def list_due_for_verification(
        self, *, stale_before: datetime, after_id: UUID | None, limit: int
    ) -> list[Company]: ...

    def list_with_cui(self, *, after_id: UUID | None, limit: int) -> list[Company]: ...

    def flush(self) -> None: ...


@runtime_checkable
class ProvenanceRepository(Repository[ProvenanceRecord], Protocol):
    def get(
        self, company_id: UUID, source_id: SourceId, row_hash: str
    ) -> ProvenanceRecord | None: ...

    def list_for_company(self, company_id: UUID) -> list[ProvenanceRecord]: ...


@runtime_checkable
class MergeCandidateRepository(Repository[MergeCandidate], Protocol):
    def get(self, candidate_id: UUID) -> MergeCandidate | None: ...

    def find_open_for_pair(self, first: UUID, second: UUID) -> MergeCandidate | None:
        """PENDING or APPROVED candidate for the unordered pair, if any."""
        ...

    def open_pairs(self) -> set[frozenset[UUID]]: ...

    def list_by_status(
        self, *, status: MergeStatus | None = None, limit: int = 100
    ) -> list[MergeCandidate]: ...

    def list_involving(self, company_ids: Iterable[UUID]) -> list[MergeCandidate]: ...


@runtime_checkable
class AliasRepository(Repository[CompanyAlias], Protocol):
    def exists(self, alias: str, alias_type: AliasType) -> bool: ...

    def resolve(self, alias: str, alias_type: AliasType) -> UUID | None: ...

    def list_for_company(self, company_id: UUID) -> list[CompanyAlias]: ...


@runtime_checkable
class FinancialSnapshotRepository(Repository[FinancialSnapshot], Protocol):
    def list_for_company(
        self, company_id: UUID, *, data_source: str, years: Iterable[int] | None = None
    ) -> list[FinancialSnapshot]: ...

"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import and_, false, or_, select

from firmrecon.adapters.sqlalchemy.mappings import (
    company_alias_table,
    company_provenance_table,
    company_table,
    financial_snapshot_table,
    merge_candidate_table,
)
from firmrecon.domain.model import (
    Company,
    CompanyAlias,
    FinancialSnapshot,
    MergeCandidate,
    MergeStatus,
    ProvenanceRecord,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.orm import Session

    from firmrecon.domain.model import AliasType, SourceId

OPEN_STATUSES = (MergeStatus.PENDING, MergeStatus.APPROVED)


class SqlAlchemyCompanyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Company) -> None:
        self.session.add(entity)

    def get(self, company_id: UUID) -> Company | None:
        return self.session.get(Company, company_id)

    def get_by_cui(self, cui: str) -> Company | None:
        stmt = select(Company).where(company_table.c.cui == cui).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_domain(self, domain: str, *, county_slug: str | None) -> list[Company]:
        stmt = (
            select(Company)
            .where(company_table.c.domain == domain)
            .where(company_table.c.merged_into.is_(None))
            .order_by(company_table.c.created_at, company_table.c.id)
        )
        if county_slug is not None:
            stmt = stmt.where(company_table.c.county_slug == county_slug)
        return list(self.session.execute(stmt).scalars())

    def slug_exists(self, slug: str) -> bool:
        stmt = select(company_table.c.id).where(company_table.c.slug == slug).limit(1)
        return self.session.execute(stmt).first() is not None

    def iter_dedup_pool(self, *, chunk_size: int = 500) -> Iterator[Company]:
        last_id: UUID | None = None
        while True:
            stmt = (
                select(Company)
                .where(company_table.c.merged_into.is_(None))
                .where(company_table.c.is_demo == false())
                .order_by(company_table.c.id)
                .limit(chunk_size)
            )
            if last_id is not None:
                stmt = stmt.where(company_table.c.id > last_id)
            chunk = list(self.session.execute(stmt).scalars())
            yield from chunk
            if len(chunk) < chunk_size:
                return
            last_id = chunk[-1].id

    def list_due_for_verification(
        self, *, stale_before: datetime, after_id: UUID | None, limit: int
    ) -> list[Company]:
        stmt = (
            select(Company)
            .where(company_table.c.cui.is_not(None))
            .where(company_table.c.merged_into.is_(None))
            .where(
                or_(
                    company_table.c.last_verified_at.is_(None),
                    company_table.c.last_verified_at < stale_before,
                )
            )
            .order_by(company_table.c.id)
            .limit(limit)
        )
        if after_id is not None:
            stmt = stmt.where(company_table.c.id > after_id)
        return list(self.session.execute(stmt).scalars())

    def list_with_cui(self, *, after_id: UUID | None, limit: int) -> list[Company]:
        stmt = (
            select(Company)
            .where(company_table.c.cui.is_not(None))
            .where(company_table.c.merged_into.is_(None))
            .order_by(company_table.c.id)
            .limit(limit)
        )
        if after_id is not None:
            stmt = stmt.where(company_table.c.id > after_id)
        return list(self.session.execute(stmt).scalars())

    def flush(self) -> None:
        self.session.flush()


class SqlAlchemyProvenanceRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ProvenanceRecord) -> None:
        self.session.add(entity)

    def get(
        self, company_id: UUID, source_id: SourceId, row_hash: str
    ) -> ProvenanceRecord | None:
        stmt = (
            select(ProvenanceRecord)
            .where(company_provenance_table.c.company_id == company_id)
            .where(company_provenance_table.c.source_id == source_id)
            .where(company_provenance_table.c.row_hash == row_hash)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_company(self, company_id: UUID) -> list[ProvenanceRecord]:
        stmt = (
            select(ProvenanceRecord)
            .where(company_provenance_table.c.company_id == company_id)
            .order_by(company_provenance_table.c.first_seen_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyMergeCandidateRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: MergeCandidate) -> None:
        self.session.add(entity)

    def get(self, candidate_id: UUID) -> MergeCandidate | None:
        return self.session.get(MergeCandidate, candidate_id)

    def find_open_for_pair(self, first: UUID, second: UUID) -> MergeCandidate | None:
        table = merge_candidate_table
        stmt = (
            select(MergeCandidate)
            .where(table.c.status.in_(OPEN_STATUSES))
            .where(
                or_(
                    and_(table.c.source_id == first, table.c.target_id == second),
                    and_(table.c.source_id == second, table.c.target_id == first),
                )
            )
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def open_pairs(self) -> set[frozenset[UUID]]:
        table = merge_candidate_table
        stmt = select(table.c.source_id, table.c.target_id).where(
            table.c.status.in_(OPEN_STATUSES)
        )
        rows = self.session.execute(stmt).all()
        return {frozenset((cast("UUID", source), cast("UUID", target))) for source, target in rows}

    def list_by_status(
        self, *, status: MergeStatus | None = None, limit: int = 100
    ) -> list[MergeCandidate]:
        table = merge_candidate_table
        stmt = (
            select(MergeCandidate)
            .order_by(table.c.confidence.desc(), table.c.created_at)
            .limit(limit)
        )
        if status is not None:
            stmt = stmt.where(table.c.status == status)
        return list(self.session.execute(stmt).scalars())

    def list_involving(self, company_ids: Iterable[UUID]) -> list[MergeCandidate]:
        ids = list(company_ids)
        if not ids:
            return []
        table = merge_candidate_table
        stmt = select(MergeCandidate).where(
            or_(table.c.source_id.in_(ids), table.c.target_id.in_(ids))
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyAliasRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: CompanyAlias) -> None:
        self.session.add(entity)

    def exists(self, alias: str, alias_type: AliasType) -> bool:
        return self.resolve(alias, alias_type) is not None

    def resolve(self, alias: str, alias_type: AliasType) -> UUID | None:
        stmt = (
            select(company_alias_table.c.company_id)
            .where(company_alias_table.c.alias == alias)
            .where(company_alias_table.c.alias_type == alias_type)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_company(self, company_id: UUID) -> list[CompanyAlias]:
        stmt = (
            select(CompanyAlias)
            .where(company_alias_table.c.company_id == company_id)
            .order_by(company_alias_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyFinancialSnapshotRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: FinancialSnapshot) -> None:
        self.session.add(entity)

    def list_for_company(
        self, company_id: UUID, *, data_source: str, years: Iterable[int] | None = None
    ) -> list[FinancialSnapshot]:
        table = financial_snapshot_table
        stmt = (
            select(FinancialSnapshot)
            .where(table.c.company_id == company_id)
            .where(table.c.data_source == data_source)
            .order_by(table.c.fiscal_year)
        )
        if years is not None:
            stmt = stmt.where(table.c.fiscal_year.in_(list(years)))
        return list(self.session.execute(stmt).scalars())


if TYPE_CHECKING:
    from firmrecon.domain.ports.persistence import (
        AliasRepository,
        CompanyRepository,
        FinancialSnapshotRepository,
        MergeCandidateRepository,
        ProvenanceRepository,
    )

    _session_stub = cast("Session", object())
    _company_repo: CompanyRepository = SqlAlchemyCompanyRepository(_session_stub)
    _provenance_repo: ProvenanceRepository = SqlAlchemyProvenanceRepository(_session_stub)
    _candidate_repo: MergeCandidateRepository = SqlAlchemyMergeCandidateRepository(_session_stub)
    _alias_repo: AliasRepository = SqlAlchemyAliasRepository(_session_stub)
    _financials_repo: FinancialSnapshotRepository = SqlAlchemyFinancialSnapshotRepository(
        _session_stub
    )

"""SQLAlchemy mapping metadata for the firmrecon domain model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from firmrecon.domain.model import (
    AliasType,
    Company,
    CompanyAlias,
    FieldProvenance,
    FinancialSnapshot,
    MatchReason,
    MergeCandidate,
    MergeStatus,
    ProvenanceRecord,
    SourceId,
    Visibility,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from firmrecon.domain.model import FieldProvenanceMap

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


def dump_json(value: object) -> str:
    """Deterministic JSON text, so equal values compare equal as strings."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class JSONText(TypeDecorator[Any]):
    """Arbitrary JSON document stored as text."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return dump_json(value)

    def process_result_value(self, value: str | None, dialect: Dialect) -> Any:
        _ = dialect
        if value is None:
            return None
        return json.loads(value)


class FieldProvenanceType(TypeDecorator[dict[str, FieldProvenance]]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: FieldProvenanceMap | None, dialect: Dialect) -> str:
        _ = dialect
        entries = value or {}
        return dump_json({name: entry.to_dict() for name, entry in entries.items()})

    def process_result_value(self, value: str | None, dialect: Dialect) -> FieldProvenanceMap:
        _ = dialect
        if not value:
            return {}
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return {}
        items = cast(dict[str, Any], loaded)
        return {
            name: FieldProvenance.from_dict(cast(dict[str, Any], payload))
            for name, payload in items.items()
            if isinstance(payload, dict)
        }


class MatchReasonListType(TypeDecorator[list[MatchReason]]):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: list[MatchReason] | None, dialect: Dialect) -> str:
        _ = dialect
        return json.dumps([reason.value for reason in value or []])

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[MatchReason]:
        _ = dialect
        if value is None:
            return []
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return []
        items = cast(list[Any], loaded)
        return [MatchReason(item) for item in items if isinstance(item, str)]


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Canonical records -------------------------------------------------------------

company_table = Table(
    "company",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("merged_into", UUIDColumnType, nullable=True, index=True),
    Column("cui", String(16), nullable=True, unique=True),
    Column("name", String, nullable=True),
    Column("legal_name", String, nullable=True),
    Column("trade_name", String, nullable=True),
    Column("slug", String, nullable=False, unique=True),
    Column("domain", String, nullable=True, index=True),
    Column("address", String, nullable=True),
    Column("county_slug", String, nullable=True),
    Column("industry_slug", String, nullable=True),
    Column("employees", Integer, nullable=True),
    Column("revenue_latest", Float, nullable=True),
    Column("profit_latest", Float, nullable=True),
    Column("email", String, nullable=True),
    Column("phone", String, nullable=True),
    Column("website", String, nullable=True),
    Column("socials", JSONText(), nullable=True),
    Column("description_short", Text, nullable=True),
    Column("data_confidence", Integer, nullable=False, default=0),
    Column("field_provenance", FieldProvenanceType(), nullable=False, default=dict),
    Column("visibility", Enum(Visibility, native_enum=False), nullable=False),
    Column("is_public", Boolean, nullable=False, default=True),
    Column("is_demo", Boolean, nullable=False, default=False),
    Column("is_active", Boolean, nullable=True),
    Column("is_vat_registered", Boolean, nullable=True),
    Column("verification_status", String, nullable=True),
    Column("last_verified_at", UTCDateTime(), nullable=True),
    Column("last_enriched_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    Index("ix_company_county_industry", "county_slug", "industry_slug"),
)

company_provenance_table = Table(
    "company_provenance",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("company_id", UUIDColumnType, nullable=False, index=True),
    Column("source_id", Enum(SourceId, native_enum=False), nullable=False),
    Column("row_hash", String(64), nullable=False),
    Column("source_ref", String, nullable=True),
    Column("first_seen_at", UTCDateTime(), nullable=False),
    Column("last_seen_at", UTCDateTime(), nullable=False),
    Column("contract_value", Float, nullable=True),
    Column("contract_year", Integer, nullable=True),
    Column("raw", JSONText(), nullable=True),
    UniqueConstraint(
        "company_id", "source_id", "row_hash", name="uq_company_provenance_identity"
    ),
)

# Reconciliation workflow -------------------------------------------------------

merge_candidate_table = Table(
    "merge_candidate",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("source_id", UUIDColumnType, nullable=False),
    Column("target_id", UUIDColumnType, nullable=False),
    Column("confidence", Integer, nullable=False),
    Column("reasons", MatchReasonListType(), nullable=False, default=list),
    Column("diff", JSONText(), nullable=False, default=dict),
    Column("status", Enum(MergeStatus, native_enum=False), nullable=False),
    Column("reviewed_by", String, nullable=True),
    Column("reviewed_at", UTCDateTime(), nullable=True),
    Index("ix_merge_candidate_pair", "source_id", "target_id"),
    Index("ix_merge_candidate_status", "status"),
)

company_alias_table = Table(
    "company_alias",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("company_id", UUIDColumnType, nullable=False, index=True),
    Column("alias", String, nullable=False),
    Column("alias_type", Enum(AliasType, native_enum=False), nullable=False),
    Column("source", String, nullable=True),
    UniqueConstraint("alias", "alias_type", name="uq_company_alias_identity"),
)

financial_snapshot_table = Table(
    "financial_snapshot",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("company_id", UUIDColumnType, nullable=False, index=True),
    Column("fiscal_year", Integer, nullable=False),
    Column("data_source", String, nullable=False),
    Column("revenue", Float, nullable=True),
    Column("profit", Float, nullable=True),
    Column("employees", Integer, nullable=True),
    Column("currency", String(8), nullable=False, default="RON"),
    Column("checksum", String(64), nullable=True),
    Column("fetched_at", UTCDateTime(), nullable=False),
    UniqueConstraint(
        "company_id", "fiscal_year", "data_source", name="uq_financial_snapshot_identity"
    ),
)

# Operational state -------------------------------------------------------------

kv_entry_table = Table(
    "kv_entry",
    mapper_registry.metadata,
    Column("key", String, primary_key=True),
    Column("value", Text, nullable=False),
    Column("expires_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Company, company_table)
    mapper_registry.map_imperatively(ProvenanceRecord, company_provenance_table)
    mapper_registry.map_imperatively(MergeCandidate, merge_candidate_table)
    mapper_registry.map_imperatively(CompanyAlias, company_alias_table)
    mapper_registry.map_imperatively(FinancialSnapshot, financial_snapshot_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create every mapped table. Tests and scratch databases only; use migrations otherwise."""

    start_mappers()
    mapper_registry.metadata.create_all(engine)

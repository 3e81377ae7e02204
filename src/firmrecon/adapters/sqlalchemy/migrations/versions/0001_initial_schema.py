"""Initial schema: companies, provenance, merge workflow, financials, kv store.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

SOURCE_IDS = (
    "anaf_verify",
    "user_approved",
    "eu_funds",
    "seap",
    "third_party",
    "enrichment",
    "anaf_financials",
    "national",
)


def _timestamp(name: str, *, nullable: bool = False) -> sa.Column[object]:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "company",
        sa.Column("id", sa.Uuid(), nullable=False),
        _timestamp("created_at"),
        sa.Column("merged_into", sa.Uuid(), nullable=True),
        sa.Column("cui", sa.String(length=16), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("legal_name", sa.String(), nullable=True),
        sa.Column("trade_name", sa.String(), nullable=True),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("domain", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("county_slug", sa.String(), nullable=True),
        sa.Column("industry_slug", sa.String(), nullable=True),
        sa.Column("employees", sa.Integer(), nullable=True),
        sa.Column("revenue_latest", sa.Float(), nullable=True),
        sa.Column("profit_latest", sa.Float(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("socials", sa.Text(), nullable=True),
        sa.Column("description_short", sa.Text(), nullable=True),
        sa.Column("data_confidence", sa.Integer(), nullable=False),
        sa.Column("field_provenance", sa.Text(), nullable=False),
        sa.Column(
            "visibility",
            sa.Enum("public", "hidden", name="visibility", native_enum=False),
            nullable=False,
        ),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("is_demo", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("is_vat_registered", sa.Boolean(), nullable=True),
        sa.Column("verification_status", sa.String(), nullable=True),
        _timestamp("last_verified_at", nullable=True),
        _timestamp("last_enriched_at", nullable=True),
        _timestamp("updated_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_company"),
        sa.UniqueConstraint("cui", name="uq_company_cui"),
        sa.UniqueConstraint("slug", name="uq_company_slug"),
    )
    op.create_index("ix_company_merged_into", "company", ["merged_into"])
    op.create_index("ix_company_domain", "company", ["domain"])
    op.create_index("ix_company_county_industry", "company", ["county_slug", "industry_slug"])

    op.create_table(
        "company_provenance",
        sa.Column("id", sa.Uuid(), nullable=False),
        _timestamp("created_at"),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column(
            "source_id",
            sa.Enum(*SOURCE_IDS, name="sourceid", native_enum=False),
            nullable=False,
        ),
        sa.Column("row_hash", sa.String(length=64), nullable=False),
        sa.Column("source_ref", sa.String(), nullable=True),
        _timestamp("first_seen_at"),
        _timestamp("last_seen_at"),
        sa.Column("contract_value", sa.Float(), nullable=True),
        sa.Column("contract_year", sa.Integer(), nullable=True),
        sa.Column("raw", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_company_provenance"),
        sa.UniqueConstraint(
            "company_id", "source_id", "row_hash", name="uq_company_provenance_identity"
        ),
    )
    op.create_index(
        "ix_company_provenance_company_id", "company_provenance", ["company_id"]
    )

    op.create_table(
        "merge_candidate",
        sa.Column("id", sa.Uuid(), nullable=False),
        _timestamp("created_at"),
        sa.Column("source_id", sa.Uuid(), nullable=False),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=False),
        sa.Column("reasons", sa.String(), nullable=False),
        sa.Column("diff", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "rejected", name="mergestatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("reviewed_by", sa.String(), nullable=True),
        _timestamp("reviewed_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_merge_candidate"),
    )
    op.create_index("ix_merge_candidate_pair", "merge_candidate", ["source_id", "target_id"])
    op.create_index("ix_merge_candidate_status", "merge_candidate", ["status"])

    op.create_table(
        "company_alias",
        sa.Column("id", sa.Uuid(), nullable=False),
        _timestamp("created_at"),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("alias", sa.String(), nullable=False),
        sa.Column(
            "alias_type",
            sa.Enum("name", "slug", "domain", "cui", name="aliastype", native_enum=False),
            nullable=False,
        ),
        sa.Column("source", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_company_alias"),
        sa.UniqueConstraint("alias", "alias_type", name="uq_company_alias_identity"),
    )
    op.create_index("ix_company_alias_company_id", "company_alias", ["company_id"])

    op.create_table(
        "financial_snapshot",
        sa.Column("id", sa.Uuid(), nullable=False),
        _timestamp("created_at"),
        sa.Column("company_id", sa.Uuid(), nullable=False),
        sa.Column("fiscal_year", sa.Integer(), nullable=False),
        sa.Column("data_source", sa.String(), nullable=False),
        sa.Column("revenue", sa.Float(), nullable=True),
        sa.Column("profit", sa.Float(), nullable=True),
        sa.Column("employees", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("checksum", sa.String(length=64), nullable=True),
        _timestamp("fetched_at"),
        sa.PrimaryKeyConstraint("id", name="pk_financial_snapshot"),
        sa.UniqueConstraint(
            "company_id", "fiscal_year", "data_source", name="uq_financial_snapshot_identity"
        ),
    )
    op.create_index(
        "ix_financial_snapshot_company_id", "financial_snapshot", ["company_id"]
    )

    op.create_table(
        "kv_entry",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        _timestamp("expires_at", nullable=True),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("key", name="pk_kv_entry"),
    )


def downgrade() -> None:
    op.drop_table("kv_entry")
    op.drop_index("ix_financial_snapshot_company_id", table_name="financial_snapshot")
    op.drop_table("financial_snapshot")
    op.drop_index("ix_company_alias_company_id", table_name="company_alias")
    op.drop_table("company_alias")
    op.drop_index("ix_merge_candidate_status", table_name="merge_candidate")
    op.drop_index("ix_merge_candidate_pair", table_name="merge_candidate")
    op.drop_table("merge_candidate")
    op.drop_index("ix_company_provenance_company_id", table_name="company_provenance")
    op.drop_table("company_provenance")
    op.drop_index("ix_company_county_industry", table_name="company")
    op.drop_index("ix_company_domain", table_name="company")
    op.drop_index("ix_company_merged_into", table_name="company")
    op.drop_table("company")

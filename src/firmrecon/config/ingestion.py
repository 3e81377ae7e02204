"""Defaults for batch ingestion runs."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int

DEFAULT_BATCH_LIMIT = 100
DEFAULT_TIME_BUDGET_MS = 50_000
DEFAULT_CONCURRENCY = 5
CURSOR_TTL_SECONDS = 7 * 24 * 60 * 60
RAW_PAYLOAD_MAX_BYTES = 8 * 1024
FIELD_PROVENANCE_CAP = 50
BULK_UPSERT_BATCH_SIZE = 50
LOCK_TTL_SECONDS = 300


@dataclass(frozen=True, slots=True)
class IngestionConfig:
    batch_limit: int = DEFAULT_BATCH_LIMIT
    time_budget_ms: int = DEFAULT_TIME_BUDGET_MS
    concurrency: int = DEFAULT_CONCURRENCY
    cursor_ttl_seconds: int = CURSOR_TTL_SECONDS
    raw_payload_max_bytes: int = RAW_PAYLOAD_MAX_BYTES
    field_provenance_cap: int = FIELD_PROVENANCE_CAP
    bulk_batch_size: int = BULK_UPSERT_BATCH_SIZE
    lock_ttl_seconds: int = LOCK_TTL_SECONDS


def get_ingestion_config() -> IngestionConfig:
    return IngestionConfig(
        batch_limit=env_int("INGEST_BATCH_LIMIT", DEFAULT_BATCH_LIMIT),
        time_budget_ms=env_int("INGEST_TIME_BUDGET_MS", DEFAULT_TIME_BUDGET_MS),
        concurrency=env_int("INGEST_CONCURRENCY", DEFAULT_CONCURRENCY),
    )

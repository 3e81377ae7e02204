"""Per-source resumption cursors and last-run statistics."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from firmrecon.config.ingestion import CURSOR_TTL_SECONDS
from firmrecon.domain.model import Checkpoint, RunStats

if TYPE_CHECKING:
    from collections.abc import Iterable

    from firmrecon.domain.ports import KeyValueStore

log = logging.getLogger(__name__)


def cursor_key(source_id: str) -> str:
    return f"cursor:{source_id}"


def stats_key(source_id: str) -> str:
    return f"ingest:stats:{source_id}"


@dataclass(slots=True)
class CheckpointStore:
    store: KeyValueStore
    ttl_seconds: int = CURSOR_TTL_SECONDS

    def get_cursor(self, source_id: str) -> str | None:
        value = self.store.get(cursor_key(source_id))
        return str(value) if value is not None else None

    def set_cursor(self, source_id: str, cursor: str | None) -> None:
        if cursor is None:
            self.store.delete(cursor_key(source_id))
            return
        self.store.set(cursor_key(source_id), cursor, ttl_seconds=self.ttl_seconds)

    def reset_cursor(self, source_id: str) -> None:
        log.info("Resetting cursor for %s", source_id)
        self.store.delete(cursor_key(source_id))

    def write_stats(self, source_id: str, stats: RunStats) -> None:
        self.store.set(stats_key(source_id), stats.to_dict(), ttl_seconds=self.ttl_seconds)

    def read(self, source_id: str) -> Checkpoint:
        raw_stats = self.store.get(stats_key(source_id))
        return Checkpoint(
            source_id=source_id,
            cursor=self.get_cursor(source_id),
            last_run=RunStats.from_dict(raw_stats) if isinstance(raw_stats, dict) else None,
        )

    def snapshot(self, source_ids: Iterable[str]) -> dict[str, Checkpoint]:
        return {source_id: self.read(source_id) for source_id in source_ids}

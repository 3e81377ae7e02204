from __future__ import annotations

from firmrecon.domain.ingestion.checkpoints import CheckpointStore, cursor_key, stats_key
from firmrecon.domain.model import RunStats
from tests.helpers.fakes import InMemoryKeyValueStore


def test_cursor_round_trip_and_reset() -> None:
    store = InMemoryKeyValueStore()
    checkpoints = CheckpointStore(store)

    assert checkpoints.get_cursor("seap") is None
    checkpoints.set_cursor("seap", "120")
    assert checkpoints.get_cursor("seap") == "120"
    assert store.get(cursor_key("seap")) == "120"

    checkpoints.reset_cursor("seap")
    assert checkpoints.get_cursor("seap") is None


def test_clearing_cursor_deletes_key() -> None:
    store = InMemoryKeyValueStore()
    checkpoints = CheckpointStore(store)
    checkpoints.set_cursor("eu_funds", "7")

    checkpoints.set_cursor("eu_funds", None)

    assert store.keys_with_prefix("cursor:") == []


def test_cursor_expires_with_ttl() -> None:
    store = InMemoryKeyValueStore()
    checkpoints = CheckpointStore(store, ttl_seconds=60)
    checkpoints.set_cursor("seap", "5")

    store.advance(61)

    assert checkpoints.get_cursor("seap") is None


def test_read_returns_cursor_and_last_run() -> None:
    store = InMemoryKeyValueStore()
    checkpoints = CheckpointStore(store)
    checkpoints.set_cursor("seap", "40")
    checkpoints.write_stats("seap", RunStats(discovered=40, upserted=38, errors=2, cursor="40"))

    checkpoint = checkpoints.read("seap")

    assert checkpoint.cursor == "40"
    assert checkpoint.last_run is not None
    assert checkpoint.last_run.upserted == 38
    assert checkpoint.last_run.errors == 2
    assert isinstance(store.get(stats_key("seap")), dict)


def test_snapshot_covers_every_source() -> None:
    checkpoints = CheckpointStore(InMemoryKeyValueStore())
    checkpoints.set_cursor("seap", "1")

    snapshot = checkpoints.snapshot(["seap", "eu_funds"])

    assert snapshot["seap"].cursor == "1"
    assert snapshot["eu_funds"].cursor is None
    assert snapshot["eu_funds"].last_run is None

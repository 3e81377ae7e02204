from __future__ import annotations

import json
from uuid import uuid4

import pytest

from firmrecon.domain.errors import ValidationError
from firmrecon.domain.ingestion.batch import IngestBatchResult
from firmrecon.domain.model import Checkpoint, DeadLetterEntry, MergeCandidate, MergeStatus
from firmrecon.domain.reconciliation.apply_merge import MergeResult
from firmrecon.domain.verification import VerificationBatchResult
from firmrecon.ui import cli


def _output(capsys: pytest.CaptureFixture[str]) -> object:
    return json.loads(capsys.readouterr().out)


def test_ingest_command_passes_arguments(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}

    def fake_ingest(source: str, limit: int | None, **kwargs: object) -> IngestBatchResult:
        captured.update(kwargs, source=source, limit=limit)
        return IngestBatchResult(source_id=source, discovered=3, created=2, next_cursor="3")

    monkeypatch.setattr(cli, "run_ingest_batch", fake_ingest)

    cli.main(["--dry-run", "ingest", "seap", "--limit", "3"])

    assert captured == {"source": "seap", "limit": 3, "dry_run": True}
    payload = _output(capsys)
    assert isinstance(payload, dict)
    assert payload["created"] == 2
    assert payload["next_cursor"] == "3"


def test_ingest_command_forwards_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_ingest(source: str, limit: int | None, **kwargs: object) -> IngestBatchResult:
        captured.update(kwargs)
        return IngestBatchResult(source_id=source)

    monkeypatch.setattr(cli, "run_ingest_batch", fake_ingest)

    cli.main(["ingest", "third_party", "--provider", "stub"])

    assert captured == {"dry_run": False, "provider_id": "stub"}


def test_unknown_source_is_rejected_by_the_parser() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["ingest", "nowhere"])

    assert excinfo.value.code == 2


def test_verify_command(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def fake_verify(limit: int | None, **kwargs: object) -> VerificationBatchResult:
        assert kwargs == {"dry_run": False, "ttl_days": 7}
        return VerificationBatchResult(processed=limit or 0, verified=limit or 0)

    monkeypatch.setattr(cli, "run_verification_batch", fake_verify)

    cli.main(["verify", "--limit", "5", "--ttl-days", "7"])

    payload = _output(capsys)
    assert isinstance(payload, dict)
    assert payload["verified"] == 5
    assert payload["cursor"] is None


def test_dedup_command_lists_candidates(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    candidate = MergeCandidate(source_id=uuid4(), target_id=uuid4(), confidence=85)
    monkeypatch.setattr(cli, "run_dedup_scan", lambda *_, **__: [candidate])

    cli.main(["dedup", "--min-confidence", "80"])

    payload = _output(capsys)
    assert isinstance(payload, list)
    assert payload[0]["id"] == str(candidate.id)
    assert payload[0]["confidence"] == 85


def test_review_commands(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    candidate_id = uuid4()
    canonical, merged = uuid4(), uuid4()
    rejected = MergeCandidate(
        source_id=merged, target_id=canonical, confidence=70, status=MergeStatus.REJECTED
    )
    monkeypatch.setattr(
        cli,
        "approve_candidate",
        lambda *_, **__: MergeResult(canonical, merged, aliases_created=2),
    )
    monkeypatch.setattr(cli, "reject_candidate", lambda *_, **__: rejected)

    cli.main(["review", "approve", str(candidate_id), "--reviewer", "ana"])
    approved = _output(capsys)
    cli.main(["review", "reject", str(candidate_id)])
    refused = _output(capsys)

    assert isinstance(approved, dict)
    assert approved["canonical_id"] == str(canonical)
    assert approved["aliases_created"] == 2
    assert refused == {"id": str(rejected.id), "status": "rejected"}


def test_invalid_uuid_exits_with_usage_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "apply_merge", lambda *_, **__: pytest.fail("must not merge"))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["merge", "not-a-uuid", str(uuid4())])

    assert excinfo.value.code == 2


def test_validation_error_exits_with_usage_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_financials(*_: object, **__: object) -> None:
        raise ValidationError("limit must be positive, got 0", field="limit")

    monkeypatch.setattr(cli, "run_financial_sync", fake_financials)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["financials", "--limit", "0"])

    assert excinfo.value.code == 2


def test_unexpected_error_exits_with_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(*_: object, **__: object) -> None:
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(cli, "run_dedup_scan", broken)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["dedup"])

    assert excinfo.value.code == 1


def test_cursor_commands(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    resets: list[str] = []
    monkeypatch.setattr(cli, "reset_cursor", resets.append)
    monkeypatch.setattr(
        cli, "read_checkpoint", lambda source: Checkpoint(source_id=source, cursor="40")
    )

    cli.main(["cursor", "reset", "seap"])
    reset = _output(capsys)
    cli.main(["cursor", "show", "seap"])
    shown = _output(capsys)

    assert resets == ["seap"]
    assert reset == {"source": "seap", "cursor": None}
    assert shown == {"seap": {"source_id": "seap", "cursor": "40", "last_run": None}}


def test_deadletter_commands(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    requested: list[tuple[str, int]] = []

    def fake_list(subsystem: str, limit: int) -> list[DeadLetterEntry]:
        requested.append((subsystem, limit))
        return [DeadLetterEntry(cui="14399840", reason="rate limited", attempt=3)]

    monkeypatch.setattr(cli, "list_dead_letters", fake_list)
    monkeypatch.setattr(cli, "clear_dead_letters", lambda subsystem: 4)

    cli.main(["deadletter", "list", "--subsystem", "financials", "--limit", "10"])
    listed = _output(capsys)
    cli.main(["deadletter", "clear"])
    cleared = _output(capsys)

    assert requested == [("financials", 10)]
    assert isinstance(listed, list)
    assert listed[0]["cui"] == "14399840"
    assert cleared == {"cleared": 4}

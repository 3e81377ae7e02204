from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from dotenv import load_dotenv

from firmrecon.app import (
    apply_merge,
    approve_candidate,
    check_sources_health,
    checkpoint_snapshot,
    clear_dead_letters,
    list_dead_letters,
    read_checkpoint,
    reject_candidate,
    reset_cursor,
    run_dedup_scan,
    run_financial_sync,
    run_ingest_batch,
    run_verification_batch,
)
from firmrecon.config import configure_logging
from firmrecon.domain.errors import ValidationError
from firmrecon.domain.model import SourceId
from firmrecon.domain.verification import FINANCIALS_SUBSYSTEM, VERIFICATION_SUBSYSTEM

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from firmrecon.domain.model import MergeCandidate

log = logging.getLogger(__name__)

SOURCE_CHOICES = [source.value for source in SourceId]
DEAD_LETTER_CHOICES = [VERIFICATION_SUBSYSTEM, FINANCIALS_SUBSYSTEM]


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest and reconcile Romanian company records")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run matching and decisions without writing anything",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Run one ingestion batch for a source")
    ingest.add_argument("source", choices=SOURCE_CHOICES, help="Source to ingest from")
    ingest.add_argument(
        "--limit", type=int, help="Maximum records to discover (defaults to config)"
    )
    ingest.add_argument(
        "--provider",
        type=str,
        default=None,
        help="Third-party provider id (third_party source only)",
    )

    verify = subparsers.add_parser("verify", help="Verify stale companies against ANAF")
    verify.add_argument("--limit", type=int, help="Maximum companies to verify")
    verify.add_argument("--ttl-days", type=int, help="Re-verify after this many days")

    dedup = subparsers.add_parser("dedup", help="Scan for duplicate companies")
    dedup.add_argument("--min-confidence", type=int, help="Minimum candidate confidence")

    review = subparsers.add_parser("review", help="Review merge candidates")
    review_sub = review.add_subparsers(dest="review_command", required=True)
    for name, help_text in (("approve", "Approve and merge"), ("reject", "Reject a candidate")):
        action = review_sub.add_parser(name, help=help_text)
        action.add_argument("candidate_id", type=str, help="Merge candidate id")
        action.add_argument("--reviewer", type=str, help="Reviewer recorded on the candidate")

    merge = subparsers.add_parser("merge", help="Merge two companies directly")
    merge.add_argument("source_id", type=str)
    merge.add_argument("target_id", type=str)

    financials = subparsers.add_parser("financials", help="Sync ANAF financial statements")
    financials.add_argument("--limit", type=int, help="Maximum companies to sync")
    financials.add_argument(
        "--year",
        type=int,
        action="append",
        dest="years",
        help="Fiscal year to keep (repeatable)",
    )

    cursor = subparsers.add_parser("cursor", help="Inspect or reset ingestion cursors")
    cursor_sub = cursor.add_subparsers(dest="cursor_command", required=True)
    cursor_reset = cursor_sub.add_parser("reset", help="Restart a source from the beginning")
    cursor_reset.add_argument("source", choices=SOURCE_CHOICES)
    cursor_show = cursor_sub.add_parser("show", help="Show cursors and last-run stats")
    cursor_show.add_argument("source", nargs="?", choices=SOURCE_CHOICES)

    deadletter = subparsers.add_parser("deadletter", help="Inspect failed verifications")
    deadletter_sub = deadletter.add_subparsers(dest="deadletter_command", required=True)
    for name in ("list", "clear"):
        action = deadletter_sub.add_parser(name)
        action.add_argument(
            "--subsystem", choices=DEAD_LETTER_CHOICES, default=VERIFICATION_SUBSYSTEM
        )
        if name == "list":
            action.add_argument("--limit", type=int, default=100)

    subparsers.add_parser("health", help="Check source availability")

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")


def _candidates_payload(candidates: list[MergeCandidate]) -> list[dict[str, Any]]:
    return [
        {
            "id": str(candidate.id),
            "source_id": str(candidate.source_id),
            "target_id": str(candidate.target_id),
            "confidence": candidate.confidence,
            "reasons": [reason.value for reason in candidate.reasons],
        }
        for candidate in candidates
    ]


def _run(args: argparse.Namespace) -> Any:  # noqa: C901, PLR0911
    dry_run: bool = args.dry_run
    command = args.command

    if command == "ingest":
        kwargs: dict[str, Any] = {"dry_run": dry_run}
        if args.provider:
            kwargs["provider_id"] = args.provider
        return run_ingest_batch(args.source, args.limit, **kwargs).to_dict()
    if command == "verify":
        return asdict(run_verification_batch(args.limit, dry_run=dry_run, ttl_days=args.ttl_days))
    if command == "dedup":
        return _candidates_payload(run_dedup_scan(args.min_confidence, dry_run=dry_run))
    if command == "review":
        candidate_id = _parse_uuid(args.candidate_id)
        if args.review_command == "approve":
            return asdict(approve_candidate(candidate_id, args.reviewer, dry_run=dry_run))
        rejected = reject_candidate(candidate_id, args.reviewer, dry_run=dry_run)
        return {"id": str(rejected.id), "status": rejected.status.value}
    if command == "merge":
        merged = apply_merge(
            _parse_uuid(args.source_id), _parse_uuid(args.target_id), dry_run=dry_run
        )
        return asdict(merged)
    if command == "financials":
        return asdict(run_financial_sync(args.limit, years=args.years, dry_run=dry_run))
    if command == "cursor":
        if args.cursor_command == "reset":
            reset_cursor(args.source)
            return {"source": args.source, "cursor": None}
        checkpoints = (
            {args.source: read_checkpoint(args.source)} if args.source else checkpoint_snapshot()
        )
        return {source: asdict(checkpoint) for source, checkpoint in checkpoints.items()}
    if command == "deadletter":
        if args.deadletter_command == "clear":
            return {"cleared": clear_dead_letters(args.subsystem)}
        return [entry.to_dict() for entry in list_dead_letters(args.subsystem, args.limit)]
    if command == "health":
        return {source: asdict(status) for source, status in check_sources_health().items()}
    raise ValueError(f"Unsupported command: {command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        _emit(_run(parsed_args))
    except (ValueError, ValidationError) as exc:
        log.error("Invalid input: %s", exc)  # noqa: TRY400
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

"""Tax-registry verification: retries, dead letters and applying verified data.

The HTTP client lives in ``firmrecon.adapters.anaf``; this module only sees the
``CompanyVerifier`` port and decides what a result means for the canonical company.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Final

from firmrecon.domain.cui import normalize_cui
from firmrecon.domain.errors import TransientError
from firmrecon.domain.model import DeadLetterEntry, SourceId, VerificationState, utcnow
from firmrecon.domain.ports import VerificationOutcome
from firmrecon.domain.reconciliation import CompanyPatch, MergeEngine, PatchMetadata
from firmrecon.domain.reconciliation.normalize import collapse_whitespace

if TYPE_CHECKING:
    from uuid import UUID

    from firmrecon.config.anaf import AnafConfig
    from firmrecon.domain.model import Company, FieldChange
    from firmrecon.domain.ports import CompanyVerifier, KeyValueStore, ReconciliationUnitOfWork

log = logging.getLogger(__name__)

DEFAULT_DEAD_LETTER_LIST_LIMIT: Final[int] = 100
VERIFICATION_SUBSYSTEM: Final[str] = "verification"
FINANCIALS_SUBSYSTEM: Final[str] = "financials"


@dataclass(slots=True, frozen=True, kw_only=True)
class BackoffPolicy:
    attempts: int = 3
    initial_delay_seconds: float = 1.0
    factor: float = 2.0
    max_delay_seconds: float = 5.0

    @classmethod
    def from_config(cls, config: AnafConfig) -> BackoffPolicy:
        return cls(
            attempts=config.max_attempts,
            initial_delay_seconds=config.initial_delay_seconds,
            factor=config.backoff_factor,
            max_delay_seconds=config.max_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-based)."""
        delay = self.initial_delay_seconds * self.factor ** (attempt - 1)
        return min(delay, self.max_delay_seconds)


def retry_with_backoff[T](
    call: Callable[[], T],
    *,
    policy: BackoffPolicy | None = None,
    should_retry: Callable[[T], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``call`` until it succeeds or ``policy.attempts`` is used up.

    A ``TransientError`` or a result for which ``should_retry`` is true triggers another
    attempt after an exponential delay. After the last attempt the final result is
    returned, or the final ``TransientError`` re-raised.
    """

    policy = policy or BackoffPolicy()
    for attempt in range(1, policy.attempts):
        try:
            result = call()
        except TransientError as exc:
            delay = max(policy.delay_for(attempt), exc.retry_after or 0.0)
            log.info("Transient failure (%s), retrying in %.1fs", exc, delay)
        else:
            if should_retry is None or not should_retry(result):
                return result
            delay = policy.delay_for(attempt)
            log.info("Retryable result on attempt %s, retrying in %.1fs", attempt, delay)
        sleep(min(delay, policy.max_delay_seconds))
    return call()


@dataclass(slots=True)
class DeadLetterQueue:
    """Capped, newest-first list of CUIs that exhausted their retries."""

    store: KeyValueStore
    subsystem: str
    cap: int = 500

    @property
    def key(self) -> str:
        return f"deadletter:{self.subsystem}"

    def add(self, cui: str, reason: str, *, attempt: int = 1) -> DeadLetterEntry:
        entry = DeadLetterEntry(cui=cui, reason=reason, attempt=attempt)
        self.store.list_push(self.key, entry.to_dict(), cap=self.cap)
        log.error("Dead-lettered %s in %s: %s", cui, self.subsystem, reason)
        return entry

    def list(self, limit: int = DEFAULT_DEAD_LETTER_LIST_LIMIT) -> list[DeadLetterEntry]:
        return [DeadLetterEntry.from_dict(item) for item in self.store.list_range(self.key, limit)]

    def remove(self, cui: str) -> int:
        def matches(item: Any) -> bool:
            return isinstance(item, dict) and item.get("cui") == cui

        return self.store.list_remove(self.key, matches)

    def clear(self) -> int:
        count = len(self.store.list_range(self.key))
        self.store.delete(self.key)
        return count


def is_verification_stale(
    verified_at: datetime | None, ttl_days: int, *, now: datetime | None = None
) -> bool:
    if verified_at is None:
        return True
    return (now or utcnow()) - verified_at > timedelta(days=ttl_days)


def _is_retryable(outcome: VerificationOutcome) -> bool:
    return outcome.retryable


@dataclass(slots=True)
class AppliedVerification:
    outcome: VerificationOutcome
    changes: list[FieldChange] = field(default_factory=list)


@dataclass(slots=True)
class VerificationService:
    """Verifies companies against the registry and folds the answer into the record."""

    verifier: CompanyVerifier
    dead_letters: DeadLetterQueue | None = None
    engine: MergeEngine = field(default_factory=MergeEngine)
    policy: BackoffPolicy = field(default_factory=BackoffPolicy)
    sleep: Callable[[float], None] = time.sleep

    def verify(self, cui: str, *, dead_letter: bool = True) -> VerificationOutcome:
        try:
            outcome = retry_with_backoff(
                lambda: self.verifier.verify(cui),
                policy=self.policy,
                should_retry=_is_retryable,
                sleep=self.sleep,
            )
        except TransientError as exc:
            outcome = VerificationOutcome(
                state=VerificationState.ERROR, cui=cui, error=str(exc), retryable=True
            )
        if not dead_letter or self.dead_letters is None:
            return outcome
        if outcome.succeeded:
            self.dead_letters.remove(cui)
        else:
            self.dead_letters.add(
                cui, outcome.error or outcome.state.value, attempt=self.policy.attempts
            )
        return outcome

    def apply(self, company: Company, outcome: VerificationOutcome) -> list[FieldChange]:
        """Write the verification state to ``company``; merge official data on success."""

        company.verification_status = outcome.state.value
        if not outcome.succeeded or outcome.data is None:
            company.touch()
            return []

        data = outcome.data
        name = collapse_whitespace(data.official_name)
        values = {
            "name": name,
            "legal_name": name,
            "address": collapse_whitespace(data.address),
        }
        patch = CompanyPatch(
            values={key: value for key, value in values.items() if value},
            metadata=PatchMetadata(
                source_id=SourceId.ANAF_VERIFY,
                source_ref=f"anaf:{data.cui}",
                confidence=data.confidence,
                observed_at=data.verified_at,
            ),
        )
        merge_outcome = self.engine.apply(company, patch)
        company.is_active = data.is_active
        company.is_vat_registered = data.is_vat_registered
        company.last_verified_at = data.verified_at
        company.touch()
        return merge_outcome.changes


@dataclass(slots=True, kw_only=True)
class VerificationBatchResult:
    processed: int = 0
    verified: int = 0
    errors: int = 0
    rate_limited: int = 0
    cursor: str | None = None
    dry_run: bool = False


def _due_companies(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    stale_before: datetime,
    after_id: UUID | None,
    limit: int,
) -> list[tuple[UUID, str]]:
    with unit_of_work_factory() as uow:
        companies = uow.repositories.companies.list_due_for_verification(
            stale_before=stale_before, after_id=after_id, limit=limit
        )
        return [(company.id, company.cui) for company in companies if company.cui]


def run_verification_batch(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    service: VerificationService,
    *,
    limit: int,
    ttl_days: int,
    after_id: UUID | None = None,
    dry_run: bool = False,
) -> VerificationBatchResult:
    """Verify up to ``limit`` companies whose verification is missing or stale.

    Companies are walked in id order after ``after_id``; the returned ``cursor`` is the
    last id processed, or ``None`` once the walk reached the end.

    A dry run rolls back company changes and skips the dead-letter list; the verifier may
    still record upstream state such as its response cache.
    """

    result = VerificationBatchResult(dry_run=dry_run)
    stale_before = utcnow() - timedelta(days=ttl_days)
    due = _due_companies(
        unit_of_work_factory, stale_before=stale_before, after_id=after_id, limit=limit
    )
    log.info("Starting verification batch: %s due (dry_run=%s)", len(due), dry_run)

    for company_id, cui in due:
        result.processed += 1
        result.cursor = str(company_id)
        normalized = normalize_cui(cui)
        if not normalized.valid or normalized.value is None:
            log.warning("Skipping verification of %s: invalid CUI", cui)
            result.errors += 1
            continue
        outcome = service.verify(normalized.value, dead_letter=not dry_run)

        if outcome.state is VerificationState.RATE_LIMITED:
            result.rate_limited += 1
        elif outcome.succeeded:
            result.verified += 1
        else:
            result.errors += 1

        with unit_of_work_factory() as uow:
            company = uow.repositories.companies.get(company_id)
            if company is None:
                continue
            service.apply(company, outcome)
            if dry_run:
                uow.rollback()
            else:
                uow.commit()

    if len(due) < limit:
        result.cursor = None
    log.info(
        "Finished verification batch: processed=%s verified=%s errors=%s rate_limited=%s",
        result.processed,
        result.verified,
        result.errors,
        result.rate_limited,
    )
    return result

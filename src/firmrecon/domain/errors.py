"""Error taxonomy shared by ingestion, reconciliation and verification."""

from __future__ import annotations


class ReconciliationError(RuntimeError):
    """Base class for domain failures."""


class ValidationError(ReconciliationError):
    """Input is malformed (bad tax id, missing required field). Skip the row and count it."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class TransientError(ReconciliationError):
    """Timeout, rate limit or upstream 5xx. Retry with backoff, then dead-letter."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ConflictError(ReconciliationError):
    """Operation would merge data that must never be merged automatically."""


class CapacityError(ReconciliationError):
    """Response or payload exceeded its hard size cap."""

    def __init__(self, message: str, *, limit: int, observed: int | None = None) -> None:
        super().__init__(message)
        self.limit = limit
        self.observed = observed


class DuplicateKeyError(ConflictError):
    """A concurrent writer inserted the same unique key first."""

"""TTL-bounded mutual exclusion over the key-value store."""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from firmrecon.config.ingestion import LOCK_TTL_SECONDS

if TYPE_CHECKING:
    from types import TracebackType

    from firmrecon.domain.ports import KeyValueStore

log = logging.getLogger(__name__)


class LockNotAcquiredError(RuntimeError):
    """Another holder owns the lock; the guarded operation is already running."""


@dataclass(slots=True)
class DistributedLock:
    """Non-blocking lock: one acquire attempt, no retries.

    Used as a context manager it raises ``LockNotAcquiredError`` when the lock is held.
    """

    store: KeyValueStore
    name: str
    ttl_seconds: int = LOCK_TTL_SECONDS
    token: str | None = None

    @property
    def key(self) -> str:
        return f"lock:{self.name}"

    def acquire(self) -> bool:
        token = f"{time.time_ns()}-{secrets.token_hex(6)}"
        if not self.store.set_if_absent(self.key, token, ttl_seconds=self.ttl_seconds):
            log.info("Lock %s already held", self.name)
            return False
        self.token = token
        return True

    def release(self) -> bool:
        if self.token is None:
            return False
        released = self.store.delete_if_equals(self.key, self.token)
        self.token = None
        return released

    def is_held(self) -> bool:
        return self.store.get(self.key) is not None

    def holder(self) -> str | None:
        value = self.store.get(self.key)
        return str(value) if value is not None else None

    def __enter__(self) -> DistributedLock:
        if not self.acquire():
            raise LockNotAcquiredError(f"Lock {self.name} is already held")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        self.release()
        return False

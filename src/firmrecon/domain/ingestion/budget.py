"""Record-count and wall-clock budget for one batch run."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class BudgetInfo:
    records_remaining: int
    time_remaining_ms: int
    elapsed_ms: int


@dataclass(slots=True)
class Budget:
    """Bounds a run by records and elapsed milliseconds.

    The batch runner asks ``can_proceed`` before every record; nothing else halts a batch.
    """

    records_remaining: int
    time_limit_ms: int
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(init=False)

    def __post_init__(self) -> None:
        self.started_at = self.clock()

    def elapsed_ms(self) -> int:
        return int((self.clock() - self.started_at) * 1000)

    def can_proceed(self) -> bool:
        return self.records_remaining > 0 and self.elapsed_ms() < self.time_limit_ms

    def consume_record(self) -> bool:
        if not self.can_proceed():
            return False
        self.records_remaining -= 1
        return True

    def info(self) -> BudgetInfo:
        elapsed = self.elapsed_ms()
        return BudgetInfo(
            records_remaining=self.records_remaining,
            time_remaining_ms=max(0, self.time_limit_ms - elapsed),
            elapsed_ms=elapsed,
        )

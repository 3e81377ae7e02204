"""Durable key-value store port (checkpoints, locks, rate limits, dead letters, caches)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable


@runtime_checkable
class KeyValueStore(Protocol):
    """JSON values under string keys, with optional expiry.

    Every method is atomic with respect to other callers of the same store.
    """

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def set_if_absent(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> bool:
        """Store ``value`` only if ``key`` is missing or expired. Return whether it was stored."""
        ...

    def delete_if_equals(self, key: str, expected: Any) -> bool: ...

    def claim_interval(self, key: str, *, min_interval_ms: int, ttl_seconds: float) -> bool:
        """Check-and-set a shared "last used" timestamp.

        Returns ``True`` (and records now) when at least ``min_interval_ms`` passed since
        the stored timestamp, ``False`` without writing otherwise.
        """
        ...

    def list_push(self, key: str, item: Any, *, cap: int) -> None:
        """Prepend ``item`` and truncate the list to ``cap`` entries."""
        ...

    def list_range(self, key: str, limit: int | None = None) -> list[Any]: ...

    def list_remove(self, key: str, predicate: Callable[[Any], bool]) -> int: ...

    def keys_with_prefix(self, prefix: str) -> list[str]: ...

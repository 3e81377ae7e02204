"""Key-value store on the ``kv_entry`` table.

Read-modify-write operations are compare-and-swap updates guarded by the stored JSON
text, so concurrent processes sharing the database never lose each other's writes.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError

from firmrecon.adapters.sqlalchemy.mappings import dump_json, kv_entry_table
from firmrecon.domain.errors import TransientError
from firmrecon.domain.model import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Connection, Engine

log = logging.getLogger(__name__)

CAS_ATTEMPTS: Final[int] = 10

table = kv_entry_table


@dataclass(slots=True, frozen=True)
class _Write:
    value: Any
    ttl_seconds: float | None = None


def _expires_at(now: datetime, ttl_seconds: float | None) -> datetime | None:
    return now + timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None


@dataclass(slots=True)
class SqlAlchemyKeyValueStore:
    engine: Engine
    clock: Callable[[], datetime] = utcnow
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    # Plain operations -------------------------------------------------------

    def get(self, key: str) -> Any | None:
        with self.engine.connect() as connection:
            current, _ = self._read(connection, key, self.clock())
        return current

    def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        self._swap(key, lambda _current, _now: (_Write(value, ttl_seconds), None))

    def delete(self, key: str) -> None:
        with self._lock, self.engine.begin() as connection:
            connection.execute(delete(table).where(table.c.key == key))

    def set_if_absent(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> bool:
        now = self.clock()
        with self._lock:
            try:
                with self.engine.begin() as connection:
                    connection.execute(
                        delete(table)
                        .where(table.c.key == key)
                        .where(table.c.expires_at.is_not(None))
                        .where(table.c.expires_at <= now)
                    )
                    connection.execute(
                        insert(table).values(
                            key=key,
                            value=dump_json(value),
                            expires_at=_expires_at(now, ttl_seconds),
                            updated_at=now,
                        )
                    )
            except IntegrityError:
                return False
        return True

    def delete_if_equals(self, key: str, expected: Any) -> bool:
        with self._lock, self.engine.begin() as connection:
            result = connection.execute(
                delete(table)
                .where(table.c.key == key)
                .where(table.c.value == dump_json(expected))
            )
        return result.rowcount > 0

    def keys_with_prefix(self, prefix: str) -> list[str]:
        now = self.clock()
        stmt = (
            select(table.c.key)
            .where(table.c.key.startswith(prefix, autoescape=True))
            .where((table.c.expires_at.is_(None)) | (table.c.expires_at > now))
            .order_by(table.c.key)
        )
        with self.engine.connect() as connection:
            return [str(key) for key in connection.execute(stmt).scalars()]

    def purge_expired(self) -> int:
        now = self.clock()
        with self._lock, self.engine.begin() as connection:
            result = connection.execute(
                delete(table)
                .where(table.c.expires_at.is_not(None))
                .where(table.c.expires_at <= now)
            )
        return result.rowcount

    # Read-modify-write operations ------------------------------------------

    def claim_interval(self, key: str, *, min_interval_ms: int, ttl_seconds: float) -> bool:
        def claim(current: Any | None, now: datetime) -> tuple[_Write | None, bool]:
            now_ms = int(now.timestamp() * 1000)
            if isinstance(current, int | float) and now_ms - current < min_interval_ms:
                return None, False
            return _Write(now_ms, ttl_seconds), True

        return self._swap(key, claim)

    def list_push(self, key: str, item: Any, *, cap: int) -> None:
        def push(current: Any | None, _now: datetime) -> tuple[_Write | None, None]:
            items = list(current) if isinstance(current, list) else []
            return _Write([item, *items][:cap]), None

        self._swap(key, push)

    def list_range(self, key: str, limit: int | None = None) -> list[Any]:
        value = self.get(key)
        if not isinstance(value, list):
            return []
        return value if limit is None else value[:limit]

    def list_remove(self, key: str, predicate: Callable[[Any], bool]) -> int:
        def remove(current: Any | None, _now: datetime) -> tuple[_Write | None, int]:
            items = list(current) if isinstance(current, list) else []
            kept = [item for item in items if not predicate(item)]
            removed = len(items) - len(kept)
            return (_Write(kept) if removed else None), removed

        return self._swap(key, remove)

    # Internals --------------------------------------------------------------

    def _read(
        self, connection: Connection, key: str, now: datetime
    ) -> tuple[Any | None, str | None]:
        row = connection.execute(
            select(table.c.value, table.c.expires_at).where(table.c.key == key)
        ).first()
        if row is None:
            return None, None
        value_text, expires_at = row
        if expires_at is not None and expires_at <= now:
            return None, value_text
        return json.loads(value_text), value_text

    def _swap[T](
        self, key: str, compute: Callable[[Any | None, datetime], tuple[_Write | None, T]]
    ) -> T:
        with self._lock:
            for _ in range(CAS_ATTEMPTS):
                now = self.clock()
                try:
                    with self.engine.begin() as connection:
                        current, stored_text = self._read(connection, key, now)
                        write, result = compute(current, now)
                        if write is None:
                            return result
                        values = {
                            "value": dump_json(write.value),
                            "expires_at": _expires_at(now, write.ttl_seconds),
                            "updated_at": now,
                        }
                        if stored_text is None:
                            connection.execute(insert(table).values(key=key, **values))
                            return result
                        swapped = connection.execute(
                            update(table)
                            .where(table.c.key == key)
                            .where(table.c.value == stored_text)
                            .values(**values)
                        )
                        if swapped.rowcount == 1:
                            return result
                except IntegrityError:
                    log.debug("Concurrent insert on %s, retrying", key)
            raise TransientError(f"Could not update {key!r} under contention")


if TYPE_CHECKING:
    from sqlalchemy import create_engine

    from firmrecon.domain.ports import KeyValueStore

    _kv_check: KeyValueStore = SqlAlchemyKeyValueStore(create_engine("sqlite://"))

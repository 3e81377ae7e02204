"""Stable hashing and bounded capture of untrusted raw payloads."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Final, cast

from firmrecon.config.ingestion import RAW_PAYLOAD_MAX_BYTES

ALLOWED_RAW_KEYS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "cui",
        "domain",
        "county",
        "industry",
        "employees",
        "revenue",
        "profit",
        "currency",
        "year",
        "url",
        "description",
        "phone",
        "email",
        "address",
        "contract_id",
        "project_id",
        "authority",
        "program",
        "value",
        "date",
        "source_ref",
    }
)
MAX_STRING_LENGTH: Final[int] = 500
MAX_LIST_ITEMS: Final[int] = 10
MAX_DEPTH: Final[int] = 3
ROW_HASH_LENGTH: Final[int] = 32


def stable_json(payload: object) -> str:
    """Compact JSON with sorted keys; identical for permutations of the same mapping."""

    return json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )


def hash_row(payload: object) -> str:
    digest = hashlib.sha256(stable_json(payload).encode("utf-8")).hexdigest()
    return digest[:ROW_HASH_LENGTH]


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _sanitize_value(value: object, depth: int) -> object:
    if depth > MAX_DEPTH:
        return "[truncated]"
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        return _truncate(value, MAX_STRING_LENGTH)
    if isinstance(value, list | tuple):
        return [_sanitize_value(item, depth + 1) for item in list(value)[:MAX_LIST_ITEMS]]
    if isinstance(value, dict):
        return {
            str(key): _sanitize_value(item, depth + 1)
            for key, item in value.items()
            if str(key).lower() in ALLOWED_RAW_KEYS
        }
    return _truncate(str(value), 200)


def _size(payload: object) -> int:
    return len(stable_json(payload).encode("utf-8"))


def sanitize_payload(
    payload: dict[str, Any] | None, *, max_bytes: int = RAW_PAYLOAD_MAX_BYTES
) -> dict[str, Any]:
    """Whitelist keys, bound nesting and lengths, then cap the serialized size.

    Over-size payloads lose whole keys (last in sort order first); if a single key is
    still too large the serialized form is truncated into a ``_truncated`` marker.
    """

    if not payload:
        return {}
    sanitized = cast("dict[str, Any]", _sanitize_value(payload, 0))
    if _size(sanitized) <= max_bytes:
        return sanitized

    for key in sorted(sanitized, reverse=True)[:-1]:
        del sanitized[key]
        if _size(sanitized) <= max_bytes:
            return sanitized
    text = stable_json(sanitized)[:max_bytes]
    while text and _size({"_truncated": text}) > max_bytes:
        text = text[: len(text) - 64]
    return {"_truncated": text}

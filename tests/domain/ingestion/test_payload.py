from __future__ import annotations

from firmrecon.domain.ingestion.payload import (
    MAX_LIST_ITEMS,
    MAX_STRING_LENGTH,
    ROW_HASH_LENGTH,
    hash_row,
    sanitize_payload,
    stable_json,
)


def test_stable_json_ignores_key_order() -> None:
    assert stable_json({"b": 1, "a": [1, 2]}) == stable_json({"a": [1, 2], "b": 1})


def test_hash_row_is_deterministic_and_truncated() -> None:
    first = hash_row({"cui": "123456", "name": "Alfa"})
    second = hash_row({"name": "Alfa", "cui": "123456"})

    assert first == second
    assert len(first) == ROW_HASH_LENGTH
    assert hash_row({"cui": "123456", "name": "Beta"}) != first


def test_sanitize_payload_keeps_only_whitelisted_keys() -> None:
    payload = {"cui": "123456", "name": "Alfa", "password": "secret", "Value": 10}

    sanitized = sanitize_payload(payload)

    assert sanitized == {"cui": "123456", "name": "Alfa", "Value": 10}


def test_sanitize_payload_truncates_long_strings_and_lists() -> None:
    payload = {"description": "x" * 2000, "value": list(range(50))}

    sanitized = sanitize_payload(payload)

    assert len(sanitized["description"]) == MAX_STRING_LENGTH
    assert sanitized["description"].endswith("...")
    assert len(sanitized["value"]) == MAX_LIST_ITEMS


def test_sanitize_payload_bounds_nesting() -> None:
    payload = {"value": {"value": {"value": {"value": {"value": 1}}}}}

    sanitized = sanitize_payload(payload)

    assert sanitized["value"]["value"]["value"] == {"value": "[truncated]"}


def test_sanitize_payload_caps_serialized_size() -> None:
    payload = {key: "y" * 400 for key in ("name", "address", "description", "authority")}

    sanitized = sanitize_payload(payload, max_bytes=900)

    assert len(stable_json(sanitized).encode("utf-8")) <= 900
    assert "address" in sanitized


def test_sanitize_payload_truncates_single_oversized_key() -> None:
    sanitized = sanitize_payload({"description": "z" * 450}, max_bytes=200)

    assert set(sanitized) == {"_truncated"}
    assert len(stable_json(sanitized).encode("utf-8")) <= 200


def test_sanitize_payload_handles_empty_input() -> None:
    assert sanitize_payload(None) == {}
    assert sanitize_payload({}) == {}

from __future__ import annotations

import pytest

from firmrecon.domain.cui import (
    CuiError,
    format_cui_for_display,
    is_valid_cui,
    normalize_cui,
    require_cui,
)
from firmrecon.domain.errors import ValidationError


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("14399840", "14399840"),
        ("RO14399840", "14399840"),
        ("ro14399840", "14399840"),
        ("  RO 14 399 840 ", "14399840"),
        ("14.399.840", "14399840"),
        ("14-399-840", "14399840"),
        (14399840, "14399840"),
        ("12", "12"),
    ],
)
def test_normalize_cui_accepts_common_spellings(raw: str | int, expected: str) -> None:
    result = normalize_cui(raw)

    assert result.valid
    assert result.value == expected
    assert result.error is None


@pytest.mark.parametrize(
    ("raw", "error"),
    [
        (None, CuiError.EMPTY),
        ("", CuiError.EMPTY),
        ("   ", CuiError.EMPTY),
        ("RO", CuiError.INVALID_FORMAT),
        ("ABC123", CuiError.INVALID_FORMAT),
        ("12a45", CuiError.INVALID_FORMAT),
        ("1", CuiError.INVALID_LENGTH),
        ("12345678901", CuiError.INVALID_LENGTH),
        ("11111111", CuiError.REPEATED_DIGITS),
        ("RO00000000", CuiError.REPEATED_DIGITS),
    ],
)
def test_normalize_cui_rejects_invalid_input(raw: str | None, error: CuiError) -> None:
    result = normalize_cui(raw)

    assert not result.valid
    assert result.value is None
    assert result.error is error


def test_normalize_cui_keeps_raw_text() -> None:
    assert normalize_cui(" RO123 ").raw == " RO123 "


def test_require_cui_raises_validation_error() -> None:
    with pytest.raises(ValidationError) as exc:
        require_cui("not-a-cui")

    assert exc.value.field == "cui"


def test_require_cui_returns_digits() -> None:
    assert require_cui("RO 123456") == "123456"


def test_is_valid_cui() -> None:
    assert is_valid_cui("RO14399840")
    assert not is_valid_cui("RO")


def test_format_cui_for_display() -> None:
    assert format_cui_for_display("14399840") == "RO14399840"
    assert format_cui_for_display("garbage") == "garbage"

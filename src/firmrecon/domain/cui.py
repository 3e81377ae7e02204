"""Normalization of Romanian tax identifiers (CUI / CIF).

The normalized form is digits only and is the matching key used everywhere else.
Accepted input: optional two-letter country prefix (``RO``), then 2 to 10 digits.
Separators inside the number (spaces, dots, dashes) are tolerated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from firmrecon.domain.errors import ValidationError

MIN_DIGITS: Final[int] = 2
MAX_DIGITS: Final[int] = 10

_PREFIX = re.compile(r"^[a-z]{2}")
_SEPARATORS = re.compile(r"[\s.\-/]")
_DIGITS = re.compile(r"^\d+$")


class CuiError(StrEnum):
    EMPTY = "empty"
    INVALID_FORMAT = "invalid_format"
    INVALID_LENGTH = "invalid_length"
    REPEATED_DIGITS = "repeated_digits"


@dataclass(slots=True, frozen=True)
class CuiResult:
    """Outcome of normalizing a raw tax id string."""

    raw: str
    value: str | None = None
    error: CuiError | None = None

    @property
    def valid(self) -> bool:
        return self.value is not None


def normalize_cui(raw: str | int | None) -> CuiResult:
    text = "" if raw is None else str(raw)
    candidate = text.strip().casefold()
    if not candidate:
        return CuiResult(raw=text, error=CuiError.EMPTY)

    candidate = _PREFIX.sub("", candidate, count=1)
    candidate = _SEPARATORS.sub("", candidate)

    if not _DIGITS.match(candidate):
        return CuiResult(raw=text, error=CuiError.INVALID_FORMAT)
    if not MIN_DIGITS <= len(candidate) <= MAX_DIGITS:
        return CuiResult(raw=text, error=CuiError.INVALID_LENGTH)
    if len(set(candidate)) == 1:
        return CuiResult(raw=text, error=CuiError.REPEATED_DIGITS)
    return CuiResult(raw=text, value=candidate)


def require_cui(raw: str | int | None) -> str:
    """Return the normalized CUI or raise ``ValidationError``."""

    result = normalize_cui(raw)
    if result.value is None:
        raise ValidationError(f"Invalid CUI {result.raw!r}: {result.error}", field="cui")
    return result.value


def is_valid_cui(raw: str | int | None) -> bool:
    return normalize_cui(raw).valid


def format_cui_for_display(cui: str) -> str:
    result = normalize_cui(cui)
    return f"RO{result.value}" if result.value else cui

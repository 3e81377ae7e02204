"""Deterministic normalization of names, domains and contact fields.

Everything here is pure: no persistence, no I/O. The identity resolver and the
duplicate scanner both build their keys from these helpers.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Final

GENERIC_DOMAINS: Final[frozenset[str]] = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "yahoo.ro",
        "hotmail.com",
        "outlook.com",
        "live.com",
        "aol.com",
        "icloud.com",
        "mail.com",
        "protonmail.com",
        "yandex.com",
        "zoho.com",
        "company.com",
        "example.com",
        "test.com",
        "localhost",
    }
)

LEGAL_FORM_TOKENS: Final[frozenset[str]] = frozenset(
    {"srl", "sa", "sc", "pfa", "snc", "ra", "ii", "if", "scs", "sca", "srld"}
)

NAME_EXACT: Final[int] = 90
NAME_CONTAINS: Final[int] = 75
NAME_JACCARD: Final[int] = 60
CONTAINMENT_MIN_RATIO: Final[float] = 0.7
JACCARD_MIN: Final[float] = 0.6
JACCARD_MIN_WORD_LENGTH: Final[int] = 4

_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_DOTTED_ABBREVIATION = re.compile(r"\b(?:[a-z]\.){2,}")
_WHITESPACE = re.compile(r"\s+")


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_domain(value: str | None) -> str | None:
    """Reduce a URL or host to a bare lower-case domain, or ``None`` if unusable.

    Generic mail and placeholder domains are rejected: they say nothing about identity.
    """

    if not value:
        return None
    domain = value.strip().lower()
    domain = _SCHEME.sub("", domain)
    domain = domain.split("/", 1)[0].split("?", 1)[0].split("#", 1)[0]
    domain = domain.rsplit("@", 1)[-1]
    domain = domain.split(":", 1)[0]
    domain = domain.removeprefix("www.").strip(".")

    if len(domain) < 3 or any(char.isspace() for char in domain) or "." not in domain:
        return None
    if domain in GENERIC_DOMAINS:
        return None
    return domain


def registrable_domain(domain: str) -> str:
    labels = domain.split(".")
    return ".".join(labels[-2:])


def normalize_company_name(value: str | None) -> str:
    if not value:
        return ""
    text = strip_diacritics(value).casefold()
    text = _DOTTED_ABBREVIATION.sub(lambda match: match.group(0).replace(".", ""), text)
    words = [word for word in _NON_ALNUM.split(text) if word]
    return " ".join(word for word in words if word not in LEGAL_FORM_TOKENS)


def name_match_confidence(first: str | None, second: str | None) -> int:
    """Score two company names: 90 exact, 75 containment, 60 word overlap, else 0."""

    left = normalize_company_name(first)
    right = normalize_company_name(second)
    if not left or not right:
        return 0
    if left == right:
        return NAME_EXACT

    shorter, longer = sorted((left, right), key=len)
    if shorter in longer and len(shorter) / len(longer) >= CONTAINMENT_MIN_RATIO:
        return NAME_CONTAINS

    left_words = {word for word in left.split() if len(word) >= JACCARD_MIN_WORD_LENGTH}
    right_words = {word for word in right.split() if len(word) >= JACCARD_MIN_WORD_LENGTH}
    if left_words and right_words:
        jaccard = len(left_words & right_words) / len(left_words | right_words)
        if jaccard >= JACCARD_MIN:
            return NAME_JACCARD
    return 0


def slugify(value: str | None, *, max_length: int = 80) -> str:
    if not value:
        return ""
    text = strip_diacritics(value).lower()
    slug = _NON_ALNUM.sub("-", text).strip("-")
    return slug[:max_length].rstrip("-")


def normalize_email(value: str | None) -> str | None:
    if not value or "@" not in value:
        return None
    return value.strip().lower()


def normalize_phone(value: str | None) -> str | None:
    if not value:
        return None
    digits = "".join(char for char in value if char.isdigit())
    if digits.startswith("40") and len(digits) == 11:
        digits = "0" + digits[2:]
    return digits if len(digits) >= 6 else None


def collapse_whitespace(value: str | None) -> str | None:
    if value is None:
        return None
    collapsed = _WHITESPACE.sub(" ", value).strip()
    return collapsed or None

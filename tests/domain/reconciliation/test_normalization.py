from __future__ import annotations

import pytest

from firmrecon.domain.reconciliation.normalize import (
    NAME_CONTAINS,
    NAME_EXACT,
    NAME_JACCARD,
    collapse_whitespace,
    name_match_confidence,
    normalize_company_name,
    normalize_domain,
    normalize_email,
    normalize_phone,
    registrable_domain,
    slugify,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://www.Alfa.ro/contact?x=1", "alfa.ro"),
        ("alfa.ro:8080", "alfa.ro"),
        ("office@alfa.ro", "alfa.ro"),
        ("WWW.BETA-GRUP.COM.", "beta-grup.com"),
        ("gmail.com", None),
        ("https://example.com", None),
        ("localhost", None),
        ("not a domain", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_domain(raw: str | None, expected: str | None) -> None:
    assert normalize_domain(raw) == expected


def test_registrable_domain_keeps_last_two_labels() -> None:
    assert registrable_domain("shop.alfa.ro") == "alfa.ro"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("S.C. Alfa Construct S.R.L.", "alfa construct"),
        ("ȘTEFAN & FIII SRL", "stefan fiii"),
        ("Beta-Grup SA", "beta grup"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_company_name(raw: str | None, expected: str) -> None:
    assert normalize_company_name(raw) == expected


def test_name_match_exact_after_normalization() -> None:
    assert name_match_confidence("Alfa Construct SRL", "ALFA CONSTRUCT S.R.L.") == NAME_EXACT


def test_name_match_containment() -> None:
    assert name_match_confidence("Alfa Construct Grup", "Alfa Construct Grup Est") == NAME_CONTAINS


def test_name_match_word_overlap() -> None:
    score = name_match_confidence(
        "Transilvania Logistic Bucuresti Services", "Transilvania Logistic Bucuresti Partners"
    )

    assert score == NAME_JACCARD


def test_name_match_unrelated_or_missing() -> None:
    assert name_match_confidence("Alfa Construct", "Gamma Software") == 0
    assert name_match_confidence("Alfa", None) == 0
    assert name_match_confidence("SRL", "SA") == 0


def test_slugify() -> None:
    assert slugify("Ștefan & Fiii S.R.L.") == "stefan-fiii-s-r-l"
    assert slugify("Cluj-Napoca") == "cluj-napoca"
    assert slugify(None) == ""
    assert len(slugify("a" * 200)) == 80


def test_contact_normalizers() -> None:
    assert normalize_email(" Office@Alfa.RO ") == "office@alfa.ro"
    assert normalize_email("no-at-sign") is None
    assert normalize_phone("+40 721 234 567") == "0721234567"
    assert normalize_phone("0721-234-567") == "0721234567"
    assert normalize_phone("123") is None
    assert collapse_whitespace("  Str.   Exemplu\n 1 ") == "Str. Exemplu 1"
    assert collapse_whitespace("   ") is None

"""Turn ANAF payloads into domain verification data and financial years."""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Final

from pydantic import ValidationError as PydanticValidationError

from firmrecon.adapters.sources.tabular import parse_number
from firmrecon.domain.errors import ValidationError
from firmrecon.domain.model import utcnow
from firmrecon.domain.ports import VerificationData
from firmrecon.domain.reconciliation.financials import FinancialYear

from .schema import AnafVerificationResponse

if TYPE_CHECKING:
    from .schema import AnafCompanyRecord

MAX_REVENUE: Final[float] = 1e12
MAX_ABS_PROFIT: Final[float] = 1e12
MAX_EMPLOYEES: Final[int] = 1_000_000
MIN_YEAR: Final[int] = 1900
MAX_YEAR: Final[int] = 2100

YEAR_KEYS: Final[tuple[str, ...]] = ("an", "year", "anul", "data")
REVENUE_KEYS: Final[tuple[str, ...]] = (
    "cifra_afaceri",
    "venituri",
    "CA",
    "cifraAfaceri",
    "venituriTotal",
    "revenue",
)
PROFIT_KEYS: Final[tuple[str, ...]] = (
    "profit",
    "pierdere",
    "profitNet",
    "pierdereNeta",
    "netIncome",
)
EMPLOYEE_KEYS: Final[tuple[str, ...]] = (
    "angajati",
    "numar_angajati",
    "numAngajati",
    "employees",
    "employeeCount",
)
YEAR_LIST_KEYS: Final[tuple[str, ...]] = ("situatii_financiare", "years")


def verification_confidence(record: AnafCompanyRecord) -> int:
    score = 60
    if record.official_name:
        score += 20
    if record.adresa:
        score += 10
    if record.data_inregistrare or record.data_inceput_tva:
        score += 10
    return min(100, score)


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def parse_verification(
    payload: object, *, cui: str, verified_at: datetime | None = None
) -> VerificationData | None:
    """Return verification data for ``cui``, or ``None`` when the registry has no match.

    Raises ``ValidationError`` if the payload is not a recognizable ANAF response.
    """

    try:
        response = AnafVerificationResponse.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid ANAF verification response: {exc}") from exc
    if not response.found:
        return None

    record = next((item for item in response.found if item.cui == cui), response.found[0])
    raw = record.model_dump(by_alias=True, exclude_none=True)
    return VerificationData(
        cui=cui,
        official_name=record.official_name,
        address=record.adresa,
        is_active=record.is_active,
        is_vat_registered=record.is_vat_registered,
        registration_date=_parse_date(record.data_inregistrare or record.data_inceput_tva),
        confidence=verification_confidence(record),
        verified_at=verified_at or utcnow(),
        raw=raw,
    )


def parse_numeric(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        number = parse_number(value)
        return number if number is not None and math.isfinite(number) else None
    return None


def extract_year(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if MIN_YEAR <= value <= MAX_YEAR else None
    if isinstance(value, str):
        parsed = _parse_date(value)
        if parsed is not None:
            return parsed.year
        try:
            year = int(value.strip()[:4])
        except ValueError:
            return None
        return year if MIN_YEAR <= year <= MAX_YEAR else None
    return None


def _first(data: Mapping[str, Any], keys: tuple[str, ...]) -> object:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _clamp(value: float | None, low: float, high: float) -> float | None:
    if value is None:
        return None
    return min(max(value, low), high)


def _financial_year(data: Mapping[str, Any], default_year: int) -> FinancialYear | None:
    revenue = _clamp(parse_numeric(_first(data, REVENUE_KEYS)), 0, MAX_REVENUE)
    profit = _clamp(parse_numeric(_first(data, PROFIT_KEYS)), -MAX_ABS_PROFIT, MAX_ABS_PROFIT)
    employees = _clamp(parse_numeric(_first(data, EMPLOYEE_KEYS)), 0, MAX_EMPLOYEES)
    if revenue is None and profit is None and employees is None:
        return None
    return FinancialYear(
        year=extract_year(_first(data, YEAR_KEYS)) or default_year,
        revenue=revenue,
        profit=profit,
        employees=int(employees) if employees is not None else None,
        currency=str(data.get("currency") or data.get("moneda") or "RON"),
    )


def parse_financials(payload: object, *, today: date | None = None) -> list[FinancialYear]:
    """Parse one statement object, plus any per-year list nested inside it.

    Values are clamped to plausible ranges. A statement without a year is attributed to
    the previous calendar year. Raises ``ValidationError`` when nothing usable is found.
    """

    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, Mapping):
        raise ValidationError("Invalid ANAF financials response: not an object")

    default_year = (today or utcnow().date()).year - 1
    years: dict[int, FinancialYear] = {}
    top_level = _financial_year(payload, default_year)
    if top_level is not None:
        years[top_level.year] = top_level
        default_year = top_level.year

    nested = _first(payload, YEAR_LIST_KEYS)
    if isinstance(nested, list):
        for item in nested:
            if isinstance(item, Mapping):
                parsed = _financial_year(item, default_year)
                if parsed is not None:
                    years.setdefault(parsed.year, parsed)

    if not years:
        raise ValidationError("No financial data found in ANAF response")
    return [years[year] for year in sorted(years)]

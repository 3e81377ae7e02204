"""Field-level conflict policy: who may overwrite what.

The rule is deterministic given the field's recorded provenance and the incoming
source/confidence, so re-applying the same patch yields the same outcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from firmrecon.domain.model import SourceId

if TYPE_CHECKING:
    from firmrecon.domain.model import FieldProvenance

SOURCE_PRIORITY: Final[dict[SourceId, int]] = {
    SourceId.ANAF_VERIFY: 100,
    SourceId.ANAF_FINANCIALS: 100,
    SourceId.USER_APPROVED: 90,
    SourceId.EU_FUNDS: 70,
    SourceId.SEAP: 60,
    SourceId.NATIONAL: 50,
    SourceId.THIRD_PARTY: 40,
    SourceId.ENRICHMENT: 30,
}

MIN_ACCEPT_DESCRIPTIVE: Final[int] = 30
MIN_ACCEPT_CORE: Final[int] = 40
HIGH_CONFIDENCE: Final[int] = 70
VERIFIED: Final[int] = 90

# Accepted whenever the current value is empty, never otherwise.
ENRICHMENT_ONLY_FIELDS: Final[frozenset[str]] = frozenset(
    {"description_short", "email", "phone", "socials"}
)
DESCRIPTIVE_FIELDS: Final[frozenset[str]] = ENRICHMENT_ONLY_FIELDS | {
    "website",
    "address",
    "trade_name",
}
MATERIAL_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "domain",
        "industry_slug",
        "county_slug",
        "employees",
        "revenue_latest",
        "profit_latest",
    }
)


class FieldVerdict(StrEnum):
    APPROVED_PROTECTED = "approved_protected"
    FILLED_EMPTY = "filled_empty"
    BELOW_MIN_ACCEPT = "below_min_accept"
    ENRICHMENT_ONLY = "enrichment_only"
    HIGHER_PRIORITY = "higher_priority"
    HIGHER_CONFIDENCE = "higher_confidence"
    NOT_MORE_CONFIDENT = "not_more_confident"
    LOWER_PRIORITY = "lower_priority"


ACCEPTING_VERDICTS: Final[frozenset[FieldVerdict]] = frozenset(
    {FieldVerdict.FILLED_EMPTY, FieldVerdict.HIGHER_PRIORITY, FieldVerdict.HIGHER_CONFIDENCE}
)


@dataclass(slots=True, frozen=True)
class FieldDecision:
    field: str
    verdict: FieldVerdict

    @property
    def accepted(self) -> bool:
        return self.verdict in ACCEPTING_VERDICTS


def source_priority(source_id: SourceId) -> int:
    return SOURCE_PRIORITY.get(source_id, 0)


def min_accept_for(field: str) -> int:
    return MIN_ACCEPT_DESCRIPTIVE if field in DESCRIPTIVE_FIELDS else MIN_ACCEPT_CORE


def is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, dict | list | tuple | set):
        return not value
    return False


def decide_field_update(
    *,
    field: str,
    current_value: object,
    current: FieldProvenance | None,
    source_id: SourceId,
    confidence: int,
) -> FieldDecision:
    incoming_priority = source_priority(source_id)

    if (
        current is not None
        and current.approved
        and incoming_priority < SOURCE_PRIORITY[SourceId.USER_APPROVED]
    ):
        return FieldDecision(field, FieldVerdict.APPROVED_PROTECTED)

    if is_empty(current_value):
        if field in ENRICHMENT_ONLY_FIELDS or confidence >= min_accept_for(field):
            return FieldDecision(field, FieldVerdict.FILLED_EMPTY)
        return FieldDecision(field, FieldVerdict.BELOW_MIN_ACCEPT)

    if field in ENRICHMENT_ONLY_FIELDS:
        return FieldDecision(field, FieldVerdict.ENRICHMENT_ONLY)

    # A value with no recorded provenance predates tracking and ranks below every source.
    current_priority = source_priority(current.source_id) if current is not None else 0
    if incoming_priority > current_priority:
        return FieldDecision(field, FieldVerdict.HIGHER_PRIORITY)
    if incoming_priority == current_priority:
        current_confidence = current.confidence if current is not None else 0
        if confidence > current_confidence:
            return FieldDecision(field, FieldVerdict.HIGHER_CONFIDENCE)
        return FieldDecision(field, FieldVerdict.NOT_MORE_CONFIDENT)
    return FieldDecision(field, FieldVerdict.LOWER_PRIORITY)

"""Duplicate detection over canonical companies.

Pairs are only compared inside blocks (shared tax id, county, industry, registrable
domain or leading name token) so the scan never degenerates into all-pairs fuzzy
comparison. Oversized blocks, other than tax-id blocks, are skipped and logged.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from itertools import combinations
from typing import TYPE_CHECKING, Any, Final

from firmrecon.config.dedup import DEFAULT_MAX_BLOCK_SIZE, DEFAULT_MIN_CONFIDENCE
from firmrecon.domain.cui import normalize_cui
from firmrecon.domain.model import MatchReason, MergeCandidate

from .normalize import (
    NAME_CONTAINS,
    NAME_JACCARD,
    name_match_confidence,
    normalize_company_name,
    normalize_domain,
    normalize_email,
    normalize_phone,
    registrable_domain,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from firmrecon.domain.model import Company

log = logging.getLogger(__name__)

TAX_ID_EXACT_CONFIDENCE: Final[int] = 95
DOMAIN_EXACT_CONFIDENCE: Final[int] = 85
DOMAIN_SUFFIX_CONFIDENCE: Final[int] = 70
CONTACT_CONFIDENCE: Final[int] = 80
COUNTY_INDUSTRY_BONUS: Final[int] = 50

DIFF_FIELDS: Final[tuple[str, ...]] = (
    "name",
    "cui",
    "domain",
    "county_slug",
    "industry_slug",
    "employees",
    "revenue_latest",
    "email",
    "phone",
)

type BlockKey = tuple[str, str]


@dataclass(slots=True, frozen=True)
class PairScore:
    confidence: int
    reasons: tuple[MatchReason, ...]


def score_pair(first: Company, second: Company) -> PairScore | None:
    """Score one pair, or ``None`` when the pair must never be proposed."""

    first_cui = normalize_cui(first.cui).value
    second_cui = normalize_cui(second.cui).value
    if first_cui and second_cui:
        if first_cui == second_cui:
            return PairScore(TAX_ID_EXACT_CONFIDENCE, (MatchReason.TAX_ID_EXACT,))
        return None

    signals: list[tuple[int, MatchReason]] = []

    name_score = name_match_confidence(first.name, second.name)
    if name_score >= NAME_CONTAINS:
        signals.append((name_score, MatchReason.NAME_HIGH))
    elif name_score >= NAME_JACCARD:
        signals.append((name_score, MatchReason.NAME_MEDIUM))

    first_domain = normalize_domain(first.domain)
    second_domain = normalize_domain(second.domain)
    if first_domain and second_domain:
        if first_domain == second_domain:
            signals.append((DOMAIN_EXACT_CONFIDENCE, MatchReason.DOMAIN_EXACT))
        elif first_domain.endswith("." + second_domain) or second_domain.endswith(
            "." + first_domain
        ):
            signals.append((DOMAIN_SUFFIX_CONFIDENCE, MatchReason.DOMAIN_HIGH))

    if _same_contact(first, second):
        signals.append((CONTACT_CONFIDENCE, MatchReason.CONTACT_MATCH))

    signals.sort(key=lambda signal: signal[0], reverse=True)
    confidence = signals[0][0] if signals else 0
    reasons = [reason for _, reason in signals]

    if (
        name_score >= NAME_JACCARD
        and first.county_slug
        and first.county_slug == second.county_slug
        and first.industry_slug
        and first.industry_slug == second.industry_slug
    ):
        confidence += COUNTY_INDUSTRY_BONUS
        reasons.append(MatchReason.COUNTY_INDUSTRY)

    if not reasons:
        return None
    return PairScore(min(100, confidence), tuple(reasons))


def _same_contact(first: Company, second: Company) -> bool:
    first_phone = normalize_phone(first.phone)
    if first_phone and first_phone == normalize_phone(second.phone):
        return True
    first_email = normalize_email(first.email)
    return bool(first_email and first_email == normalize_email(second.email))


def block_keys(company: Company) -> set[BlockKey]:
    keys: set[BlockKey] = set()
    cui = normalize_cui(company.cui).value
    if cui:
        keys.add(("cui", cui))
    if company.county_slug:
        keys.add(("county", company.county_slug))
    if company.industry_slug:
        keys.add(("industry", company.industry_slug))
    domain = normalize_domain(company.domain)
    if domain:
        keys.add(("domain", registrable_domain(domain)))
    name = normalize_company_name(company.name)
    if name:
        keys.add(("name", name.split()[0]))
    return keys


def company_diff(source: Company, target: Company) -> dict[str, Any]:
    return {
        "source": {name: getattr(source, name) for name in DIFF_FIELDS},
        "target": {name: getattr(target, name) for name in DIFF_FIELDS},
    }


@dataclass(slots=True)
class DedupScanner:
    min_confidence: int = DEFAULT_MIN_CONFIDENCE
    max_block_size: int = DEFAULT_MAX_BLOCK_SIZE
    skipped_blocks: list[BlockKey] = field(default_factory=list)

    def blocks(self, companies: Iterable[Company]) -> dict[BlockKey, list[Company]]:
        grouped: dict[BlockKey, list[Company]] = defaultdict(list)
        for company in companies:
            if company.is_demo or company.merged_into is not None:
                continue
            for key in block_keys(company):
                grouped[key].append(company)
        return {key: members for key, members in grouped.items() if len(members) > 1}

    def scan(
        self,
        companies: Iterable[Company],
        *,
        skip_pairs: set[frozenset[UUID]] | None = None,
    ) -> list[MergeCandidate]:
        """Propose merge candidates; pairs in ``skip_pairs`` are already under review."""

        seen: set[frozenset[UUID]] = set(skip_pairs or ())
        candidates: list[MergeCandidate] = []
        self.skipped_blocks = []

        for key, members in self.blocks(companies).items():
            if key[0] != "cui" and len(members) > self.max_block_size:
                log.warning("Skipping dedup block %s with %s members", key, len(members))
                self.skipped_blocks.append(key)
                continue
            for first, second in combinations(members, 2):
                pair = frozenset((first.id, second.id))
                if pair in seen:
                    continue
                seen.add(pair)
                score = score_pair(first, second)
                if score is None or score.confidence < self.min_confidence:
                    continue
                source, target = _orient(first, second)
                candidates.append(
                    MergeCandidate(
                        source_id=source.id,
                        target_id=target.id,
                        confidence=score.confidence,
                        reasons=list(score.reasons),
                        diff=company_diff(source, target),
                    )
                )

        candidates.sort(key=lambda candidate: candidate.confidence, reverse=True)
        return candidates


def _orient(first: Company, second: Company) -> tuple[Company, Company]:
    # The older record is proposed as the merge target.
    if (second.created_at, str(second.id)) < (first.created_at, str(first.id)):
        return first, second
    return second, first

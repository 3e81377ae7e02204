"""Identity resolution of candidate records against canonical companies.

Lookup strategies, in strictly descending trust:

1. exact tax id (authoritative; short-circuits everything else)
2. normalized domain within the same county

Name similarity is deliberately absent here: it only feeds duplicate review
(``dedup``), never live matching. A company whose tax id differs from the record's
is never a match, whatever else agrees.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from firmrecon.domain.cui import normalize_cui
from firmrecon.domain.model import AliasType

from .contracts import (
    ConflictEntityResolution,
    EntityResolution,
    LookupKey,
    MatchKind,
    NewEntityResolution,
    ResolvedEntityResolution,
)
from .normalize import normalize_domain, slugify

if TYPE_CHECKING:
    from collections.abc import Sequence

    from firmrecon.domain.model import Company, SourceCandidateRecord
    from firmrecon.domain.ports import AliasRepository, CompanyRepository

log = logging.getLogger(__name__)

MAX_REDIRECT_HOPS: Final[int] = 5


def identity_lookup_keys(record: SourceCandidateRecord) -> list[LookupKey]:
    """Ordered lookup keys for ``record``, most trusted first."""

    keys: list[LookupKey] = []
    cui = normalize_cui(record.cui).value
    if cui:
        keys.append(("cui", cui))
    domain = normalize_domain(record.domain or record.website)
    county = slugify(record.county)
    if domain and county:
        keys.append(("domain_county", domain, county))
    return keys


def conflicting_tax_ids(first: str | None, second: str | None) -> bool:
    left = normalize_cui(first).value
    right = normalize_cui(second).value
    return left is not None and right is not None and left != right


def choose_best_match(matches: Sequence[Company]) -> Company | None:
    """Prefer a company carrying a tax id; otherwise keep first-found order."""

    for company in matches:
        if company.cui:
            return company
    return matches[0] if matches else None


@dataclass(slots=True)
class IdentityResolver:
    companies: CompanyRepository
    aliases: AliasRepository | None = None

    def resolve(self, record: SourceCandidateRecord) -> EntityResolution:
        keys = identity_lookup_keys(record)
        record_cui = normalize_cui(record.cui).value

        for key in keys:
            if key[0] == "cui":
                company = self._lookup_cui(key[1])
                if company is not None:
                    return ResolvedEntityResolution(
                        target=company,
                        match_kind=MatchKind.EXACT,
                        matched_key=key,
                        reason="tax_id_match",
                    )
                continue

            _, domain, county = key
            matches = self.companies.find_by_domain(domain, county_slug=county)
            if not matches:
                continue
            compatible = [
                company
                for company in matches
                if not conflicting_tax_ids(record_cui, company.cui)
            ]
            if not compatible:
                log.info(
                    "Domain %s matched only companies with a different tax id than %s",
                    domain,
                    record_cui,
                )
                return ConflictEntityResolution(
                    candidates=tuple(matches),
                    matched_key=key,
                    reason="tax_id_mismatch",
                )
            best = choose_best_match(compatible)
            if best is not None:
                return ResolvedEntityResolution(
                    target=best,
                    match_kind=MatchKind.HEURISTIC,
                    matched_key=key,
                    reason="domain_county_match",
                )

        return NewEntityResolution(reason="no_match")

    def _lookup_cui(self, cui: str) -> Company | None:
        company = self.companies.get_by_cui(cui)
        if company is None and self.aliases is not None:
            alias_owner = self.aliases.resolve(cui, AliasType.CUI)
            company = self.companies.get(alias_owner) if alias_owner else None
        return self._follow_redirects(company)

    def _follow_redirects(self, company: Company | None) -> Company | None:
        hops = 0
        while company is not None and company.merged_into is not None:
            if hops >= MAX_REDIRECT_HOPS:
                log.warning("Redirect chain too long starting at %s", company.id)
                return None
            company = self.companies.get(company.merged_into)
            hops += 1
        return company

"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SourceId(StrEnum):
    """Systems that may supply company data, ordered here by decreasing trust."""

    ANAF_VERIFY = "anaf_verify"
    USER_APPROVED = "user_approved"
    EU_FUNDS = "eu_funds"
    SEAP = "seap"
    THIRD_PARTY = "third_party"
    ENRICHMENT = "enrichment"
    ANAF_FINANCIALS = "anaf_financials"
    NATIONAL = "national"


class MergeStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class MatchReason(StrEnum):
    """Tags explaining why two companies were proposed as duplicates."""

    TAX_ID_EXACT = "TAX_ID_EXACT"
    DOMAIN_EXACT = "DOMAIN_EXACT"
    DOMAIN_HIGH = "DOMAIN_HIGH"
    NAME_HIGH = "NAME_HIGH"
    NAME_MEDIUM = "NAME_MEDIUM"
    COUNTY_INDUSTRY = "COUNTY_INDUSTRY"
    CONTACT_MATCH = "CONTACT_MATCH"


class Visibility(StrEnum):
    PUBLIC = "public"
    HIDDEN = "hidden"


class AliasType(StrEnum):
    NAME = "name"
    SLUG = "slug"
    DOMAIN = "domain"
    CUI = "cui"


class VerificationState(StrEnum):
    UNCACHED = "uncached"
    REQUESTING = "requesting"
    SUCCESS = "success"
    ERROR = "error"
    RATE_LIMITED = "rate_limited"


class JobStatus(StrEnum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ALREADY_RUNNING = "already_running"

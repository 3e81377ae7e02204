"""Configuration for the ANAF tax-registry services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from .env import env_float, env_int, optional_env
from .http_resilience import ResilienceConfig, RetryPolicy, uncached_resilience

ANAF_VERIFY_URL: Final[str] = "https://webservicesp.anaf.ro/PlatitorTvaRest/api/v8/ws/tva"
ANAF_FINANCIALS_URL: Final[str] = "https://webservicesp.anaf.ro/bilant"
ANAF_TIMEOUT_SECONDS: Final[float] = 10.0


def _anaf_resilience() -> ResilienceConfig:
    # Retries are driven by the verification retry wrapper, not by the transport.
    return uncached_resilience(
        "anaf", timeout_seconds=ANAF_TIMEOUT_SECONDS, retry=RetryPolicy.disabled()
    )


@dataclass(frozen=True, slots=True)
class AnafConfig:
    """Holds ANAF endpoint, spacing, caching and retry settings."""

    verify_url: str = ANAF_VERIFY_URL
    financials_url: str = ANAF_FINANCIALS_URL
    min_request_spacing_ms: int = 1000
    financials_spacing_ms: int = 2000
    rate_limit_ttl_seconds: int = 60
    cache_ttl_days: int = 90
    verification_ttl_days: int = 30
    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 5.0
    backoff_factor: float = 2.0
    max_response_bytes: int = 1024 * 1024
    dead_letter_cap: int = 500
    resilience: ResilienceConfig = field(default_factory=_anaf_resilience)


def get_anaf_config() -> AnafConfig:
    return AnafConfig(
        verify_url=optional_env("ANAF_API_URL", ANAF_VERIFY_URL) or ANAF_VERIFY_URL,
        financials_url=optional_env("ANAF_FINANCIALS_URL", ANAF_FINANCIALS_URL)
        or ANAF_FINANCIALS_URL,
        min_request_spacing_ms=env_int("ANAF_MIN_SPACING_MS", 1000),
        financials_spacing_ms=env_int("ANAF_FINANCIALS_SPACING_MS", 2000),
        verification_ttl_days=env_int("ANAF_VERIFICATION_TTL_DAYS", 30),
        max_delay_seconds=env_float("ANAF_MAX_RETRY_DELAY_SECONDS", 5.0),
    )

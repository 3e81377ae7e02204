"""Endpoint configuration for bulk company sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Literal

from .env import optional_env, require_env_vars
from .errors import MissingConfigurationError
from .http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    uncached_resilience,
)

SOURCE_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_MAX_RESPONSE_BYTES: Final[int] = 50 * 1024 * 1024

type SourceFormat = Literal["csv", "json"]


def _bulk_resilience(name: str) -> ResilienceConfig:
    # Bulk exports are large single downloads: few retries.
    return uncached_resilience(
        name,
        timeout_seconds=SOURCE_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=2, backoff_factor=1.0, max_backoff_wait=10.0),
    )


@dataclass(frozen=True, slots=True)
class SourceEndpointConfig:
    """Where a source adapter downloads its records from."""

    url: str
    format: SourceFormat = "csv"
    max_bytes: int = DEFAULT_MAX_RESPONSE_BYTES
    api_key: str | None = None
    resilience: ResilienceConfig = field(default_factory=lambda: _bulk_resilience("source"))


def get_seap_config() -> SourceEndpointConfig:
    values = require_env_vars(("SEAP_CSV_URL",))
    return SourceEndpointConfig(
        url=values["SEAP_CSV_URL"],
        format="csv",
        resilience=_bulk_resilience("seap"),
    )


def get_eu_funds_config() -> SourceEndpointConfig:
    csv_url = optional_env("EU_FUNDS_CSV_URL")
    if csv_url:
        return SourceEndpointConfig(
            url=csv_url, format="csv", resilience=_bulk_resilience("eu_funds")
        )
    json_url = optional_env("EU_FUNDS_JSON_URL")
    if json_url:
        return SourceEndpointConfig(
            url=json_url, format="json", resilience=_bulk_resilience("eu_funds")
        )
    raise MissingConfigurationError(
        "Missing configuration for: EU_FUNDS_CSV_URL or EU_FUNDS_JSON_URL"
    )


def get_third_party_config() -> SourceEndpointConfig:
    values = require_env_vars(("THIRD_PARTY_API_URL",))
    return SourceEndpointConfig(
        url=values["THIRD_PARTY_API_URL"],
        format="json",
        max_bytes=5 * 1024 * 1024,
        api_key=optional_env("THIRD_PARTY_API_KEY"),
        resilience=ResilienceConfig(
            name="third_party",
            timeout_seconds=SOURCE_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=60, per_seconds=60.0),
            cache=CacheConfig(backend="memory", default_ttl_seconds=3600.0),
        ),
    )


def get_stub_provider_path() -> Path | None:
    value = optional_env("PROVIDER_STUB_FILE")
    return Path(value).expanduser() if value else None

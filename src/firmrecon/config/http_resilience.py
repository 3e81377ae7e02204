"""HTTP resilience settings shared by the source adapters and the ANAF clients.

Each outbound integration gets one ``ResilienceConfig``: transport retries, an optional
client-side rate limit and an optional response cache. Response size caps live with the
endpoint configuration because they differ per payload, not per host.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Literal

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping

ResponseHook = Callable[[httpx.Response], Awaitable[None] | None]
ShouldCacheHook = Callable[[object], bool]

DEFAULT_USER_AGENT: Final[str] = "firmrecon/0.1 (+company-registry-ingestion)"
RETRYABLE_STATUSES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})


class RetryablePayloadError(httpx.HTTPError):
    """Raised by a response hook when a 200 body still means "try again later"."""

    def __init__(self, message: str, *, response: httpx.Response) -> None:
        super().__init__(message)
        self.response = response


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    total: int = 4
    backoff_factor: float = 0.5
    max_backoff_wait: float = 60.0
    respect_retry_after_header: bool = True
    # ANAF verification is a POST lookup without side effects.
    allowed_methods: frozenset[str] = field(
        default_factory=lambda: frozenset({"GET", "HEAD", "OPTIONS", "POST"})
    )
    status_forcelist: frozenset[int] = RETRYABLE_STATUSES
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
        RetryablePayloadError,
    )
    backoff_jitter: float = 1.0

    @classmethod
    def disabled(cls) -> RetryPolicy:
        return cls(total=0)


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class CacheConfig:
    enabled: bool = True
    backend: Literal["sqlite", "memory"] = "memory"
    sqlite_path: str | None = None
    default_ttl_seconds: float | None = None
    refresh_ttl_on_access: bool = True
    should_cache: ShouldCacheHook | None = None


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: CacheConfig | None = field(default_factory=CacheConfig)
    response_hooks: tuple[ResponseHook, ...] = field(default_factory=tuple)
    default_headers: Mapping[str, str] | None = field(
        default_factory=lambda: {"User-Agent": DEFAULT_USER_AGENT}
    )


def uncached_resilience(
    name: str, *, timeout_seconds: float, retry: RetryPolicy | None = None
) -> ResilienceConfig:
    """Settings for bulk exports and registry lookups, which are never HTTP-cached."""

    return ResilienceConfig(
        name=name,
        timeout_seconds=timeout_seconds,
        retry=retry if retry is not None else RetryPolicy(),
        cache=None,
    )

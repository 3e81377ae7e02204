"""HTTP clients for the ANAF VAT registry and financial statements services."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from logging import getLogger
from typing import TYPE_CHECKING, Final

from firmrecon.adapters.http_resilience import ResilientClient, UpstreamError
from firmrecon.config.anaf import get_anaf_config
from firmrecon.domain.cui import normalize_cui
from firmrecon.domain.errors import CapacityError, TransientError, ValidationError
from firmrecon.domain.model import VerificationState, utcnow
from firmrecon.domain.ports import VerificationData, VerificationOutcome

from .parse import parse_financials, parse_verification

if TYPE_CHECKING:
    from firmrecon.config.anaf import AnafConfig
    from firmrecon.config.http_resilience import ResilienceConfig
    from firmrecon.domain.ports import CompanyVerifier, FinancialStatementsSource, KeyValueStore
    from firmrecon.domain.reconciliation.financials import FinancialYear

log = getLogger(__name__)

LAST_REQUEST_KEY: Final[str] = "anaf:last_request"
FINANCIALS_LAST_REQUEST_KEY: Final[str] = "anaf:ws:last_request"
SECONDS_PER_DAY: Final[int] = 24 * 60 * 60


def verification_cache_key(cui: str) -> str:
    return f"anaf:verification:{cui}"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class AnafAPIError(RuntimeError):
    """Raised when ANAF answers with something that is not a usable payload."""


def _decode(body: bytes) -> object:
    try:
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise AnafAPIError(f"ANAF returned invalid JSON: {exc}") from exc


@dataclass(slots=True)
class AnafVerificationClient:
    """Verifies one CUI per call against the public VAT registry.

    Successful answers are cached in the key-value store; requests from every worker share
    one spacing slot, and a caller that arrives too early is told to retry instead of
    waiting. Dry runs still claim the slot and fill the cache: both describe the registry,
    not our company records, and a dry run sends the same request.
    """

    store: KeyValueStore
    config: AnafConfig = field(default_factory=get_anaf_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    today: Callable[[], date] = field(default=lambda: utcnow().date())

    def verify(self, cui: str) -> VerificationOutcome:
        normalized = normalize_cui(cui)
        if not normalized.valid or normalized.value is None:
            return VerificationOutcome(
                state=VerificationState.ERROR, cui=cui, error=f"Invalid CUI: {normalized.error}"
            )
        cui = normalized.value

        cached = self.cached(cui)
        if cached is not None:
            return VerificationOutcome(
                state=VerificationState.SUCCESS, cui=cui, data=cached, cached=True
            )

        if not self.store.claim_interval(
            LAST_REQUEST_KEY,
            min_interval_ms=self.config.min_request_spacing_ms,
            ttl_seconds=self.config.rate_limit_ttl_seconds,
        ):
            log.debug("ANAF spacing slot taken, %s rate limited", cui)
            return VerificationOutcome(
                state=VerificationState.RATE_LIMITED,
                cui=cui,
                error="Rate limit exceeded",
                retryable=True,
                retry_after=self.config.min_request_spacing_ms / 1000,
            )

        log.debug("Requesting ANAF verification for %s", cui)
        try:
            body = asyncio.run(self._request_async(cui))
            data = parse_verification(_decode(body), cui=cui)
        except TransientError as exc:
            return VerificationOutcome(
                state=VerificationState.ERROR,
                cui=cui,
                error=str(exc),
                retryable=True,
                retry_after=exc.retry_after,
            )
        except (AnafAPIError, CapacityError, UpstreamError, ValidationError) as exc:
            log.warning("ANAF verification for %s failed: %s", cui, exc)
            return VerificationOutcome(state=VerificationState.ERROR, cui=cui, error=str(exc))

        if data is None:
            return VerificationOutcome(
                state=VerificationState.ERROR, cui=cui, error="CUI not found in ANAF registry"
            )
        self.store.set(
            verification_cache_key(cui),
            data.to_dict(),
            ttl_seconds=self.config.cache_ttl_days * SECONDS_PER_DAY,
        )
        return VerificationOutcome(state=VerificationState.SUCCESS, cui=cui, data=data)

    def cached(self, cui: str) -> VerificationData | None:
        payload = self.store.get(verification_cache_key(cui))
        if not isinstance(payload, dict):
            return None
        try:
            return VerificationData.from_dict(payload)
        except (KeyError, TypeError, ValueError):
            log.warning("Discarding unreadable cached verification for %s", cui)
            self.store.delete(verification_cache_key(cui))
            return None

    async def _request_async(self, cui: str) -> bytes:
        body = [{"cui": int(cui), "data": self.today().isoformat()}]
        async with self.client_factory(self.config.resilience) as client:
            return await client.download(
                "POST",
                self.config.verify_url,
                max_bytes=self.config.max_response_bytes,
                json=body,
            )


@dataclass(slots=True)
class AnafFinancialsClient:
    """Fetches published yearly financial statements for one CUI."""

    store: KeyValueStore
    config: AnafConfig = field(default_factory=get_anaf_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    today: Callable[[], date] = field(default=lambda: utcnow().date())

    def fetch(self, cui: str) -> list[FinancialYear]:
        normalized = normalize_cui(cui)
        if not normalized.valid or normalized.value is None:
            raise ValidationError(f"Invalid CUI: {cui}", field="cui")

        if not self.store.claim_interval(
            FINANCIALS_LAST_REQUEST_KEY,
            min_interval_ms=self.config.financials_spacing_ms,
            ttl_seconds=self.config.rate_limit_ttl_seconds,
        ):
            raise TransientError(
                "ANAF financials rate limit exceeded",
                retry_after=self.config.financials_spacing_ms / 1000,
            )

        body = asyncio.run(self._request_async(normalized.value))
        try:
            payload = _decode(body)
        except AnafAPIError as exc:
            raise ValidationError(str(exc)) from exc
        return parse_financials(payload, today=self.today())

    async def _request_async(self, cui: str) -> bytes:
        params = {"an": self.today().year - 1, "cui": cui}
        async with self.client_factory(self.config.resilience) as client:
            return await client.download(
                "GET",
                self.config.financials_url,
                max_bytes=self.config.max_response_bytes,
                params=params,
            )


if TYPE_CHECKING:

    def _protocol_checks(store: KeyValueStore) -> tuple[CompanyVerifier, FinancialStatementsSource]:
        return AnafVerificationClient(store), AnafFinancialsClient(store)

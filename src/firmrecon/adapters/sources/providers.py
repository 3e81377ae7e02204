"""Third-party bulk providers and the adapter that exposes them as a source."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError as PydanticValidationError

from firmrecon.adapters.http_resilience import ResilientClient
from firmrecon.config.errors import MissingConfigurationError
from firmrecon.config.sources import get_stub_provider_path, get_third_party_config
from firmrecon.domain.cui import normalize_cui
from firmrecon.domain.errors import ValidationError
from firmrecon.domain.model import SourceCandidateRecord, SourceId
from firmrecon.domain.ports import DiscoveryBatch, HealthStatus

from .schema import ProviderCompany, ProviderPagePayload
from .tabular import NOT_CONFIGURED, parse_cursor

if TYPE_CHECKING:
    from pathlib import Path

    from firmrecon.config.http_resilience import ResilienceConfig
    from firmrecon.config.sources import SourceEndpointConfig

log = getLogger(__name__)

DEFAULT_PROVIDER_CONFIDENCE: Final[int] = 40
STUB_PROVIDER_ID: Final[str] = "provider_stub"
HTTP_PROVIDER_ID: Final[str] = "provider_http"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class ProviderPage:
    """One page of raw provider items.

    ``item_cursors[i]``, when the provider can express it, resumes right after
    ``items[i]``.
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    next_cursor: str | None = None
    item_cursors: list[str] | None = None


@runtime_checkable
class IngestionProvider(Protocol):
    @property
    def provider_id(self) -> str: ...

    @property
    def display_name(self) -> str: ...

    def fetch_page(self, cursor: str | None, limit: int) -> ProviderPage: ...

    def normalize(self, item: dict[str, Any]) -> ProviderCompany | None: ...

    def health_check(self) -> HealthStatus: ...


def normalize_provider_item(item: dict[str, Any]) -> ProviderCompany | None:
    """Validate an item; drop it unless it carries a valid CUI and a name."""

    try:
        company = ProviderCompany.model_validate(item)
    except PydanticValidationError as exc:
        log.debug("Dropping malformed provider item: %s", exc)
        return None
    cui = normalize_cui(company.cui)
    if not cui.valid or not company.name:
        return None
    return company.model_copy(update={"cui": cui.value})


@dataclass(slots=True)
class StubProvider:
    """Deterministic provider over an in-memory list or a local JSON file."""

    items: list[dict[str, Any]] | None = None
    path: Path | None = None
    provider_id: str = STUB_PROVIDER_ID
    display_name: str = "Stub provider (offline)"

    def _load(self) -> list[dict[str, Any]]:
        if self.items is not None:
            return self.items
        path = self.path or get_stub_provider_path()
        if path is None:
            log.warning("PROVIDER_STUB_FILE not set, using an empty dataset")
            self.items = []
            return self.items
        payload = ProviderPagePayload.model_validate(json.loads(path.read_text(encoding="utf-8")))
        self.items = payload.items
        log.info("Loaded %s stub provider items from %s", len(self.items), path)
        return self.items

    def fetch_page(self, cursor: str | None, limit: int) -> ProviderPage:
        items = self._load()
        start = parse_cursor(cursor)
        end = min(start + limit, len(items))
        return ProviderPage(
            items=items[start:end],
            next_cursor=str(end) if end < len(items) else None,
            item_cursors=[str(index + 1) for index in range(start, end)],
        )

    def normalize(self, item: dict[str, Any]) -> ProviderCompany | None:
        return normalize_provider_item(item)

    def health_check(self) -> HealthStatus:
        if self.items is None and self.path is None and get_stub_provider_path() is None:
            return HealthStatus(available=False, reason=NOT_CONFIGURED)
        return HealthStatus(available=True)


@dataclass(slots=True)
class HttpJsonProvider:
    """Generic paged JSON API: ``GET url?cursor=..&limit=..`` returning items and a cursor."""

    config_loader: Callable[[], SourceEndpointConfig] = get_third_party_config
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    provider_id: str = HTTP_PROVIDER_ID
    display_name: str = "Third-party HTTP provider"

    def fetch_page(self, cursor: str | None, limit: int) -> ProviderPage:
        config = self.config_loader()
        body = asyncio.run(self._fetch_async(config, cursor, limit))
        try:
            payload = ProviderPagePayload.model_validate_json(body)
        except PydanticValidationError as exc:
            raise ValidationError(f"{self.provider_id} returned an invalid page: {exc}") from exc
        return ProviderPage(items=payload.items, next_cursor=payload.next_cursor)

    def normalize(self, item: dict[str, Any]) -> ProviderCompany | None:
        return normalize_provider_item(item)

    def health_check(self) -> HealthStatus:
        try:
            config = self.config_loader()
        except MissingConfigurationError:
            return HealthStatus(available=False, reason=NOT_CONFIGURED)
        return asyncio.run(self._head_async(config))

    def _headers(self, config: SourceEndpointConfig) -> dict[str, str]:
        return {"Authorization": f"Bearer {config.api_key}"} if config.api_key else {}

    async def _fetch_async(
        self, config: SourceEndpointConfig, cursor: str | None, limit: int
    ) -> bytes:
        params: dict[str, str | int] = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        async with self.client_factory(config.resilience) as client:
            return await client.download(
                "GET",
                config.url,
                max_bytes=config.max_bytes,
                params=params,
                headers=self._headers(config),
            )

    async def _head_async(self, config: SourceEndpointConfig) -> HealthStatus:
        async with self.client_factory(config.resilience) as client:
            try:
                response = await client.head(config.url, headers=self._headers(config))
            except httpx.HTTPError as exc:
                return HealthStatus(available=False, reason=f"{type(exc).__name__}: {exc}")
        return HealthStatus(
            available=response.is_success,
            reason=None if response.is_success else f"HTTP {response.status_code}",
            status_code=response.status_code,
        )


class ProviderRegistry:
    def __init__(self, providers: Sequence[IngestionProvider] = ()) -> None:
        self._providers: dict[str, IngestionProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: IngestionProvider) -> None:
        self._providers[provider.provider_id] = provider

    def get(self, provider_id: str) -> IngestionProvider:
        try:
            return self._providers[provider_id]
        except KeyError as exc:
            raise ValidationError(f"Unknown provider: {provider_id}", field="provider") from exc

    def provider_ids(self) -> list[str]:
        return sorted(self._providers)


def default_provider_registry() -> ProviderRegistry:
    return ProviderRegistry([StubProvider(), HttpJsonProvider()])


@dataclass(slots=True)
class ProviderSourceAdapter:
    """Presents an ``IngestionProvider`` as the third-party ``SourceAdapter``."""

    provider: IngestionProvider
    default_confidence: int = DEFAULT_PROVIDER_CONFIDENCE

    @property
    def source_id(self) -> SourceId:
        return SourceId.THIRD_PARTY

    def discover(self, cursor: str | None, limit: int) -> DiscoveryBatch:
        page = self.provider.fetch_page(cursor, limit)
        batch = DiscoveryBatch(next_cursor=page.next_cursor, exhausted=page.next_cursor is None)
        for index, item in enumerate(page.items[:limit]):
            batch.rows_scanned += 1
            company = self.provider.normalize(item)
            if company is None:
                batch.rows_dropped += 1
                continue
            batch.records.append(self.to_record(company))
            # Without per-item cursors a halted run re-reads this page; upserts are idempotent.
            resume = page.item_cursors[index] if page.item_cursors else cursor
            batch.record_cursors.append(resume or "")
        return batch

    def to_record(self, company: ProviderCompany) -> SourceCandidateRecord:
        raw = company.model_dump(exclude_none=True, exclude={"confidence", "socials"})
        raw["source_ref"] = self.provider.provider_id
        return SourceCandidateRecord(
            source_id=SourceId.THIRD_PARTY,
            source_ref=f"{self.provider.provider_id}:{company.cui}",
            cui=company.cui,
            name=company.name,
            domain=company.domain,
            website=company.url,
            address=company.address,
            county=company.county,
            industry=company.industry,
            employees=company.employees,
            revenue=company.revenue,
            profit=company.profit,
            email=company.email,
            phone=company.phone,
            socials=company.socials,
            description=company.description,
            confidence=company.confidence
            if company.confidence is not None
            else self.default_confidence,
            raw=raw,
        )

    def health_check(self) -> HealthStatus:
        return self.provider.health_check()

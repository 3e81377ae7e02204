"""Source adapters for bulk company discovery."""

from __future__ import annotations

from typing import TYPE_CHECKING

from firmrecon.domain.errors import ValidationError
from firmrecon.domain.model import SourceId

from .eu_funds import build_eu_funds_adapter
from .providers import (
    HTTP_PROVIDER_ID,
    HttpJsonProvider,
    IngestionProvider,
    ProviderRegistry,
    ProviderSourceAdapter,
    StubProvider,
    default_provider_registry,
)
from .seap import build_seap_adapter
from .tabular import TabularSourceAdapter

if TYPE_CHECKING:
    from firmrecon.domain.ports import SourceAdapter

__all__ = [
    "INGESTIBLE_SOURCES",
    "HttpJsonProvider",
    "IngestionProvider",
    "ProviderRegistry",
    "ProviderSourceAdapter",
    "StubProvider",
    "TabularSourceAdapter",
    "build_eu_funds_adapter",
    "build_seap_adapter",
    "build_source_adapter",
    "default_provider_registry",
]

INGESTIBLE_SOURCES: tuple[SourceId, ...] = (SourceId.SEAP, SourceId.EU_FUNDS, SourceId.THIRD_PARTY)


def build_source_adapter(
    source_id: SourceId | str,
    *,
    provider_id: str = HTTP_PROVIDER_ID,
    registry: ProviderRegistry | None = None,
) -> SourceAdapter:
    """Return the adapter for ``source_id``; third-party sources go through the registry."""

    try:
        source = SourceId(source_id)
    except ValueError as exc:
        raise ValidationError(f"Unknown source: {source_id}", field="source_id") from exc

    if source is SourceId.SEAP:
        return build_seap_adapter()
    if source is SourceId.EU_FUNDS:
        return build_eu_funds_adapter()
    if source is SourceId.THIRD_PARTY:
        provider = (registry or default_provider_registry()).get(provider_id)
        return ProviderSourceAdapter(provider)
    raise ValidationError(f"Source {source} does not support batch discovery", field="source_id")

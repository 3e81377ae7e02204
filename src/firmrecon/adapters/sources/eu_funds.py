"""EU funds beneficiaries export (CSV or JSON)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from firmrecon.config.sources import get_eu_funds_config
from firmrecon.domain.model import SourceId

from .tabular import TabularLayout, TabularSourceAdapter

if TYPE_CHECKING:
    from collections.abc import Callable

    from firmrecon.adapters.http_resilience import ResilientClient
    from firmrecon.config.http_resilience import ResilienceConfig

EU_FUNDS_CONFIDENCE: Final[int] = 70

EU_FUNDS_LAYOUT: Final[TabularLayout] = TabularLayout(
    columns={
        "cui": (
            "CUI",
            "Cod fiscal",
            "CodFiscal",
            "CIF",
            "CUI Beneficiar",
            "Beneficiary CUI",
            "Fiscal Code",
            "FiscalCode",
            "cui_beneficiar",
        ),
        "name": (
            "Beneficiar",
            "Beneficiary",
            "Denumire Beneficiar",
            "Beneficiary Name",
            "Nume Beneficiar",
            "beneficiary_name",
        ),
        "project_id": ("Project ID", "project_id", "Cod Proiect", "ID"),
        "program": ("Program", "program", "Program Name", "Program Operational"),
        "value": ("Valoare", "value", "Amount", "amount", "Grant Amount"),
        "date": ("Data", "date", "Award Date"),
        "year": ("An", "year"),
        "county": ("Judet", "Județ", "county", "Regiune"),
        "url": ("Website", "website", "url"),
    },
    reference_field="project_id",
    reference_prefix="eu",
)


def build_eu_funds_adapter(
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
) -> TabularSourceAdapter:
    adapter = TabularSourceAdapter(
        source_id=SourceId.EU_FUNDS,
        layout=EU_FUNDS_LAYOUT,
        config_loader=get_eu_funds_config,
        confidence=EU_FUNDS_CONFIDENCE,
    )
    if client_factory is not None:
        adapter.client_factory = client_factory
    return adapter

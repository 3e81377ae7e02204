"""SEAP public procurement contracts export (CSV)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from firmrecon.config.sources import get_seap_config
from firmrecon.domain.model import SourceId

from .tabular import TabularLayout, TabularSourceAdapter

if TYPE_CHECKING:
    from collections.abc import Callable

    from firmrecon.adapters.http_resilience import ResilientClient
    from firmrecon.config.http_resilience import ResilienceConfig

SEAP_CONFIDENCE: Final[int] = 60

SEAP_LAYOUT: Final[TabularLayout] = TabularLayout(
    columns={
        "cui": (
            "CUI",
            "CUI Furnizor",
            "Cod fiscal",
            "CodFiscal",
            "CIF",
            "CIF/CUI",
            "CUI_Furnizor",
            "Fiscal Code",
            "FiscalCode",
            "Supplier CUI",
            "Supplier_CUI",
        ),
        "name": (
            "Furnizor",
            "Denumire Furnizor",
            "Supplier",
            "Supplier Name",
            "Nume Furnizor",
            "Denumire_Furnizor",
        ),
        "contract_id": ("Contract ID", "contract_id", "Numar Contract", "ID"),
        "authority": (
            "Autoritate",
            "authority",
            "Contracting Authority",
            "Autoritate Contractanta",
        ),
        "value": ("Valoare", "value", "Amount", "Valoare RON"),
        "date": ("Data", "date", "Data Contract"),
        "year": ("An", "year"),
        "county": ("Judet", "Județ", "county", "Judet Furnizor"),
        "address": ("Adresa Furnizor", "Adresa", "address"),
    },
    reference_field="contract_id",
    reference_prefix="seap",
)


def build_seap_adapter(
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
) -> TabularSourceAdapter:
    adapter = TabularSourceAdapter(
        source_id=SourceId.SEAP,
        layout=SEAP_LAYOUT,
        config_loader=get_seap_config,
        confidence=SEAP_CONFIDENCE,
    )
    if client_factory is not None:
        adapter.client_factory = client_factory
    return adapter

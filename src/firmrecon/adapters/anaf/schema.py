"""Pydantic models for ANAF tax-registry payloads.

The public VAT service wraps each company in ``found[]`` with nested sections; older
mirrors return a flat object per CUI. Both are flattened before validation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_NESTED_SECTIONS = (
    "date_generale",
    "inregistrare_scop_Tva",
    "stare_inactiv",
    "adresa_sediu_social",
)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _truthy(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().casefold() in {"true", "1", "da", "yes"}
    return bool(value)


class AnafBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AnafCompanyRecord(AnafBaseModel):
    cui: str | None = None
    denumire: str | None = None
    denumire_completa: str | None = Field(default=None, alias="denumireCompleta")
    nume: str | None = None
    adresa: str | None = None
    valid: bool | str | None = None
    status: str | None = None
    scp_tva: bool | str | None = Field(default=None, alias="scpTVA")
    tva: bool | str | None = None
    platitor: bool | str | None = None
    status_inactivi: bool | None = Field(default=None, alias="statusInactivi")
    data_inregistrare: str | None = None
    data_inceput_tva: str | None = Field(default=None, alias="dataInceputTva")

    @model_validator(mode="before")
    @classmethod
    def _flatten_sections(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        mapping_value = cast(Mapping[str, object], value)
        data: dict[str, object] = dict(mapping_value)
        for section in _NESTED_SECTIONS:
            nested = data.pop(section, None)
            if isinstance(nested, Mapping):
                for key, item in cast(Mapping[str, object], nested).items():
                    data.setdefault(key, item)
        return data

    @field_validator("cui", mode="before")
    @classmethod
    def _stringify_cui(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return _blank_to_none(value)

    _normalize_text = field_validator(
        "denumire",
        "denumire_completa",
        "nume",
        "adresa",
        "status",
        "data_inregistrare",
        "data_inceput_tva",
        mode="before",
    )(_blank_to_none)

    @property
    def official_name(self) -> str | None:
        return self.denumire or self.denumire_completa or self.nume

    @property
    def is_active(self) -> bool:
        if self.valid is not None and _truthy(self.valid):
            return True
        if self.status is not None and self.status.upper() == "ACTIV":
            return True
        return self.status_inactivi is False

    @property
    def is_vat_registered(self) -> bool:
        return any(_truthy(value) for value in (self.scp_tva, self.tva, self.platitor))


class AnafVerificationResponse(AnafBaseModel):
    cod: int | None = None
    message: str | None = None
    found: list[AnafCompanyRecord] = Field(default_factory=list)
    not_found: list[int | str] = Field(default_factory=list, alias="notFound")

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_lists(cls, value: object) -> object:
        if isinstance(value, list):
            return {"found": value}
        if isinstance(value, Mapping) and "found" not in value and "notFound" not in value:
            return {"found": [value]}
        return value

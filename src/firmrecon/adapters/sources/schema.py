"""Pydantic models for third-party provider payloads."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class ProviderBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ProviderCompany(ProviderBaseModel):
    """One company as published by a provider, before CUI normalization."""

    cui: str | None = None
    name: str | None = None
    domain: str | None = None
    address: str | None = None
    county: str | None = None
    industry: str | None = None
    employees: int | None = None
    revenue: float | None = None
    profit: float | None = None
    currency: str | None = None
    year: int | None = None
    url: str | None = Field(default=None, alias="website")
    description: str | None = None
    phone: str | None = None
    email: str | None = None
    socials: dict[str, str] | None = None
    confidence: int | None = Field(default=None, ge=0, le=100)

    @field_validator("cui", mode="before")
    @classmethod
    def _stringify_cui(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return _blank_to_none(value)

    _normalize_text = field_validator(
        "name",
        "domain",
        "address",
        "county",
        "industry",
        "url",
        "description",
        "phone",
        "email",
        mode="before",
    )(_blank_to_none)

    @field_validator("employees", "year", mode="before")
    @classmethod
    def _lenient_int(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            try:
                return int(float(stripped))
            except ValueError:
                return None
        return value

    @field_validator("revenue", "profit", mode="before")
    @classmethod
    def _lenient_float(cls, value: object) -> object:
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                return None
        return value


class ProviderPagePayload(ProviderBaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    next_cursor: str | None = Field(default=None, alias="nextCursor")

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_lists(cls, value: object) -> object:
        if isinstance(value, list):
            return {"items": value}
        if isinstance(value, Mapping):
            mapping_value = cast(Mapping[str, object], value)
            if "items" not in mapping_value and isinstance(mapping_value.get("data"), list):
                data: dict[str, object] = dict(mapping_value)
                data["items"] = data.pop("data")
                return data
        return value

    @field_validator("next_cursor", mode="before")
    @classmethod
    def _stringify_cursor(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return _blank_to_none(value)

"""Shared machinery for sources published as one CSV or JSON export.

A cursor is the index of the next unread data row, so a run resumes exactly where the
previous one stopped regardless of how many rows were dropped along the way.
"""

from __future__ import annotations

import asyncio
import csv
import io
import json
import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import httpx

from firmrecon.adapters.http_resilience import ResilientClient
from firmrecon.config.errors import MissingConfigurationError
from firmrecon.domain.cui import normalize_cui
from firmrecon.domain.errors import ValidationError
from firmrecon.domain.ingestion.payload import hash_row
from firmrecon.domain.model import SourceCandidateRecord
from firmrecon.domain.ports import DiscoveryBatch, HealthStatus

if TYPE_CHECKING:
    from firmrecon.config.http_resilience import ResilienceConfig
    from firmrecon.config.sources import SourceEndpointConfig
    from firmrecon.domain.model import SourceId

log = getLogger(__name__)

type Row = Mapping[str, Any]
type ColumnSynonyms = Mapping[str, tuple[str, ...]]

NOT_CONFIGURED: Final[str] = "not_configured"
JSON_ITEM_KEYS: Final[tuple[str, ...]] = ("items", "data")

_NUMBER_NOISE = re.compile(r"[^\d,.\-]")
_YEAR = re.compile(r"\b(19|20)\d{2}\b")


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def pick_column(row: Row, synonyms: tuple[str, ...]) -> str | None:
    """Return the first non-blank value among ``synonyms``, matched case-insensitively."""

    folded = {str(key).strip().casefold(): value for key, value in row.items() if key}
    for name in synonyms:
        value = folded.get(name.casefold())
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def parse_number(value: str | None) -> float | None:
    if value is None:
        return None
    cleaned = _NUMBER_NOISE.sub("", value)
    if not cleaned:
        return None
    if "," in cleaned and "." in cleaned:
        # The right-most separator is the decimal one: "1.234,56" or "1,234.56".
        decimal = "," if cleaned.rfind(",") > cleaned.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        cleaned = cleaned.replace(thousands, "").replace(decimal, ".")
    elif "," in cleaned:
        head, _, tail = cleaned.rpartition(",")
        cleaned = f"{head.replace(',', '')}.{tail}" if len(tail) != 3 else cleaned.replace(",", "")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_int(value: str | None) -> int | None:
    number = parse_number(value)
    return int(number) if number is not None else None


def parse_year(year: str | None, date_value: str | None = None) -> int | None:
    for candidate in (year, date_value):
        if not candidate:
            continue
        try:
            return date.fromisoformat(candidate[:10]).year
        except ValueError:
            pass
        match = _YEAR.search(candidate)
        if match:
            return int(match.group(0))
    return None


def parse_csv(body: bytes) -> Iterator[dict[str, str]]:
    text = body.decode("utf-8-sig", errors="replace")
    reader = csv.DictReader(io.StringIO(text))
    for row in reader:
        if any(value and value.strip() for value in row.values() if isinstance(value, str)):
            yield row


def parse_json(body: bytes) -> list[dict[str, Any]]:
    """Items are the top-level array, or sit under ``items`` or ``data``."""

    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Source payload is not valid JSON: {exc}") from exc
    if isinstance(payload, dict):
        for key in JSON_ITEM_KEYS:
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
        else:
            return []
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


def parse_cursor(cursor: str | None) -> int:
    """Row offset encoded in ``cursor``; a malformed cursor restarts the export from 0."""

    if not cursor:
        return 0
    try:
        return max(0, int(cursor))
    except ValueError:
        log.warning("Discarding malformed cursor %r, restarting from the first row", cursor)
        return 0


@dataclass(slots=True, frozen=True, kw_only=True)
class TabularLayout:
    """Header synonyms per logical field, tried in order.

    Logical field names double as keys of the captured raw payload. ``reference_field``
    names the logical field that identifies a row upstream (contract or project id).
    """

    columns: ColumnSynonyms
    reference_field: str
    reference_prefix: str


@dataclass(slots=True)
class TabularSourceAdapter:
    """Downloads one export per ``discover`` call and pages through its rows."""

    source_id: SourceId
    layout: TabularLayout
    config_loader: Callable[[], SourceEndpointConfig]
    confidence: int = 50
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def discover(self, cursor: str | None, limit: int) -> DiscoveryBatch:
        config = self.config_loader()
        offset = parse_cursor(cursor)
        body = asyncio.run(self._download(config))
        rows = parse_json(body) if config.format == "json" else list(parse_csv(body))
        return self.page(rows, offset=offset, limit=limit)

    def page(self, rows: Sequence[Row], *, offset: int, limit: int) -> DiscoveryBatch:
        batch = DiscoveryBatch()
        index = offset
        while index < len(rows) and len(batch.records) < limit:
            row = rows[index]
            index += 1
            batch.rows_scanned += 1
            record = self.to_record(row)
            if record is None:
                batch.rows_dropped += 1
                continue
            batch.records.append(record)
            batch.record_cursors.append(str(index))
        batch.next_cursor = str(index)
        batch.exhausted = index >= len(rows)
        log.info(
            "%s: %s records from rows %s-%s (%s dropped)",
            self.source_id,
            len(batch.records),
            offset,
            index,
            batch.rows_dropped,
        )
        return batch

    def to_record(self, row: Row) -> SourceCandidateRecord | None:
        """Map one row; rows without a valid CUI yield ``None``."""

        values = {
            name: value
            for name, synonyms in self.layout.columns.items()
            if (value := pick_column(row, synonyms)) is not None
        }
        cui = normalize_cui(values.get("cui"))
        if not cui.valid or cui.value is None:
            return None
        values["cui"] = cui.value

        reference = values.get(self.layout.reference_field)
        source_ref = reference or f"{self.layout.reference_prefix}-{hash_row(values)}"
        return SourceCandidateRecord(
            source_id=self.source_id,
            source_ref=source_ref,
            cui=cui.value,
            name=values.get("name"),
            domain=values.get("domain"),
            website=values.get("url"),
            address=values.get("address"),
            county=values.get("county"),
            industry=values.get("industry"),
            email=values.get("email"),
            phone=values.get("phone"),
            employees=parse_int(values.get("employees")),
            contract_value=parse_number(values.get("value")),
            contract_year=parse_year(values.get("year"), values.get("date")),
            confidence=self.confidence,
            raw=dict(values),
        )

    def health_check(self) -> HealthStatus:
        try:
            config = self.config_loader()
        except MissingConfigurationError:
            return HealthStatus(available=False, reason=NOT_CONFIGURED)
        return asyncio.run(self._head(config))

    async def _download(self, config: SourceEndpointConfig) -> bytes:
        async with self.client_factory(config.resilience) as client:
            return await client.download("GET", config.url, max_bytes=config.max_bytes)

    async def _head(self, config: SourceEndpointConfig) -> HealthStatus:
        async with self.client_factory(config.resilience) as client:
            try:
                response = await client.head(config.url)
            except httpx.HTTPError as exc:
                return HealthStatus(available=False, reason=f"{type(exc).__name__}: {exc}")
        if response.is_success:
            return HealthStatus(available=True, status_code=response.status_code)
        return HealthStatus(
            available=False,
            reason=f"HTTP {response.status_code}",
            status_code=response.status_code,
        )

"""In-memory OAID catalog with region filtering and description search."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal, Mapping

import yaml

from backend.core.normalize import normalize_header
from backend.core.schema import CatalogEntry
from backend.core.validation import InputIncompleteError, LookupMissError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

_DEFAULT_ALIASES: dict[str, list[str]] = {
    "oaid": ["OAID"],
    "long_description": ["Long Description", "longDescription", "LONG DESCRIPTION"],
    "region": ["Region", "REG"],
    "region_alias": ["REG Alias"],
}


def _load_column_aliases() -> dict[str, set[str]]:
    path = CONFIG_DIR / "catalog_columns.yaml"
    raw: dict[str, list[str]] = _DEFAULT_ALIASES
    if path.exists():
        with path.open("r", encoding="utf-8") as fp:
            raw = yaml.safe_load(fp) or _DEFAULT_ALIASES
    return {key: {normalize_header(alias) for alias in aliases} for key, aliases in raw.items()}


COLUMN_ALIASES = _load_column_aliases()


def _cell(value: Any) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return str(value).strip()


def resolve_columns(headers: Iterable[Any]) -> dict[str, Any]:
    """Map canonical field names to the first matching source header."""

    resolved: dict[str, Any] = {}
    for header in headers:
        key = normalize_header(str(header))
        for fieldname, aliases in COLUMN_ALIASES.items():
            if fieldname not in resolved and key in aliases:
                resolved[fieldname] = header
    return resolved


def entry_from_row(row: Mapping[str, Any], columns: Mapping[str, Any]) -> CatalogEntry | None:
    def value(fieldname: str) -> str:
        column = columns.get(fieldname)
        return _cell(row.get(column)) if column is not None else ""

    oaid = value("oaid")
    description = value("long_description")
    alias = value("region_alias")
    region = value("region") or alias
    if not (oaid and description and region):
        return None
    return CatalogEntry(oaid=oaid, region=region, long_description=description, region_alias=alias or None)


@dataclass(frozen=True)
class CatalogIndex:
    entries: tuple[CatalogEntry, ...] = ()
    by_region: dict[str, tuple[int, ...]] = field(default_factory=dict)

    @property
    def regions(self) -> list[str]:
        return list(self.by_region)

    def __len__(self) -> int:
        return len(self.entries)


def load_catalog(rows: Iterable[Mapping[str, Any] | CatalogEntry]) -> CatalogIndex:
    """Build a catalog index, dropping rows that lack oaid, description or region."""

    entries: list[CatalogEntry] = []
    columns: dict[str, Any] | None = None
    dropped = 0
    for row in rows:
        if isinstance(row, CatalogEntry):
            entries.append(row)
            continue
        if columns is None:
            columns = resolve_columns(row.keys())
        entry = entry_from_row(row, columns)
        if entry is None:
            dropped += 1
            continue
        entries.append(entry)

    by_region: dict[str, list[int]] = {}
    for position, entry in enumerate(entries):
        by_region.setdefault(entry.region, []).append(position)

    if dropped:
        logger.info("catalog rows dropped for missing fields: %d", dropped)
    return CatalogIndex(
        entries=tuple(entries),
        by_region={region: tuple(positions) for region, positions in by_region.items()},
    )


def search(index: CatalogIndex, regions: Iterable[str], text: str | None) -> list[CatalogEntry]:
    """Case-insensitive substring search on descriptions within ``regions``.

    A blank query returns nothing rather than the whole catalog. Results keep
    catalog upload order.
    """

    needle = (text or "").strip().lower()
    if not needle:
        return []
    positions: list[int] = []
    for region in set(regions):
        positions.extend(index.by_region.get(region, ()))
    positions.sort()
    return [index.entries[pos] for pos in positions if needle in index.entries[pos].long_description.lower()]


@dataclass(frozen=True)
class SearchResolution:
    status: Literal["selected", "no_match", "ambiguous"]
    candidates: tuple[CatalogEntry, ...] = ()
    selected_oaid: str | None = None


def resolve(index: CatalogIndex, regions: Iterable[str], text: str | None) -> SearchResolution:
    """Search and apply the disambiguation policy.

    One hit is selected automatically; several hits leave the choice to the
    operator; none is reported as ``no_match``.
    """

    candidates = tuple(search(index, regions, text))
    if len(candidates) == 1:
        return SearchResolution(status="selected", candidates=candidates, selected_oaid=candidates[0].oaid)
    if not candidates:
        return SearchResolution(status="no_match")
    return SearchResolution(status="ambiguous", candidates=candidates)


@dataclass
class RegionSelection:
    """Global region filter chosen before any catalog search."""

    available: list[str]
    selected: list[str] = field(default_factory=list)

    def toggle(self, region: str) -> None:
        if region in self.selected:
            self.selected.remove(region)
        else:
            self.selected.append(region)

    def select_all(self) -> None:
        self.selected = list(self.available)

    def clear(self) -> None:
        self.selected = []

    def confirm(self) -> tuple[str, ...]:
        if not self.selected:
            raise InputIncompleteError("select at least one region")
        unknown = [region for region in self.selected if region not in self.available]
        if unknown:
            raise LookupMissError("unknown region selected", detail={"regions": unknown})
        return tuple(self.selected)

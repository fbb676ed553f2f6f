"""Selection helpers used when grouping CAIDs into blocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Collection, Sequence

from backend.core.validation import LookupMissError


def range_bounds(items: Sequence[str], start: str, end: str) -> tuple[int, int]:
    try:
        first = items.index(start)
        last = items.index(end)
    except ValueError as exc:
        missing = [value for value in (start, end) if value not in items]
        raise LookupMissError("range endpoint not found", detail={"missing": missing}) from exc
    return min(first, last), max(first, last)


def range_select(
    items: Sequence[str],
    start: str,
    end: str,
    consumed: Collection[str] = (),
) -> list[str]:
    """Return the inclusive run of ``items`` between two endpoint values.

    Endpoints may be given in either order. Items in ``consumed`` are removed
    before the endpoints are looked up, so a consumed endpoint is not found.
    """

    excluded = set(consumed)
    pool = [item for item in items if item not in excluded]
    low, high = range_bounds(pool, start, end)
    return pool[low : high + 1]


def _merge(current: list[str], incoming: Sequence[str]) -> list[str]:
    merged = list(current)
    seen = set(current)
    for item in incoming:
        if item not in seen:
            merged.append(item)
            seen.add(item)
    return merged


@dataclass
class CaidSelection:
    """Click-driven selection over the list of still unassigned CAIDs.

    ``available`` must already exclude CAIDs consumed by earlier blocks, so
    shift-range indices are positions in that filtered list.
    """

    available: list[str]
    selected: list[str] = field(default_factory=list)
    last_index: int | None = None

    def click(self, index: int, *, shift: bool = False, ctrl: bool = False) -> list[str]:
        if not 0 <= index < len(self.available):
            raise LookupMissError("CAID index out of range", detail={"index": index})
        caid = self.available[index]
        if shift and self.last_index is not None:
            low, high = sorted((self.last_index, index))
            self.selected = _merge(self.selected, self.available[low : high + 1])
        elif ctrl:
            if caid in self.selected:
                self.selected = [item for item in self.selected if item != caid]
            else:
                self.selected = [*self.selected, caid]
        else:
            self.selected = [caid]
        self.last_index = index
        return list(self.selected)

    def toggle(self, caid: str) -> list[str]:
        if caid not in self.available:
            raise LookupMissError("CAID not available", detail={"caid": caid})
        return self.click(self.available.index(caid), ctrl=True)

    def add_range(self, start: str, end: str) -> list[str]:
        added = range_select(self.available, start, end)
        self.selected = _merge(self.selected, added)
        return added

    def clear(self) -> None:
        self.selected = []
        self.last_index = None

"""Turn operator choices into the OAID pattern consumed by the expander.

Four strategies produce one tagged pattern type:

* ``resolve_duplication`` → :class:`DuplicationPattern` (no OAIDs, N copies)
* ``resolve_direct`` → :class:`DirectPattern` (typed OAID + quantity rows)
* ``resolve_referenced`` → :class:`ReferencedPattern` (catalog-searched slots)
* ``resolve_blocks`` → :class:`TemplateBlockPattern` (templates per CAID block)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Sequence

from backend.core.catalog import CatalogIndex, resolve
from backend.core.schema import (
    CaidBlock,
    CatalogEntry,
    DirectPattern,
    DuplicationPattern,
    MatchedRecord,
    OaidPatternItem,
    OaidTemplate,
    ReferencedPattern,
    TemplateBlockPattern,
)
from backend.core.validation import (
    AmbiguityError,
    AssignmentConflictError,
    InputIncompleteError,
    LookupMissError,
    require_quantity,
    require_text,
)


def _field(row: Mapping[str, Any] | Any, name: str, alias: str | None = None) -> Any:
    if isinstance(row, Mapping):
        value = row.get(name)
        if value is None and alias:
            value = row.get(alias)
        return value
    return getattr(row, name, None)


def _check_reference(reference_caid: str | None, matched: Sequence[MatchedRecord] | None) -> str | None:
    reference = (reference_caid or "").strip() or None
    if reference is None or matched is None:
        return reference
    if reference not in {record.caid for record in matched}:
        raise LookupMissError("reference CAID is not among the matched results", detail={"caid": reference})
    return reference


# ----------------------------------------------------------------------
# duplication only
# ----------------------------------------------------------------------
def resolve_duplication(count: Any) -> DuplicationPattern:
    return DuplicationPattern(count=require_quantity(count, "duplicate count must be at least 1"))


# ----------------------------------------------------------------------
# direct pattern
# ----------------------------------------------------------------------
def pattern_items(rows: Iterable[Mapping[str, Any] | OaidPatternItem]) -> tuple[OaidPatternItem, ...]:
    """Convert editable rows to pattern items, skipping rows without an OAID."""

    items: list[OaidPatternItem] = []
    for row in rows:
        oaid = str(_field(row, "oaid") or "").strip()
        if not oaid:
            continue
        description = _field(row, "long_description", "longDescription")
        items.append(
            OaidPatternItem(
                oaid=oaid,
                quantity=require_quantity(_field(row, "quantity") or 1),
                long_description=str(description).strip() if description else None,
            )
        )
    return tuple(items)


def resolve_direct(
    rows: Iterable[Mapping[str, Any] | OaidPatternItem],
    reference_caid: str | None = None,
    matched: Sequence[MatchedRecord] | None = None,
) -> DirectPattern:
    """Keep the rows with an OAID; reject the submission if none remain."""

    items = pattern_items(rows)
    if not items:
        raise InputIncompleteError("no pattern defined")
    return DirectPattern(items=items, reference_caid=_check_reference(reference_caid, matched))


# ----------------------------------------------------------------------
# catalog-referenced pattern
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class ReferenceSlot:
    long_description: str = ""
    quantity: int = 1
    selected_oaid: str | None = None
    candidates: tuple[CatalogEntry, ...] = ()

    @property
    def complete(self) -> bool:
        return bool(self.long_description.strip()) and bool(self.selected_oaid)


def search_slot(slot: ReferenceSlot, index: CatalogIndex, regions: Iterable[str]) -> tuple[ReferenceSlot, str]:
    """Run the catalog search for one slot.

    Returns the updated slot and the resolution status. A single hit is
    selected straight away; otherwise any earlier selection is cleared.
    """

    resolution = resolve(index, regions, slot.long_description)
    updated = replace(slot, candidates=resolution.candidates, selected_oaid=resolution.selected_oaid)
    return updated, resolution.status


def pick_slot(slot: ReferenceSlot, oaid: str) -> ReferenceSlot:
    if oaid not in {candidate.oaid for candidate in slot.candidates}:
        raise LookupMissError("OAID is not one of the search results", detail={"oaid": oaid})
    return replace(slot, selected_oaid=oaid)


def slot_from_payload(
    payload: Mapping[str, Any],
    index: CatalogIndex | None = None,
    regions: Iterable[str] = (),
) -> ReferenceSlot:
    """Rebuild a slot submitted by a client.

    A slot without a chosen OAID is searched again; an explicit choice must
    still be one of the search hits when a catalog is loaded. A slot with
    several hits and no choice comes back incomplete.
    """

    slot = ReferenceSlot(
        long_description=str(payload.get("long_description") or payload.get("longDescription") or "").strip(),
        quantity=require_quantity(payload.get("quantity") or 1),
        selected_oaid=str(payload.get("selected_oaid") or "").strip() or None,
    )
    if index is None or not slot.long_description:
        return slot
    chosen = slot.selected_oaid
    slot, _ = search_slot(slot, index, regions)
    if chosen:
        return pick_slot(slot, chosen)
    return slot


def resolve_referenced(
    slots: Sequence[ReferenceSlot],
    reference_caid: str | None,
    matched: Sequence[MatchedRecord] | None = None,
) -> ReferencedPattern:
    """Build the pattern from the complete slots; incomplete ones are left out."""

    complete = [slot for slot in slots if slot.complete]
    if not complete:
        ambiguous = [slot for slot in slots if not slot.selected_oaid and len(slot.candidates) > 1]
        if ambiguous:
            raise AmbiguityError(
                "no pattern defined; pick one of the catalog matches",
                detail={
                    "slots": [
                        {
                            "long_description": slot.long_description,
                            "candidates": [candidate.oaid for candidate in slot.candidates],
                        }
                        for slot in ambiguous
                    ]
                },
            )
        raise InputIncompleteError("no pattern defined")
    reference = _check_reference(reference_caid, matched)
    if reference is None:
        raise InputIncompleteError("select a reference CAID")
    items = tuple(
        OaidPatternItem(oaid=slot.selected_oaid or "", quantity=slot.quantity, long_description=slot.long_description)
        for slot in complete
    )
    return ReferencedPattern(items=items, reference_caid=reference)


# ----------------------------------------------------------------------
# templates
# ----------------------------------------------------------------------
class TemplateRegistry:
    """Editable, reusable OAID templates kept for the whole session."""

    def __init__(self, templates: Iterable[OaidTemplate] = ()) -> None:
        self._templates: list[OaidTemplate] = list(templates)
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"template-{self._counter:05d}"

    @staticmethod
    def _validate(payload: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "oaid": require_text(payload.get("oaid"), "template OAID is required"),
            "long_description": require_text(
                payload.get("long_description") or payload.get("longDescription"),
                "template long description is required",
            ),
            "quantity": require_quantity(payload.get("quantity", 1)),
        }

    def add(self, payload: Mapping[str, Any]) -> OaidTemplate:
        template = OaidTemplate(id=self._next_id(), **self._validate(payload))
        self._templates = [*self._templates, template]
        return template

    def update(self, template_id: str, payload: Mapping[str, Any]) -> OaidTemplate:
        current = self.get(template_id)
        updated = OaidTemplate(id=current.id, **self._validate(payload))
        self._templates = [updated if item.id == template_id else item for item in self._templates]
        return updated

    def delete(self, template_id: str) -> None:
        self.get(template_id)
        self._templates = [item for item in self._templates if item.id != template_id]

    def get(self, template_id: str) -> OaidTemplate:
        for template in self._templates:
            if template.id == template_id:
                return template
        raise LookupMissError("template not found", detail={"template_id": template_id})

    def snapshot(self) -> tuple[OaidTemplate, ...]:
        return tuple(self._templates)

    def __len__(self) -> int:
        return len(self._templates)


# ----------------------------------------------------------------------
# blocks
# ----------------------------------------------------------------------
def available_caids(matched: Sequence[MatchedRecord], blocks: Iterable[CaidBlock]) -> list[str]:
    """CAIDs not yet placed in any block, in match order."""

    used = {caid for block in blocks for caid in block.caids}
    pool: list[str] = []
    for record in matched:
        if record.caid not in used and record.caid not in pool:
            pool.append(record.caid)
    return pool


def assign_blocks(blocks: Iterable[CaidBlock], *, allow_overlap: bool = False) -> dict[str, str]:
    """Build the explicit CAID → block id mapping.

    With ``allow_overlap`` the first block in creation order keeps a CAID that
    appears in several blocks; otherwise the overlap is rejected.
    """

    assignment: dict[str, str] = {}
    for block in blocks:
        for caid in block.caids:
            owner = assignment.get(caid)
            if owner is None:
                assignment[caid] = block.id
            elif owner != block.id and not allow_overlap:
                raise AssignmentConflictError(
                    "CAID already assigned to another block",
                    detail={"caid": caid, "block_id": owner},
                )
    return assignment


def build_block(
    block_id: str,
    payload: Mapping[str, Any],
    *,
    matched: Sequence[MatchedRecord],
    blocks: Sequence[CaidBlock],
    templates: TemplateRegistry,
) -> CaidBlock:
    """Validate a block definition against the current pool and registry."""

    name = require_text(payload.get("name"), "block name is required")
    caids: list[str] = []
    for caid in payload.get("caids") or []:
        value = str(caid).strip()
        if value and value not in caids:
            caids.append(value)
    if not caids:
        raise InputIncompleteError("select at least one CAID")

    template_ids = tuple(str(item) for item in payload.get("template_ids") or [])
    pattern = pattern_items(payload.get("oaid_pattern") or [])
    if not template_ids and not pattern:
        raise InputIncompleteError("select at least one template")
    for template_id in template_ids:
        templates.get(template_id)

    known = {record.caid for record in matched}
    unknown = [caid for caid in caids if caid not in known]
    if unknown:
        raise LookupMissError("CAID is not among the matched results", detail={"caids": unknown})

    block = CaidBlock(id=block_id, name=name, caids=tuple(caids), oaid_pattern=pattern, template_ids=template_ids)
    assign_blocks([*blocks, block])
    return block


def add_catalog_item(block_pattern: Sequence[OaidPatternItem], entry: CatalogEntry, quantity: Any = 1) -> tuple[OaidPatternItem, ...]:
    """Append a catalog hit to a block's own OAID pattern."""

    item = OaidPatternItem(
        oaid=entry.oaid,
        quantity=require_quantity(quantity),
        long_description=entry.long_description,
    )
    return (*block_pattern, item)


def resolve_blocks(blocks: Sequence[CaidBlock], templates: TemplateRegistry) -> TemplateBlockPattern:
    if not blocks:
        raise InputIncompleteError("create at least one CAID block")
    assign_blocks(blocks)
    return TemplateBlockPattern(blocks=tuple(blocks), templates=templates.snapshot())

"""Cross-join matched records with the resolved OAID pattern."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from backend.core.patterns import assign_blocks
from backend.core.schema import (
    CaidBlock,
    DirectPattern,
    DuplicationPattern,
    ExpansionResult,
    ExpansionSummary,
    FinalRow,
    MatchedRecord,
    OaidPatternItem,
    OaidTemplate,
    Pattern,
    ReferencedPattern,
    TemplateBlockPattern,
)


def _row(record: MatchedRecord, item: OaidPatternItem | None = None, block_id: str | None = None) -> FinalRow:
    if item is None:
        return FinalRow(site_id=record.site_id, caid=record.caid, order=record.order, block_id=block_id)
    return FinalRow(
        site_id=record.site_id,
        caid=record.caid,
        order=record.order,
        oaid=item.oaid,
        long_description=item.long_description,
        quantity=item.quantity,
        block_id=block_id,
    )


def expand_uniform(matched: Sequence[MatchedRecord], items: Sequence[OaidPatternItem]) -> list[FinalRow]:
    """One row per (record, item), items nested inside each record."""

    return [_row(record, item) for record in matched for item in items]


def expand_duplicates(matched: Sequence[MatchedRecord], count: int) -> list[FinalRow]:
    return [_row(record) for record in matched for _ in range(count)]


def block_items(block: CaidBlock, templates: Iterable[OaidTemplate]) -> list[OaidPatternItem]:
    """Pattern items of a block in the order stored on the block.

    Template ids that are no longer in the registry are skipped. A block
    without template ids uses its own OAID pattern.
    """

    if not block.template_ids:
        return list(block.oaid_pattern)
    by_id = {template.id: template for template in templates}
    return [by_id[template_id].as_pattern_item() for template_id in block.template_ids if template_id in by_id]


def expand_blocks(
    matched: Sequence[MatchedRecord],
    blocks: Sequence[CaidBlock],
    templates: Iterable[OaidTemplate] = (),
    *,
    allow_overlap: bool = True,
) -> ExpansionResult:
    """Expand each record with the pattern of the block that owns its CAID.

    Records whose CAID is in no block produce no rows and are only counted
    in the summary.
    """

    assignment = assign_blocks(blocks, allow_overlap=allow_overlap)
    templates = list(templates)
    items_by_block = {block.id: block_items(block, templates) for block in blocks}

    rows: list[FinalRow] = []
    per_block: Counter[str] = Counter()
    unassigned = 0
    for record in matched:
        block_id = assignment.get(record.caid)
        if block_id is None:
            unassigned += 1
            continue
        per_block[block_id] += 1
        rows.extend(_row(record, item, block_id) for item in items_by_block[block_id])

    summary = ExpansionSummary(
        matched=len(matched),
        rows=len(rows),
        assigned=len(matched) - unassigned,
        unassigned=unassigned,
        per_block={block.id: per_block.get(block.id, 0) for block in blocks},
    )
    return ExpansionResult(rows=tuple(rows), summary=summary)


def expand(matched: Sequence[MatchedRecord], pattern: Pattern) -> ExpansionResult:
    """Produce the final rows for any pattern variant."""

    if isinstance(pattern, TemplateBlockPattern):
        return expand_blocks(matched, pattern.blocks, pattern.templates)
    if isinstance(pattern, DuplicationPattern):
        rows = expand_duplicates(matched, pattern.count)
    elif isinstance(pattern, (DirectPattern, ReferencedPattern)):
        rows = expand_uniform(matched, pattern.items)
    else:  # pragma: no cover - exhaustive over the Pattern union
        raise TypeError(f"Unsupported pattern: {type(pattern)!r}")
    summary = ExpansionSummary(matched=len(matched), rows=len(rows), assigned=len(matched), unassigned=0)
    return ExpansionResult(rows=tuple(rows), summary=summary)

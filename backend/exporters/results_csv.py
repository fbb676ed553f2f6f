from __future__ import annotations

from typing import Iterable, Sequence

from backend.core.schema import FinalRow

SIMPLE_HEADER = ("Order", "SITE_ID", "CAID")
FULL_HEADER = ("Order", "SITE_ID", "CAID", "OAID", "Quantity")
DEFAULT_BASENAME = "caid-site-matching-results"


def _has_oaid(rows: Sequence[FinalRow]) -> bool:
    return any(row.oaid is not None for row in rows)


def _text(value: object) -> str:
    return "" if value is None else str(value)


def to_csv(rows: Iterable[FinalRow]) -> str:
    """Comma-joined lines with a header; fields are written without quoting."""

    rows = list(rows)
    if _has_oaid(rows):
        lines = [",".join(FULL_HEADER)]
        lines.extend(
            ",".join([str(row.order), row.site_id, row.caid, _text(row.oaid), _text(row.quantity)]) for row in rows
        )
    else:
        lines = [",".join(SIMPLE_HEADER)]
        lines.extend(",".join([str(row.order), row.site_id, row.caid]) for row in rows)
    return "\n".join(lines)


def to_text(rows: Iterable[FinalRow]) -> str:
    """Tab-separated lines without a header."""

    rows = list(rows)
    if _has_oaid(rows):
        return "\n".join("\t".join([row.site_id, row.caid, _text(row.oaid), _text(row.quantity)]) for row in rows)
    return "\n".join(f"{row.site_id}\t{row.caid}" for row in rows)


def to_clipboard(rows: Iterable[FinalRow]) -> str:
    return to_text(rows)


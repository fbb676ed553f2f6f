from __future__ import annotations

import re
import unicodedata

from backend.core.schema import CaidPair, SiteRecord

_FIELD_SEPARATOR = re.compile(r"[,\t]")


def normalize_header(name: str) -> str:
    normalized = unicodedata.normalize("NFKC", str(name)).strip().lower()
    return "".join(normalized.replace("_", " ").split())


def parse_site_ids(text: str | None) -> list[SiteRecord]:
    """Turn pasted text into ordered site records, one per non-blank line."""

    lines = [line.strip() for line in (text or "").splitlines()]
    return [SiteRecord(site_id=line, order=index) for index, line in enumerate(filter(None, lines), start=1)]


def parse_caid_pairs(text: str | None) -> list[CaidPair]:
    """Parse ``SITE_ID,CAID`` (or tab separated) lines.

    Lines that do not yield two non-empty leading fields are skipped without
    an error; anything after the second field is ignored.
    """

    pairs: list[CaidPair] = []
    for line in (text or "").splitlines():
        parts = [part.strip() for part in _FIELD_SEPARATOR.split(line)]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            continue
        pairs.append(CaidPair(site_id=parts[0], caid=parts[1]))
    return pairs

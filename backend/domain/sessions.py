"""Domain entities for one operator session."""
from __future__ import annotations

from dataclasses import dataclass, field

from backend.core.catalog import CatalogIndex
from backend.core.patterns import TemplateRegistry
from backend.core.schema import (
    CaidBlock,
    CaidPair,
    MatchedRecord,
    Pattern,
    SiteRecord,
)


@dataclass(slots=True)
class UploadRecord:
    """An upload or paste processed for a session."""

    job_id: str
    kind: str
    status: str = "pending"
    filename: str | None = None
    records: int = 0
    error: str | None = None


@dataclass(slots=True)
class SessionState:
    """Working set of a session.

    Collections are immutable tuples and are swapped whole, so a reader
    either sees the previous snapshot or the new one.
    """

    session_id: str
    uploads: list[UploadRecord] = field(default_factory=list)
    sites: tuple[SiteRecord, ...] = ()
    pairs: tuple[CaidPair, ...] = ()
    matched: tuple[MatchedRecord, ...] = ()
    catalog: CatalogIndex = field(default_factory=CatalogIndex)
    regions: tuple[str, ...] = ()
    templates: TemplateRegistry = field(default_factory=TemplateRegistry)
    blocks: tuple[CaidBlock, ...] = ()
    block_counter: int = 0
    pattern: Pattern | None = None
    exports: int = 0

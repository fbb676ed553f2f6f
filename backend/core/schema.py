from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class SiteRecord(_Record):
    site_id: str
    order: int = Field(ge=1)


class CaidPair(_Record):
    site_id: str
    caid: str


class MatchedRecord(_Record):
    site_id: str
    caid: str
    order: int = Field(ge=1)


class CatalogEntry(_Record):
    oaid: str
    region: str
    long_description: str
    region_alias: str | None = None


class OaidPatternItem(_Record):
    oaid: str
    quantity: int = Field(default=1, ge=1)
    long_description: str | None = None


class OaidTemplate(_Record):
    id: str
    oaid: str
    long_description: str
    quantity: int = Field(default=1, ge=1)

    def as_pattern_item(self) -> OaidPatternItem:
        return OaidPatternItem(oaid=self.oaid, quantity=self.quantity, long_description=self.long_description)


class CaidBlock(_Record):
    id: str
    name: str
    caids: tuple[str, ...]
    oaid_pattern: tuple[OaidPatternItem, ...] = ()
    template_ids: tuple[str, ...] = ()


class FinalRow(_Record):
    site_id: str
    caid: str
    order: int
    oaid: str | None = None
    long_description: str | None = None
    quantity: int | None = None
    block_id: str | None = None


class DuplicationPattern(_Record):
    kind: Literal["duplicate"] = "duplicate"
    count: int = Field(default=1, ge=1)


class DirectPattern(_Record):
    kind: Literal["direct"] = "direct"
    items: tuple[OaidPatternItem, ...]
    reference_caid: str | None = None


class ReferencedPattern(_Record):
    kind: Literal["referenced"] = "referenced"
    items: tuple[OaidPatternItem, ...]
    reference_caid: str


class TemplateBlockPattern(_Record):
    kind: Literal["blocks"] = "blocks"
    blocks: tuple[CaidBlock, ...]
    templates: tuple[OaidTemplate, ...] = ()


Pattern = Annotated[
    Union[DuplicationPattern, DirectPattern, ReferencedPattern, TemplateBlockPattern],
    Field(discriminator="kind"),
]


class MatchSummary(_Record):
    total_sites: int = 0
    matched: int = 0
    unmatched: int = 0
    unmatched_site_ids: tuple[str, ...] = ()


class ExpansionSummary(_Record):
    matched: int = 0
    rows: int = 0
    assigned: int = 0
    unassigned: int = 0
    per_block: dict[str, int] = Field(default_factory=dict)


class ExpansionResult(_Record):
    rows: tuple[FinalRow, ...] = ()
    summary: ExpansionSummary = Field(default_factory=ExpansionSummary)

"""Join the ordered site list against the uploaded CAID correspondence."""

from __future__ import annotations

from typing import Iterable, Sequence

from backend.core.schema import CaidPair, MatchedRecord, MatchSummary, SiteRecord


def index_pairs(pairs: Iterable[CaidPair]) -> dict[str, str]:
    """Map each site id to the CAID of its first pair in upload order."""

    index: dict[str, str] = {}
    for pair in pairs:
        index.setdefault(pair.site_id, pair.caid)
    return index


def match(sites: Sequence[SiteRecord], pairs: Iterable[CaidPair]) -> list[MatchedRecord]:
    """Return one matched record per site that has a CAID, in input order.

    Sites without a correspondence row are dropped; when several rows share a
    site id only the first uploaded one is used.
    """

    index = index_pairs(pairs)
    matched: list[MatchedRecord] = []
    for site in sites:
        caid = index.get(site.site_id)
        if caid is None:
            continue
        matched.append(MatchedRecord(site_id=site.site_id, caid=caid, order=site.order))
    return matched


def summarize(sites: Sequence[SiteRecord], matched: Sequence[MatchedRecord]) -> MatchSummary:
    matched_orders = {record.order for record in matched}
    unmatched = [site.site_id for site in sites if site.order not in matched_orders]
    return MatchSummary(
        total_sites=len(sites),
        matched=len(matched),
        unmatched=len(unmatched),
        unmatched_site_ids=tuple(unmatched),
    )

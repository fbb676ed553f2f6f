"""Parsers for the site list and the SITE_ID → CAID correspondence."""

from __future__ import annotations

import io
import json

import pandas as pd

from backend.core.normalize import parse_caid_pairs, parse_site_ids
from backend.core.schema import CaidPair, SiteRecord
from backend.core.validation import ParseFailureError


def decode_text(content: bytes, filename: str = "") -> str:
    try:
        # utf-8-sig drops the BOM that spreadsheet tools prepend to CSV exports
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseFailureError("file is not valid UTF-8 text", detail={"filename": filename}) from exc


def parse_sites(content: bytes, fmt: str, filename: str = "") -> list[SiteRecord]:
    text = decode_text(content, filename)
    if fmt == "json":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseFailureError("invalid JSON payload", detail={"filename": filename}) from exc
        if isinstance(payload, dict):
            text = str(payload.get("text") or "")
        elif isinstance(payload, list):
            text = "\n".join(str(item) for item in payload)
        else:
            raise ParseFailureError("JSON payload must carry a text field", detail={"filename": filename})
    sites = parse_site_ids(text)
    if not sites:
        raise ParseFailureError("no SITE ID found in the upload", detail={"filename": filename})
    return sites


def _pairs_from_excel(content: bytes, filename: str) -> list[CaidPair]:
    try:
        frame = pd.read_excel(
            io.BytesIO(content), sheet_name=0, header=None, dtype=str, keep_default_na=False, na_filter=False
        )
    except Exception as exc:
        raise ParseFailureError("workbook could not be read", detail={"filename": filename}) from exc
    if frame.shape[1] < 2:
        raise ParseFailureError("workbook needs SITE_ID and CAID columns", detail={"filename": filename})

    pairs: list[CaidPair] = []
    for site_id, caid in frame.iloc[:, :2].itertuples(index=False, name=None):
        site_text = "" if pd.isna(site_id) else str(site_id).strip()
        caid_text = "" if pd.isna(caid) else str(caid).strip()
        if site_text and caid_text:
            pairs.append(CaidPair(site_id=site_text, caid=caid_text))
    return pairs


def parse_pairs(content: bytes, fmt: str, filename: str = "") -> list[CaidPair]:
    """Read correspondence rows; a header line such as ``SITE_ID,CAID`` is kept out."""

    if fmt == "excel":
        pairs = _pairs_from_excel(content, filename)
    else:
        pairs = parse_caid_pairs(decode_text(content, filename))
    if pairs and pairs[0].site_id.upper() in {"SITE_ID", "SITE ID", "SITEID"}:
        pairs = pairs[1:]
    if not pairs:
        raise ParseFailureError("no SITE_ID,CAID pair found in the upload", detail={"filename": filename})
    return pairs

"""Upload format detection.

Uploads arrive with a declared kind (``sites``, ``caids`` or ``catalog``);
the detector only decides how the bytes should be decoded:

* ``.xlsx`` / ``.xls`` / ``.xlsm`` → ``excel``
* ``.csv`` → ``csv``
* ``.tsv`` / ``.tab`` → ``tsv``
* ``.txt`` → ``tsv`` for catalogs, plain ``text`` otherwise
* ``.json`` → ``json`` (``{"text": ...}`` payloads for site lists)

Anything else is rejected with a parse failure before the worker is
involved.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from backend.core.validation import LookupMissError, ParseFailureError

UPLOAD_KINDS = ("sites", "caids", "catalog")

EXCEL_SUFFIXES = {".xlsx", ".xls", ".xlsm"}
TEXT_SUFFIXES = {".txt", ".text", ""}

SUPPORTED_FORMATS: dict[str, set[str]] = {
    "sites": {"text", "csv", "json"},
    "caids": {"text", "csv", "tsv", "excel"},
    "catalog": {"excel", "csv", "tsv"},
}


@dataclass
class DetectedUpload:
    kind: str
    format: str
    filename: str


def _format_for(suffix: str, kind: str) -> str | None:
    if suffix in EXCEL_SUFFIXES:
        return "excel"
    if suffix == ".csv":
        return "csv"
    if suffix in {".tsv", ".tab"}:
        return "tsv"
    if suffix == ".json":
        return "json"
    if suffix in TEXT_SUFFIXES:
        # catalog exports saved as .txt are tab separated
        return "tsv" if kind == "catalog" else "text"
    return None


def detect(filename: str | None, kind: str) -> DetectedUpload:
    if kind not in UPLOAD_KINDS:
        raise LookupMissError("unknown upload kind", detail={"kind": kind, "supported": list(UPLOAD_KINDS)})
    name = Path(filename or "").name
    fmt = _format_for(Path(name).suffix.lower(), kind)
    if fmt is None or fmt not in SUPPORTED_FORMATS[kind]:
        raise ParseFailureError(
            "unsupported file type",
            detail={"filename": name, "kind": kind},
        )
    return DetectedUpload(kind=kind, format=fmt, filename=name)

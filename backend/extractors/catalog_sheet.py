"""Parser for the OAID catalog spreadsheet."""

from __future__ import annotations

import io

import pandas as pd

from backend.core.catalog import CatalogIndex, load_catalog, resolve_columns
from backend.core.validation import ParseFailureError


def _read_frame(content: bytes, fmt: str) -> pd.DataFrame:
    buffer = io.BytesIO(content)
    if fmt == "excel":
        return pd.read_excel(buffer, sheet_name=0, dtype=str, keep_default_na=False, na_filter=False)
    if fmt == "tsv":
        return pd.read_csv(buffer, sep="\t", dtype=str, encoding="utf-8-sig", keep_default_na=False, na_filter=False)
    return pd.read_csv(buffer, dtype=str, encoding="utf-8-sig", keep_default_na=False, na_filter=False)


def _normalise_columns(dataframe: pd.DataFrame) -> pd.DataFrame:
    renamed = {col: str(col).strip() for col in dataframe.columns}
    dataframe = dataframe.rename(columns=renamed)
    filled = (dataframe.apply(lambda column: column.astype(str).str.strip()) != "").any(axis=1)
    return dataframe[filled]


def parse(content: bytes, fmt: str, filename: str = "") -> CatalogIndex:
    try:
        dataframe = _read_frame(content, fmt)
    except Exception as exc:
        raise ParseFailureError("catalog could not be read", detail={"filename": filename}) from exc
    dataframe = _normalise_columns(dataframe)

    columns = resolve_columns(dataframe.columns)
    missing = [name for name in ("oaid", "long_description") if name not in columns]
    if "region" not in columns and "region_alias" not in columns:
        missing.append("region")
    if missing:
        raise ParseFailureError(
            "catalog is missing required columns",
            detail={"filename": filename, "missing": missing},
        )

    index = load_catalog(dataframe.to_dict(orient="records"))
    if not len(index):
        raise ParseFailureError("catalog has no usable rows", detail={"filename": filename})
    return index

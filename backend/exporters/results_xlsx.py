from __future__ import annotations

import io
from typing import Iterable

import pandas as pd

from backend.core.schema import FinalRow

XLSX_COLUMNS = ["CAID", "OAID", "Quantity"]
SHEET_NAME = "Results"


def _frame(rows: Iterable[FinalRow]) -> pd.DataFrame:
    records = [{"CAID": row.caid, "OAID": row.oaid or "", "Quantity": row.quantity} for row in rows]
    return pd.DataFrame(records, columns=XLSX_COLUMNS)


def to_xlsx(rows: Iterable[FinalRow]) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _frame(rows).to_excel(writer, sheet_name=SHEET_NAME, index=False)
    return buffer.getvalue()


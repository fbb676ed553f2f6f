import io
import sys
from pathlib import Path

from openpyxl import load_workbook

sys.path.append(str(Path(__file__).resolve().parents[1]))

from backend.core.schema import FinalRow
from backend.exporters import results_csv, results_xlsx

DUPLICATE_ROWS = [
    FinalRow(site_id="S1", caid="C1", order=1),
    FinalRow(site_id="S1", caid="C1", order=1),
]
PATTERN_ROWS = [
    FinalRow(site_id="S1", caid="C1", order=1, oaid="O1", quantity=2, long_description="Rack, 42U"),
    FinalRow(site_id="S2", caid="C2", order=2, oaid="O2", quantity=1),
]


def test_csv_simple_header_for_duplicates():
    assert results_csv.to_csv(DUPLICATE_ROWS) == "Order,SITE_ID,CAID\n1,S1,C1\n1,S1,C1"


def test_csv_full_header_without_quoting():
    assert results_csv.to_csv(PATTERN_ROWS) == "Order,SITE_ID,CAID,OAID,Quantity\n1,S1,C1,O1,2\n2,S2,C2,O2,1"


def test_text_and_clipboard_are_tab_separated():
    assert results_csv.to_text(DUPLICATE_ROWS) == "S1\tC1\nS1\tC1"
    assert results_csv.to_text(PATTERN_ROWS) == "S1\tC1\tO1\t2\nS2\tC2\tO2\t1"
    assert results_csv.to_clipboard(PATTERN_ROWS) == results_csv.to_text(PATTERN_ROWS)


def test_xlsx_has_results_sheet():
    content = results_xlsx.to_xlsx(PATTERN_ROWS)

    workbook = load_workbook(io.BytesIO(content))
    sheet = workbook["Results"]
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0] == ("CAID", "OAID", "Quantity")
    assert rows[1] == ("C1", "O1", 2)
    assert rows[2] == ("C2", "O2", 1)

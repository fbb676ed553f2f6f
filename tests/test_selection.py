import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from backend.core.selection import CaidSelection, range_select
from backend.core.validation import LookupMissError

ITEMS = ["A", "B", "C", "D", "E"]


def test_range_select_inclusive():
    assert range_select(ITEMS, "B", "D") == ["B", "C", "D"]


def test_range_select_swapped_endpoints():
    assert range_select(ITEMS, "D", "B") == ["B", "C", "D"]


def test_range_select_skips_consumed_items():
    assert range_select(ITEMS, "A", "E", consumed={"B", "D"}) == ["A", "C", "E"]


def test_range_select_consumed_endpoint_is_not_found():
    with pytest.raises(LookupMissError) as excinfo:
        range_select(ITEMS, "B", "D", consumed={"B"})

    assert excinfo.value.detail == {"missing": ["B"]}


def test_range_select_missing_endpoint_leaves_selection_unchanged():
    selection = CaidSelection(available=list(ITEMS), selected=["A"])

    with pytest.raises(LookupMissError) as excinfo:
        selection.add_range("B", "Z")

    assert excinfo.value.detail == {"missing": ["Z"]}
    assert selection.selected == ["A"]


def test_click_modes():
    selection = CaidSelection(available=list(ITEMS))

    assert selection.click(1) == ["B"]
    assert selection.click(3, shift=True) == ["B", "C", "D"]
    assert selection.click(2, ctrl=True) == ["B", "D"]
    assert selection.click(0) == ["A"]


def test_click_out_of_range():
    selection = CaidSelection(available=list(ITEMS))

    with pytest.raises(LookupMissError):
        selection.click(9)


def test_add_range_merges_without_duplicates():
    selection = CaidSelection(available=list(ITEMS), selected=["C"])

    added = selection.add_range("B", "D")

    assert added == ["B", "C", "D"]
    assert selection.selected == ["C", "B", "D"]

    selection.toggle("C")
    assert selection.selected == ["B", "D"]
    selection.clear()
    assert selection.selected == []

# tests/test_cell_values.py
from datetime import date, datetime

import pytest

from app.utils.cell_values import (
    cell_text,
    is_blank,
    normalize_text,
    to_date,
    to_iso_date,
    to_number,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1,234", 1234.0),
        (" 12 ", 12.0),
        ("2.5", 2.5),
        (10, 10.0),
        (3.75, 3.75),
        ("0", 0.0),
    ],
)
def test_to_number_parses(value, expected):
    assert to_number(value) == expected


@pytest.mark.parametrize("value", [None, "", "   ", "abc", "1,2,3x", True, float("nan")])
def test_to_number_unusable_values_are_none(value):
    assert to_number(value) is None


def test_short_year_dates():
    assert to_date("25.12.22") == date(2025, 12, 22)
    assert to_date("99.1.2") == date(1999, 1, 2)
    assert to_date("70.01.01") == date(1970, 1, 1)
    assert to_date("69.01.01") == date(2069, 1, 1)


def test_long_year_dates():
    assert to_date("2025-12-22") == date(2025, 12, 22)
    assert to_date("2025.12.22") == date(2025, 12, 22)
    assert to_date("2025-1-5") == date(2025, 1, 5)


@pytest.mark.parametrize("value", ["22/25/99", "25.13.40", "2025/12/22", "yesterday", "", None])
def test_other_shapes_give_none(value):
    assert to_date(value) is None


def test_spreadsheet_serials():
    assert to_date(44927) == date(2023, 1, 1)
    assert to_date(45000.5) == date(2023, 3, 15)
    assert to_date(0) is None
    assert to_date(-3) is None


def test_datetime_cells():
    assert to_date(datetime(2025, 12, 22, 9, 30)) == date(2025, 12, 22)
    assert to_date(date(2025, 12, 22)) == date(2025, 12, 22)
    assert to_iso_date("25.12.22") == "2025-12-22"
    assert to_iso_date("nope") is None


def test_text_helpers():
    assert normalize_text("  (Item   Name) ") == "item name"
    assert normalize_text("[수량]") == "수량"
    assert cell_text(2.0) == "2"
    assert cell_text(None) == ""
    assert is_blank("  ")
    assert not is_blank(0)

# File: app/utils/cell_values.py
"""
Normalization helpers for raw spreadsheet cell values.

openpyxl hands back str, int, float, datetime or None per cell. These helpers
turn them into the numbers, dates and comparable text the import pipeline
works with. None of them raise on bad input; unusable values become None.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Optional

from openpyxl.utils.datetime import from_excel

SHORT_YEAR_DATE = re.compile(r"^(\d{2})\.(\d{1,2})\.(\d{1,2})\.?$")
LONG_YEAR_DATE = re.compile(r"^(\d{4})[-.](\d{1,2})[-.](\d{1,2})\.?$")

# Brackets and punctuation dropped from header text before matching
HEADER_PUNCTUATION = re.compile(r"[()\[\]{}<>（）【】「」『』.,:;·•/\\\-_*#'\"~!?]")
WHITESPACE = re.compile(r"\s+")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def cell_text(value: Any) -> str:
    """Display text of a cell. Whole floats lose their trailing '.0'."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def normalize_text(value: Any) -> str:
    """
    Comparable form of a header cell: trimmed, lowercased, internal whitespace
    collapsed to one space, brackets and punctuation removed.

    >>> normalize_text("  (Item   Name) ")
    'item name'
    """
    text = cell_text(value).lower()
    text = HEADER_PUNCTUATION.sub(" ", text)
    return WHITESPACE.sub(" ", text).strip()


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a cell to a float.

    Strings have thousands separators and surrounding whitespace removed
    ("1,234" -> 1234.0). Booleans, NaN and anything unparseable give None.
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return None if math.isnan(number) or math.isinf(number) else number
    if isinstance(value, str):
        text = value.strip().replace(",", "").replace(" ", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) or math.isinf(number) else number
    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def to_date(value: Any) -> Optional[date]:
    """
    Coerce a cell to a calendar date.

    - datetime/date cells are used as-is
    - numbers are spreadsheet serial day counts (1900 date system, including
      its phantom 1900-02-29)
    - strings must look like YY.M.D (YY >= 70 is 19YY, else 20YY) or
      YYYY-M-D / YYYY.M.D

    Every other shape, and impossible calendar dates, give None.
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        if value <= 0 or math.isnan(value):
            return None
        try:
            converted = from_excel(value)
        except (ValueError, OverflowError, TypeError):
            return None
        if isinstance(converted, datetime):
            return converted.date()
        return converted if isinstance(converted, date) else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    match = SHORT_YEAR_DATE.match(text)
    if match:
        yy, month, day = (int(part) for part in match.groups())
        year = 1900 + yy if yy >= 70 else 2000 + yy
        return _safe_date(year, month, day)

    match = LONG_YEAR_DATE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    return None


def to_iso_date(value: Any) -> Optional[str]:
    parsed = to_date(value)
    return parsed.isoformat() if parsed else None

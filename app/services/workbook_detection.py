# File: app/services/workbook_detection.py
"""
Header and category detection for expense workbooks.

Everything here is a pure function over a grid of raw cell values (a list of
row tuples, as openpyxl's iter_rows(values_only=True) yields them). Header
recognition is driven by a rule table mapping each logical field to a weight
and a list of accepted header synonyms, so the table can be swapped or
extended without touching the scan.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.utils.cell_values import cell_text, is_blank, normalize_text

# Logical fields
EVIDENCE_NO = "evidence_no"
ITEM_NAME = "item_name"
QUANTITY = "quantity"
UNIT_PRICE = "unit_price"
AMOUNT = "amount"
USED_AT = "used_at"

REQUIRED_FIELDS = (ITEM_NAME, QUANTITY)


@dataclass(frozen=True)
class HeaderRule:
    field: str
    weight: int
    synonyms: Tuple[str, ...]


DEFAULT_HEADER_RULES: Tuple[HeaderRule, ...] = (
    HeaderRule(
        ITEM_NAME,
        5,
        ("품명", "품목", "품목명", "사용내역", "내역", "item", "item name", "description"),
    ),
    HeaderRule(QUANTITY, 3, ("수량", "qty", "quantity")),
    HeaderRule(
        USED_AT,
        1,
        ("사용일자", "사용일", "일자", "날짜", "구입일", "구입일자", "date", "used at"),
    ),
    HeaderRule(UNIT_PRICE, 1, ("단가", "unit price", "price")),
    HeaderRule(AMOUNT, 1, ("금액", "사용금액", "amount")),
    HeaderRule(EVIDENCE_NO, 1, ("번호", "순번", "증빙번호", "no", "seq")),
)

TOTAL_LABELS = frozenset({"계", "합계", "총계", "소계", "total", "subtotal"})

CATEGORY_ROW = re.compile(r"^\s*(\d+)\s*\.\s*([^\d\s].*)$")

CATEGORY_KEYS_BY_NUMBER: Dict[int, str] = {
    2: "safety_facility",
    3: "ppe",
    4: "safety_diagnosis",
}

# Substring -> key, checked in order when the number has no mapping
CATEGORY_KEYS_BY_TEXT: Tuple[Tuple[str, str], ...] = (
    ("개인보호구", "ppe"),
    ("보호구", "ppe"),
    ("personal protective", "ppe"),
    ("안전시설", "safety_facility"),
    ("safety facilit", "safety_facility"),
    ("안전진단", "safety_diagnosis"),
    ("safety diagnos", "safety_diagnosis"),
)


@dataclass
class HeaderMatch:
    """Best header candidate: 0-based row index, its score and the column map."""

    index: int
    score: int
    columns: Dict[str, int] = field(default_factory=dict)

    @property
    def row_number(self) -> int:
        return self.index + 1

    def missing_required(self) -> List[str]:
        return [name for name in REQUIRED_FIELDS if name not in self.columns]


@dataclass(frozen=True)
class CategoryMatch:
    number: int
    title: str
    key: str


def _compact(text: str) -> str:
    return text.replace(" ", "")


def header_cell_matches(value: Any, synonyms: Sequence[str]) -> bool:
    """
    True if a header cell names one of the synonyms.

    The normalized cell must equal a synonym, ignoring spaces, or start with
    one as its first word ("품명 규격", "수량 ea").
    """
    text = normalize_text(value)
    if not text:
        return False
    compact = _compact(text)
    first_word = text.split(" ", 1)[0]
    for synonym in synonyms:
        target = _compact(normalize_text(synonym))
        if compact == target or first_word == target:
            return True
    return False


def map_columns(
    row: Sequence[Any], rules: Sequence[HeaderRule] = DEFAULT_HEADER_RULES
) -> Dict[str, int]:
    """
    Map each field to the first column whose header matches one of its synonyms.
    A column is claimed by at most one field; rules earlier in the table win.
    """
    columns: Dict[str, int] = {}
    claimed = set()
    for rule in rules:
        for col, value in enumerate(row):
            if col in claimed:
                continue
            if header_cell_matches(value, rule.synonyms):
                columns[rule.field] = col
                claimed.add(col)
                break
    return columns


def score_header_row(
    row: Sequence[Any], rules: Sequence[HeaderRule] = DEFAULT_HEADER_RULES
) -> int:
    return sum(rule.weight for rule in rules if rule.field in map_columns(row, (rule,)))


def find_header_row(
    rows: Sequence[Sequence[Any]],
    rules: Sequence[HeaderRule] = DEFAULT_HEADER_RULES,
    scan_rows: int = 40,
) -> Optional[HeaderMatch]:
    """
    Score the first `scan_rows` rows and return the best one.

    Ties keep the earliest row. Returns None when no row scores above zero.
    """
    best: Optional[HeaderMatch] = None
    for index, row in enumerate(rows[:scan_rows]):
        score = score_header_row(row, rules)
        if score > 0 and (best is None or score > best.score):
            best = HeaderMatch(index=index, score=score)

    if best is not None:
        best.columns = map_columns(rows[best.index], rules)
    return best


def category_key_for(number: int, title: str) -> str:
    """Stable key for a category: by number, then by title text, else cat_{number}."""
    if number in CATEGORY_KEYS_BY_NUMBER:
        return CATEGORY_KEYS_BY_NUMBER[number]
    lowered = title.lower()
    for needle, key in CATEGORY_KEYS_BY_TEXT:
        if needle in lowered:
            return key
    return f"cat_{number}"


def _match_category_text(text: str) -> Optional[CategoryMatch]:
    match = CATEGORY_ROW.match(text)
    if not match:
        return None
    number = int(match.group(1))
    title = match.group(2).strip()
    return CategoryMatch(number=number, title=title, key=category_key_for(number, title))


def detect_category(row: Sequence[Any]) -> Optional[CategoryMatch]:
    """
    Recognize a category boundary row such as "2. 안전시설물".

    The joined text of all non-empty cells is tried first, then each cell.
    """
    texts = [cell_text(value) for value in row if not is_blank(value)]
    if not texts:
        return None
    found = _match_category_text(" ".join(texts))
    if found:
        return found
    for text in texts:
        found = _match_category_text(text)
        if found:
            return found
    return None


def is_total_label(value: Any) -> bool:
    return _compact(normalize_text(value)) in TOTAL_LABELS

# File: app/services/row_parser.py
"""
Detail row parsing for expense workbooks.

A RowParser walks the body rows below the header one at a time. It tracks the
active category (set by category rows such as "3. 개인보호구") and the
per-category evidence counter, and turns each detail row into a ParsedRow, a
captured total row, or a row-level warning.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Union

from app.services.workbook_detection import (
    AMOUNT,
    EVIDENCE_NO,
    ITEM_NAME,
    QUANTITY,
    UNIT_PRICE,
    USED_AT,
    CategoryMatch,
    detect_category,
    is_total_label,
)
from app.utils.cell_values import cell_text, is_blank, to_date, to_number

logger = logging.getLogger(__name__)


@dataclass
class ParsedRow:
    """A normalized detail row, ready to be persisted."""

    row_number: int
    category_key: str
    category_no: Optional[int]
    evidence_no: int
    item_name: str
    quantity: float
    unit_price: Optional[float] = None
    amount: Optional[float] = None
    used_at: Optional[date] = None
    raw: tuple = field(default_factory=tuple, repr=False)

    def to_record(self, document_id: str) -> Dict[str, Any]:
        return {
            "document_id": document_id,
            "category_key": self.category_key,
            "category_no": self.category_no,
            "evidence_no": self.evidence_no,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "amount": self.amount,
            "used_at": self.used_at,
            "source": "excel",
        }


@dataclass
class TotalRowInfo:
    """A 계/합계/소계 row. Never persisted, kept for the amount cross-check."""

    row_number: int
    category_key: Optional[str]
    label: str
    quantity: Optional[float]
    amount: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row_number,
            "category_key": self.category_key,
            "label": self.label,
            "quantity": self.quantity,
            "amount": self.amount,
        }


@dataclass
class RowWarning:
    row_number: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row_number, "reason": self.reason}


RowOutcome = Union[ParsedRow, TotalRowInfo, RowWarning, CategoryMatch, None]


def _cell(values: Sequence[Any], col: Optional[int]) -> Any:
    if col is None or col >= len(values):
        return None
    return values[col]


def fallback_quantity(
    values: Sequence[Any], exclude: Sequence[int] = (), ceiling: float = 100000
) -> Optional[float]:
    """
    Smallest positive number below `ceiling` among the row's cells, skipping
    the excluded columns. Used only when the quantity cell cannot be coerced.
    """
    candidates = []
    for col, value in enumerate(values):
        if col in exclude:
            continue
        number = to_number(value)
        if number is not None and 0 < number < ceiling:
            candidates.append(number)
    return min(candidates) if candidates else None


class RowParser:
    """
    Stateful parser for the body of one worksheet.

    Args:
        columns: Field -> 0-based column index, from header detection
        quantity_fallback: Scan the row for a plausible quantity when the
            quantity cell does not coerce to a number
        fallback_ceiling: Upper bound (exclusive) for fallback candidates
    """

    def __init__(
        self,
        columns: Dict[str, int],
        quantity_fallback: bool = False,
        fallback_ceiling: float = 100000,
    ):
        self.columns = columns
        self.quantity_fallback = quantity_fallback
        self.fallback_ceiling = fallback_ceiling
        self.category: Optional[CategoryMatch] = None
        self._evidence_counter = 0
        self.warnings: List[RowWarning] = []

    def _fallback_excluded_columns(self) -> List[int]:
        return [
            self.columns[name]
            for name in (EVIDENCE_NO, USED_AT, ITEM_NAME)
            if name in self.columns
        ]

    def _warn(self, row_number: int, reason: str) -> RowWarning:
        warning = RowWarning(row_number, reason)
        self.warnings.append(warning)
        logger.warning(f"Row {row_number}: {reason}")
        return warning

    def feed(self, row_number: int, values: Sequence[Any]) -> RowOutcome:
        """
        Parse one body row.

        Returns None for blank rows, the CategoryMatch for category rows, a
        TotalRowInfo for total rows, a RowWarning for rejected rows and a
        ParsedRow for accepted detail rows.
        """
        if all(is_blank(value) for value in values):
            return None

        category = detect_category(values)
        if category is not None:
            self.category = category
            self._evidence_counter = 0
            logger.debug(f"Row {row_number}: category {category.number} -> {category.key}")
            return category

        name = cell_text(_cell(values, self.columns.get(ITEM_NAME)))
        if is_total_label(name):
            return TotalRowInfo(
                row_number=row_number,
                category_key=self.category.key if self.category else None,
                label=name,
                quantity=to_number(_cell(values, self.columns.get(QUANTITY))),
                amount=to_number(_cell(values, self.columns.get(AMOUNT))),
            )

        if self.category is None:
            return self._warn(row_number, "row appears before any category row")
        if not name:
            return self._warn(row_number, "item name is blank")

        quantity = to_number(_cell(values, self.columns.get(QUANTITY)))
        if quantity is None and self.quantity_fallback:
            quantity = fallback_quantity(
                values, self._fallback_excluded_columns(), self.fallback_ceiling
            )
            if quantity is not None:
                logger.info(f"Row {row_number}: quantity taken from fallback scan ({quantity})")
        if quantity is None:
            return self._warn(row_number, f"quantity is missing or not a number for '{name}'")
        if quantity <= 0:
            return self._warn(row_number, f"quantity must be positive for '{name}' (got {quantity:g})")

        unit_price = self._optional_amount(row_number, values, UNIT_PRICE, "unit price")
        amount = self._optional_amount(row_number, values, AMOUNT, "amount")

        raw_date = _cell(values, self.columns.get(USED_AT))
        used_at = to_date(raw_date)
        if used_at is None and not is_blank(raw_date):
            self._warn(row_number, f"unrecognized date '{cell_text(raw_date)}', left empty")

        self._evidence_counter += 1
        return ParsedRow(
            row_number=row_number,
            category_key=self.category.key,
            category_no=self.category.number,
            evidence_no=self._evidence_counter,
            item_name=name,
            quantity=quantity,
            unit_price=unit_price,
            amount=amount,
            used_at=used_at,
            raw=tuple(values),
        )

    def _optional_amount(
        self, row_number: int, values: Sequence[Any], field_name: str, label: str
    ) -> Optional[float]:
        value = to_number(_cell(values, self.columns.get(field_name)))
        if value is not None and value < 0:
            self._warn(row_number, f"negative {label} {value:g} ignored")
            return None
        return value

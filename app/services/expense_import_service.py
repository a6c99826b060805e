# File: app/services/expense_import_service.py

"""
Workbook import service for expense documents.

Reads the first worksheet of an uploaded .xlsx workbook, locates the header
row and the category blocks, turns every detail row into a normalized item
record and commits the batch for one document.

The import is all-or-nothing:
- workbook shape problems (unreadable file, no header, missing mandatory
  column) raise WorkbookFormatException before anything is written
- batch validation problems (duplicate evidence numbers, no valid rows)
  raise ImportValidationException before anything is written
- the commit itself runs in a single transaction

Row-level problems (blank name, bad quantity, odd date) are skipped and
reported back as warnings with their 1-based row numbers.

Commit modes, exactly one per call:
- upsert: insert or update on (document_id, category_key, evidence_no)
- replace: delete every item of the document, then insert the batch
- skip_existing: skip rows whose (item_name, used_at, quantity) already
  exists in the document; the rest are appended after the category's
  highest evidence number
"""

from collections import defaultdict
from dataclasses import dataclass, field, replace
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence
from zipfile import BadZipFile
import logging

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.orm import Session

from app.core.exceptions import (
    EntityNotFoundException,
    ImportValidationException,
    ValidationException,
    WorkbookFormatException,
)
from app.repositories.expense_document_repository import ExpenseDocumentRepository
from app.repositories.expense_item_repository import ExpenseItemRepository
from app.services.base_service import BaseService
from app.services.row_parser import ParsedRow, RowParser, RowWarning, TotalRowInfo
from app.services.workbook_detection import (
    DEFAULT_HEADER_RULES,
    HeaderMatch,
    HeaderRule,
    find_header_row,
)

logger = logging.getLogger(__name__)

COMMIT_MODES = ("upsert", "replace", "skip_existing")
GRAND_TOTAL_LABELS = ("합계", "총계", "total")


@dataclass(frozen=True)
class ImportOptions:
    """Knobs for one import run."""

    header_scan_rows: int = 40
    quantity_fallback: bool = False
    quantity_fallback_ceiling: float = 100000
    commit_mode: str = "upsert"
    header_rules: Sequence[HeaderRule] = DEFAULT_HEADER_RULES

    @classmethod
    def from_settings(cls, settings) -> "ImportOptions":
        return cls(
            header_scan_rows=settings.IMPORT_HEADER_SCAN_ROWS,
            quantity_fallback=settings.IMPORT_QUANTITY_FALLBACK,
            quantity_fallback_ceiling=settings.IMPORT_QUANTITY_FALLBACK_CEILING,
            commit_mode=settings.IMPORT_COMMIT_MODE,
        )

    def with_overrides(
        self, mode: Optional[str] = None, quantity_fallback: Optional[bool] = None
    ) -> "ImportOptions":
        options = self
        if mode is not None:
            mode = mode.strip().lower()
            if mode not in COMMIT_MODES:
                raise ValidationException(
                    f"Unknown import mode '{mode}'",
                    {"mode": [f"must be one of: {', '.join(COMMIT_MODES)}"]},
                )
            options = replace(options, commit_mode=mode)
        if quantity_fallback is not None:
            options = replace(options, quantity_fallback=quantity_fallback)
        return options


@dataclass
class WorkbookParse:
    """Everything extracted from one worksheet, before any write."""

    header: HeaderMatch
    rows: List[ParsedRow] = field(default_factory=list)
    warnings: List[RowWarning] = field(default_factory=list)
    totals: List[TotalRowInfo] = field(default_factory=list)

    @property
    def category_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for row in self.rows:
            counts[row.category_key] = counts.get(row.category_key, 0) + 1
        return counts


class ImportResult:
    """Container for import results and statistics."""

    def __init__(self, mode: str, header_row: int):
        self.mode = mode
        self.header_row = header_row
        self.committed = 0
        self.skipped = 0
        self.category_counts: Dict[str, int] = {}
        self.warnings: List[Dict[str, Any]] = []
        self.totals: List[Dict[str, Any]] = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert results to dictionary."""
        return {
            "committed": self.committed,
            "skipped": self.skipped,
            "mode": self.mode,
            "header_row": self.header_row,
            "category_counts": self.category_counts,
            "warnings": self.warnings,
            "totals": self.totals,
        }


def read_first_sheet(data: bytes) -> List[tuple]:
    """
    Load a workbook and return the first worksheet as a list of row tuples,
    starting at worksheet row 1.
    """
    try:
        workbook = load_workbook(BytesIO(data), data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as e:
        raise WorkbookFormatException(
            "Workbook could not be read, upload an .xlsx file",
            {"reason": str(e)},
        )

    try:
        if not workbook.worksheets:
            raise WorkbookFormatException("Workbook has no worksheets")
        sheet = workbook.worksheets[0]
        return [tuple(row) for row in sheet.iter_rows(min_row=1, values_only=True)]
    finally:
        workbook.close()


def parse_rows(grid: Sequence[Sequence[Any]], options: ImportOptions) -> WorkbookParse:
    """Detect the header and parse every body row below it."""
    if not grid:
        raise WorkbookFormatException("The first worksheet is empty")

    header = find_header_row(grid, options.header_rules, options.header_scan_rows)
    if header is None:
        raise WorkbookFormatException(
            f"No header row found in the first {options.header_scan_rows} rows",
            {"scanned_rows": min(len(grid), options.header_scan_rows)},
        )

    missing = header.missing_required()
    if missing:
        raise WorkbookFormatException(
            f"Header row {header.row_number} is missing required column(s): {', '.join(missing)}",
            {"header_row": header.row_number, "missing_columns": missing, "columns": header.columns},
        )

    logger.info(
        f"Header detected at row {header.row_number} (score {header.score}), columns {header.columns}"
    )

    parser = RowParser(
        header.columns,
        quantity_fallback=options.quantity_fallback,
        fallback_ceiling=options.quantity_fallback_ceiling,
    )
    result = WorkbookParse(header=header)
    for index in range(header.index + 1, len(grid)):
        outcome = parser.feed(index + 1, grid[index])
        if isinstance(outcome, ParsedRow):
            result.rows.append(outcome)
        elif isinstance(outcome, TotalRowInfo):
            result.totals.append(outcome)

    result.warnings = parser.warnings
    result.warnings.extend(cross_check_totals(result.rows, result.totals))
    return result


def cross_check_totals(rows: List[ParsedRow], totals: List[TotalRowInfo]) -> List[RowWarning]:
    """
    Compare total rows with the sum of the item amounts they cover.

    합계/총계/total rows cover the whole sheet, other total rows cover their
    category. Totals without an amount, or with no item amounts to compare, are
    ignored. Mismatches are warnings, not errors.
    """
    by_category: Dict[str, List[float]] = defaultdict(list)
    everything: List[float] = []
    for row in rows:
        if row.amount is not None:
            by_category[row.category_key].append(row.amount)
            everything.append(row.amount)

    warnings = []
    for total in totals:
        if total.amount is None:
            continue
        label = total.label.replace(" ", "").lower()
        if label in GRAND_TOTAL_LABELS or total.category_key is None:
            amounts = everything
        else:
            amounts = by_category.get(total.category_key, [])
        if not amounts:
            continue
        expected = sum(amounts)
        if abs(expected - total.amount) > 0.5:
            reason = (
                f"total row '{total.label}' amount {total.amount:,.0f} differs "
                f"from the sum of item amounts {expected:,.0f}"
            )
            logger.warning(f"Row {total.row_number}: {reason}")
            warnings.append(RowWarning(total.row_number, reason))
    return warnings


def validate_batch(rows: List[ParsedRow], warnings: List[RowWarning]) -> None:
    """
    Batch-level checks run before any write.

    Raises:
        ImportValidationException: no valid rows, invalid records, or two rows
            sharing (category_key, evidence_no)
    """
    if not rows:
        raise ImportValidationException(
            "No valid item rows were found in the workbook",
            [w.to_dict() for w in warnings],
            rule_name="no_valid_rows",
        )

    invalid = [
        {"row": r.row_number, "reason": "blank item name or non-positive quantity"}
        for r in rows
        if not r.item_name.strip() or r.quantity is None or r.quantity <= 0
    ]
    if invalid:
        raise ImportValidationException(
            f"{len(invalid)} invalid item row(s)", invalid, rule_name="invalid_rows"
        )

    seen: Dict[tuple, List[int]] = defaultdict(list)
    for row in rows:
        seen[(row.category_key, row.evidence_no)].append(row.row_number)

    duplicates = [
        {"category_key": key[0], "evidence_no": key[1], "rows": row_numbers}
        for key, row_numbers in seen.items()
        if len(row_numbers) > 1
    ]
    if duplicates:
        rows_text = "; ".join(
            f"{d['category_key']} NO.{d['evidence_no']}: rows {', '.join(map(str, d['rows']))}"
            for d in duplicates
        )
        raise ImportValidationException(
            f"Duplicate evidence numbers ({rows_text})",
            duplicates,
            rule_name="duplicate_evidence_no",
        )


class ExpenseImportService(BaseService):
    """
    Service running the workbook import pipeline against one document.
    """

    entity_name = "ExpenseItem"

    def __init__(
        self,
        session: Session,
        options: Optional[ImportOptions] = None,
        item_repository: Optional[ExpenseItemRepository] = None,
        document_repository: Optional[ExpenseDocumentRepository] = None,
    ):
        super().__init__(session, repository=item_repository or ExpenseItemRepository(session))
        self.options = options or ImportOptions()
        self.document_repository = document_repository or ExpenseDocumentRepository(session)

    def parse_workbook(self, data: bytes, options: Optional[ImportOptions] = None) -> WorkbookParse:
        """Parse without writing anything."""
        return parse_rows(read_first_sheet(data), options or self.options)

    def import_workbook(
        self,
        document_id: str,
        data: bytes,
        mode: Optional[str] = None,
        quantity_fallback: Optional[bool] = None,
    ) -> ImportResult:
        """
        Parse, validate and commit a workbook for a document.

        Args:
            document_id: Target document
            data: Raw .xlsx bytes
            mode: upsert, replace or skip_existing (defaults to the configured mode)
            quantity_fallback: Override the configured quantity fallback flag

        Returns:
            ImportResult with committed/skipped counts and row warnings
        """
        options = self.options.with_overrides(mode=mode, quantity_fallback=quantity_fallback)

        if self.document_repository.get_by_id(document_id) is None:
            raise EntityNotFoundException("ExpenseDocument", document_id)

        parsed = self.parse_workbook(data, options)
        validate_batch(parsed.rows, parsed.warnings)

        result = ImportResult(options.commit_mode, parsed.header.row_number)
        result.category_counts = parsed.category_counts
        result.warnings = [w.to_dict() for w in parsed.warnings]
        result.totals = [t.to_dict() for t in parsed.totals]

        records = [row.to_record(document_id) for row in parsed.rows]
        with self.transaction():
            if options.commit_mode == "replace":
                self.repository.delete_by_document(document_id)
                result.committed = self.repository.insert_items(records)
            elif options.commit_mode == "skip_existing":
                fresh = self._without_existing(document_id, records)
                result.skipped = len(records) - len(fresh)
                result.committed = self.repository.insert_items(fresh)
            else:
                result.committed = self.repository.upsert_items(records)

        logger.info(
            f"Imported {result.committed} items into document {document_id} "
            f"(mode={options.commit_mode}, skipped={result.skipped}, "
            f"categories={result.category_counts}, warnings={len(result.warnings)})"
        )
        return result

    def _without_existing(
        self, document_id: str, records: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """
        Drop records whose content key already exists and renumber the rest
        after the highest evidence number of their category.
        """
        existing = self.repository.content_keys(document_id)
        next_numbers: Dict[str, int] = {}
        fresh = []
        for record in records:
            key = (record["item_name"], record["used_at"], float(record["quantity"]))
            if key in existing:
                continue
            existing.add(key)
            category = record["category_key"]
            if category not in next_numbers:
                next_numbers[category] = self.repository.next_evidence_no(document_id, category)
            fresh.append(dict(record, evidence_no=next_numbers[category]))
            next_numbers[category] += 1
        return fresh

#!/usr/bin/env python
"""
Write a starter export template.

The workbook has the summary sheet first (header labels on row 7, category
blocks starting on rows 8, 20 and 60) and the photo sheet the export clones
once per item (inbound block B6:E15, install block F6:I15). Site-specific
templates are normally edited from this one in a spreadsheet program.
"""

import sys
import logging
import argparse
from pathlib import Path

script_dir = Path(__file__).resolve().parent
project_root = script_dir.parent if script_dir.name == "scripts" else script_dir
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, Side

from app.core.config import settings
from app.services.expense_export_service import DEFAULT_ROW_STARTS, DEFAULT_SUMMARY_COLUMNS

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

SUMMARY_LABELS = {
    "used_at": "사용일자",
    "item_name": "품명",
    "quantity": "수량",
    "unit_price": "단가",
    "amount": "금액",
    "evidence_no": "증빙번호",
}

CATEGORY_TITLES = {2: "2. 안전시설물", 3: "3. 개인보호구", 9: "9. 안전진단비"}


def build_summary(sheet) -> None:
    sheet.title = "항목별 사용내역서"
    sheet["B2"] = "항목별 사용내역서"
    sheet["B2"].font = Font(bold=True, size=16)
    sheet.merge_cells("B2:G3")
    sheet["B2"].alignment = Alignment(horizontal="center", vertical="center")

    for field_name, column in DEFAULT_SUMMARY_COLUMNS.items():
        cell = sheet[f"{column}7"]
        cell.value = SUMMARY_LABELS[field_name]
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="center")

    for number, start in DEFAULT_ROW_STARTS.items():
        sheet[f"A{start}"] = CATEGORY_TITLES.get(number, f"{number}.")
        for row in range(start, start + 10):
            sheet[f"B{row}"].number_format = "yyyy-mm-dd"
            sheet[f"E{row}"].number_format = "#,##0"
            sheet[f"F{row}"].number_format = "#,##0"

    sheet.column_dimensions["A"].width = 16
    sheet.column_dimensions["B"].width = 12
    sheet.column_dimensions["C"].width = 30


def build_photo_sheet(sheet) -> None:
    thin = Side(style="thin")
    box = Border(left=thin, right=thin, top=thin, bottom=thin)

    sheet["B2"] = "사진대지"
    sheet["B2"].font = Font(bold=True, size=16)
    sheet["B2"].alignment = Alignment(horizontal="center", vertical="center")
    sheet.merge_cells("B2:I3")

    for ref, label in (("B5", "반입 사진"), ("F5", "지급·설치 사진")):
        sheet[ref] = label
        sheet[ref].font = Font(bold=True)
        sheet[ref].alignment = Alignment(horizontal="center")
    sheet.merge_cells("B5:E5")
    sheet.merge_cells("F5:I5")

    for row in range(5, 16):
        sheet.row_dimensions[row].height = 30 if row > 5 else 20
        for col in "BCDEFGHI":
            sheet[f"{col}{row}"].border = box
    for col in "BCDEFGHI":
        sheet.column_dimensions[col].width = 14.5

    sheet.page_setup.orientation = "landscape"
    sheet.page_setup.fitToWidth = 1
    sheet.sheet_properties.pageSetUpPr.fitToPage = True


def main():
    parser = argparse.ArgumentParser(description="Write a starter export template.")
    parser.add_argument("--output", default=settings.EXPORT_TEMPLATE_PATH, help="Target .xlsx path")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing file")
    args = parser.parse_args()

    output = Path(args.output)
    if output.exists() and not args.force:
        logger.error(f"{output} already exists, use --force to overwrite")
        sys.exit(1)

    wb = Workbook()
    build_summary(wb.active)
    build_photo_sheet(wb.create_sheet(settings.PHOTO_SHEET_NAME))

    output.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output)
    logger.info(f"Template written to {output}")


if __name__ == "__main__":
    main()

# File: app/services/worksheet_template.py
"""
Worksheet templates as plain data.

A SheetTemplate is a snapshot of a worksheet's layout: cell values and styles,
merged ranges, row heights, column dimensions and a few page settings. It is
captured once from the template sheet and rendered into as many new sheets as
needed. Charts, images and conditional formatting are not carried over.

Styles are stored as openpyxl StyleArray objects, which index into the owning
workbook's style tables, so a captured template must be rendered into the same
workbook it was captured from.
"""

import logging
from copy import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from openpyxl.cell.cell import MergedCell
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.properties import PageSetupProperties
from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger(__name__)


@dataclass
class CellSpec:
    row: int
    column: int
    value: Any = None
    style: Any = None


@dataclass
class ColumnSpec:
    width: Optional[float] = None
    hidden: bool = False
    outline_level: int = 0
    best_fit: bool = False


@dataclass
class SheetTemplate:
    cells: List[CellSpec] = field(default_factory=list)
    merged_ranges: List[str] = field(default_factory=list)
    row_heights: Dict[int, float] = field(default_factory=dict)
    columns: Dict[str, ColumnSpec] = field(default_factory=dict)
    default_row_height: Optional[float] = None
    freeze_panes: Optional[str] = None
    page_setup: Dict[str, Any] = field(default_factory=dict)
    page_margins: Any = None
    fit_to_page: Optional[bool] = None

    @classmethod
    def capture(cls, sheet: Worksheet) -> "SheetTemplate":
        """Snapshot a worksheet's layout."""
        template = cls()
        for row in sheet.iter_rows():
            for cell in row:
                # Merged-away cells have no value of their own
                if isinstance(cell, MergedCell):
                    continue
                if cell.value is None and not cell.has_style:
                    continue
                template.cells.append(
                    CellSpec(
                        row=cell.row,
                        column=cell.column,
                        value=cell.value,
                        style=copy(cell._style) if cell.has_style else None,
                    )
                )

        template.merged_ranges = [str(merged) for merged in sheet.merged_cells.ranges]

        for index, dimension in sheet.row_dimensions.items():
            if dimension.height is not None:
                template.row_heights[index] = dimension.height

        for key, dimension in sheet.column_dimensions.items():
            template.columns[key] = ColumnSpec(
                width=dimension.width,
                hidden=bool(dimension.hidden),
                outline_level=dimension.outlineLevel or 0,
                best_fit=bool(dimension.bestFit),
            )

        template.default_row_height = sheet.sheet_format.defaultRowHeight
        template.freeze_panes = sheet.freeze_panes
        template.page_setup = {
            "orientation": sheet.page_setup.orientation,
            "paperSize": sheet.page_setup.paperSize,
            "fitToWidth": sheet.page_setup.fitToWidth,
            "fitToHeight": sheet.page_setup.fitToHeight,
            "scale": sheet.page_setup.scale,
        }
        template.page_margins = copy(sheet.page_margins)
        if sheet.sheet_properties.pageSetUpPr is not None:
            template.fit_to_page = sheet.sheet_properties.pageSetUpPr.fitToPage
        return template

    @property
    def dimensions(self) -> Tuple[int, int]:
        """(max_row, max_column) covered by the captured cells."""
        if not self.cells:
            return 0, 0
        return max(c.row for c in self.cells), max(c.column for c in self.cells)

    def render(self, workbook: Workbook, title: str, index: Optional[int] = None) -> Worksheet:
        """Create a new sheet called `title` laid out like the template."""
        sheet = workbook.create_sheet(title=title, index=index)
        self.apply(sheet)
        return sheet

    def apply(self, sheet: Worksheet) -> None:
        for spec in self.cells:
            target = sheet.cell(row=spec.row, column=spec.column)
            target.value = spec.value
            if spec.style is not None:
                target._style = copy(spec.style)

        for index, height in self.row_heights.items():
            sheet.row_dimensions[index].height = height

        for key, spec in self.columns.items():
            dimension = sheet.column_dimensions[key]
            dimension.width = spec.width
            dimension.hidden = spec.hidden
            dimension.outlineLevel = spec.outline_level
            dimension.bestFit = spec.best_fit

        for merged in self.merged_ranges:
            sheet.merge_cells(merged)

        if self.default_row_height is not None:
            sheet.sheet_format.defaultRowHeight = self.default_row_height
        sheet.freeze_panes = self.freeze_panes
        for name, value in self.page_setup.items():
            if value is not None:
                setattr(sheet.page_setup, name, value)
        if self.page_margins is not None:
            sheet.page_margins = copy(self.page_margins)
        if self.fit_to_page is not None:
            if sheet.sheet_properties.pageSetUpPr is None:
                sheet.sheet_properties.pageSetUpPr = PageSetupProperties()
            sheet.sheet_properties.pageSetUpPr.fitToPage = self.fit_to_page


def clone_sheet(workbook: Workbook, source: Worksheet, title: str) -> Worksheet:
    """Copy a worksheet's layout into a new sheet of the same workbook."""
    clone = SheetTemplate.capture(source).render(workbook, title)
    logger.debug(f"Cloned sheet '{source.title}' as '{clone.title}'")
    return clone

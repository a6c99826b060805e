# File: app/services/expense_export_service.py

"""
Workbook export service for expense documents.

Fills the summary template with a document's items and, for every item, adds a
photo sheet cloned from the template's photo sheet with the item's inbound and
install photos placed into fixed cell ranges.

Any failure (missing template, missing photo sheet, a photo that cannot be
fetched from either bucket) aborts the whole export; no partial workbook is
produced.
"""

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from zipfile import BadZipFile
import logging

from openpyxl import load_workbook
from openpyxl.drawing.image import Image as ExcelImage
from openpyxl.drawing.spreadsheet_drawing import AnchorMarker, TwoCellAnchor
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet
from PIL import Image, UnidentifiedImageError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    EntityNotFoundException,
    ExpenseDocsException,
    PhotoFetchException,
    PhotoSheetMissingException,
    TemplateNotFoundException,
)
from app.db.models.expense import ExpenseItem, ExpensePhoto, PhotoKind
from app.repositories.expense_document_repository import ExpenseDocumentRepository
from app.repositories.expense_item_repository import ExpenseItemRepository
from app.repositories.expense_photo_repository import ExpensePhotoRepository
from app.services.base_service import BaseService
from app.services.object_storage_service import ObjectStorage
from app.services.photo_layout import CellRange, assign_ranges
from app.services.worksheet_template import SheetTemplate

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Category number -> first summary row of its block
DEFAULT_ROW_STARTS: Dict[int, int] = {2: 8, 3: 20, 9: 60}

# Summary sheet column per item field
DEFAULT_SUMMARY_COLUMNS: Dict[str, str] = {
    "used_at": "B",
    "item_name": "C",
    "quantity": "D",
    "unit_price": "E",
    "amount": "F",
    "evidence_no": "G",
}


@dataclass(frozen=True)
class ExportConfig:
    """Template and storage locations for exports."""

    template_path: str
    photo_sheet_name: str = "2.안전시설물 사진대지"
    summary_sheet_index: int = 0
    bucket: str = "expense-evidence"
    fallback_bucket: Optional[str] = "expense-photos"
    signed_url_expires: int = 600
    row_starts: Dict[int, int] = field(default_factory=lambda: dict(DEFAULT_ROW_STARTS))
    summary_columns: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_SUMMARY_COLUMNS)
    )

    @classmethod
    def from_settings(cls, settings) -> "ExportConfig":
        return cls(
            template_path=settings.EXPORT_TEMPLATE_PATH,
            photo_sheet_name=settings.PHOTO_SHEET_NAME,
            summary_sheet_index=settings.EXPORT_SUMMARY_SHEET_INDEX,
            bucket=settings.STORAGE_BUCKET,
            fallback_bucket=settings.STORAGE_FALLBACK_BUCKET,
            signed_url_expires=settings.SIGNED_URL_EXPIRE_SECONDS,
        )


@dataclass
class ExportedWorkbook:
    filename: str
    content: bytes
    photo_sheets: List[str] = field(default_factory=list)
    photos_placed: int = 0
    media_type: str = XLSX_MEDIA_TYPE


def export_filename(month_key: str) -> str:
    return f"항목별사용내역서_{month_key}.xlsx"


def image_format(storage_path: str) -> str:
    """png for .png paths, jpeg for everything else."""
    return "png" if storage_path.lower().endswith(".png") else "jpeg"


class PhotoFetcher:
    """
    Reads photo bytes through a freshly signed URL.

    The primary bucket is tried first; on failure the fallback bucket is tried
    once. If both fail the export is aborted with PhotoFetchException.
    """

    def __init__(self, storage: ObjectStorage, config: ExportConfig):
        self.storage = storage
        self.config = config

    @property
    def buckets(self) -> List[str]:
        buckets = [self.config.bucket]
        if self.config.fallback_bucket and self.config.fallback_bucket != self.config.bucket:
            buckets.append(self.config.fallback_bucket)
        return buckets

    def _fetch_from(self, bucket: str, storage_path: str) -> bytes:
        url = self.storage.create_signed_url(
            bucket, storage_path, self.config.signed_url_expires
        )
        return self.storage.download(url)

    def fetch(self, storage_path: str) -> bytes:
        last_error: Optional[Exception] = None
        for bucket in self.buckets:
            try:
                return self._fetch_from(bucket, storage_path)
            except (ExpenseDocsException, OSError) as e:
                logger.warning(f"Photo {storage_path} not readable from bucket {bucket}: {e}")
                last_error = e
        raise PhotoFetchException(storage_path, self.buckets, str(last_error))


def to_excel_image(data: bytes, storage_path: str, cell_range: CellRange) -> ExcelImage:
    """
    Re-encode photo bytes in the format implied by the storage path and anchor
    the image so it stretches over `cell_range`.
    """
    target_format = image_format(storage_path)
    try:
        with Image.open(BytesIO(data)) as source:
            source.load()
            if target_format == "jpeg" and source.mode not in ("RGB", "L"):
                source = source.convert("RGB")
            buffer = BytesIO()
            source.save(buffer, format=target_format.upper())
    except (UnidentifiedImageError, OSError) as e:
        raise PhotoFetchException(storage_path, [], f"not a readable image: {e}")

    buffer.seek(0)
    image = ExcelImage(buffer)
    image.anchor = TwoCellAnchor(
        editAs="oneCell",
        _from=AnchorMarker(col=cell_range.min_col - 1, row=cell_range.min_row - 1),
        to=AnchorMarker(col=cell_range.max_col, row=cell_range.max_row),
    )
    return image


def unique_sheet_title(workbook: Workbook, item: ExpenseItem) -> str:
    title = f"NO.{item.evidence_no}"
    if title in workbook.sheetnames:
        title = f"{title}_{item.id[:6]}"
    return title


class ExpenseExportService(BaseService):
    """
    Service producing the audit workbook for one document.
    """

    entity_name = "ExpenseDocument"

    def __init__(
        self,
        session: Session,
        config: ExportConfig,
        storage: ObjectStorage,
        document_repository: Optional[ExpenseDocumentRepository] = None,
        item_repository: Optional[ExpenseItemRepository] = None,
        photo_repository: Optional[ExpensePhotoRepository] = None,
    ):
        super().__init__(
            session, repository=document_repository or ExpenseDocumentRepository(session)
        )
        self.config = config
        self.fetcher = PhotoFetcher(storage, config)
        self.item_repository = item_repository or ExpenseItemRepository(session)
        self.photo_repository = photo_repository or ExpensePhotoRepository(session)

    def load_template(self) -> Workbook:
        path = Path(self.config.template_path)
        if not path.is_file():
            raise TemplateNotFoundException(str(path), "file does not exist")
        try:
            return load_workbook(path)
        except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as e:
            raise TemplateNotFoundException(str(path), str(e))

    def export_document(self, document_id: str) -> ExportedWorkbook:
        """
        Build the workbook for a document and return it as bytes.

        Raises:
            EntityNotFoundException: unknown document
            TemplateNotFoundException: template file missing or unreadable
            PhotoSheetMissingException: template lacks the photo sheet
            PhotoFetchException: a photo could not be read from any bucket
        """
        document = self.repository.get_by_id(document_id)
        if document is None:
            raise EntityNotFoundException("ExpenseDocument", document_id)

        items = self.item_repository.list_by_document(document_id)
        photos = self.photo_repository.list_by_items([item.id for item in items])

        workbook = self.load_template()
        self.fill_summary(workbook.worksheets[self.config.summary_sheet_index], items)
        photo_sheets, placed = self.add_photo_sheets(workbook, items, photos)

        buffer = BytesIO()
        workbook.save(buffer)
        logger.info(
            f"Exported document {document_id}: {len(items)} items, "
            f"{len(photo_sheets)} photo sheets, {placed} photos"
        )
        return ExportedWorkbook(
            filename=export_filename(document.month_key),
            content=buffer.getvalue(),
            photo_sheets=photo_sheets,
            photos_placed=placed,
        )

    def fill_summary(self, sheet: Worksheet, items: List[ExpenseItem]) -> int:
        """
        Write items into the summary sheet, one row per item, starting at the
        row configured for the item's category number. Items of categories
        without a configured row are left off the summary.
        """
        columns = self.config.summary_columns
        offsets: Dict[int, int] = {}
        written = 0
        for item in items:
            start = self.config.row_starts.get(item.category_no)
            if start is None:
                logger.warning(
                    f"No summary rows for category {item.category_no} ({item.category_key}), "
                    f"item {item.id} left off the summary sheet"
                )
                continue
            row = start + offsets.get(item.category_no, 0)
            offsets[item.category_no] = offsets.get(item.category_no, 0) + 1
            for field_name, column in columns.items():
                value = getattr(item, field_name)
                if value is not None:
                    sheet[f"{column}{row}"] = value
            written += 1
        return written

    def add_photo_sheets(
        self,
        workbook: Workbook,
        items: List[ExpenseItem],
        photos: Dict[str, List[ExpensePhoto]],
    ) -> Tuple[List[str], int]:
        """
        Clone the photo sheet once per item and place the item's photos.

        The original photo sheet stays in the workbook as veryHidden.
        """
        name = self.config.photo_sheet_name
        if name not in workbook.sheetnames:
            raise PhotoSheetMissingException(name, workbook.sheetnames)

        template_sheet = workbook[name]
        template = SheetTemplate.capture(template_sheet)
        template_sheet.sheet_state = "veryHidden"
        template_sheet.sheet_view.tabSelected = False

        titles = []
        placed = 0
        for item in items:
            sheet = template.render(workbook, unique_sheet_title(workbook, item))
            sheet.sheet_view.showGridLines = False
            sheet.print_options.gridLines = False
            titles.append(sheet.title)

            item_photos = photos.get(item.id, [])
            for kind in (PhotoKind.INBOUND, PhotoKind.INSTALL):
                of_kind = [p for p in item_photos if p.kind == kind]
                for photo, cell_range in assign_ranges(kind, of_kind):
                    data = self.fetcher.fetch(photo.storage_path)
                    sheet.add_image(to_excel_image(data, photo.storage_path, cell_range))
                    placed += 1

        # The first visible sheet must stay active
        workbook.active = self.config.summary_sheet_index
        return titles, placed

# tests/test_expense_export_service.py
from datetime import date
from io import BytesIO

import pytest
from openpyxl import load_workbook

from app.core.exceptions import (
    EntityNotFoundException,
    PhotoFetchException,
    PhotoSheetMissingException,
    TemplateNotFoundException,
)
from app.db.models.expense import ExpenseItem, ExpensePhoto
from app.repositories.expense_item_repository import ExpenseItemRepository
from app.repositories.expense_photo_repository import ExpensePhotoRepository
from app.services.expense_export_service import (
    ExpenseExportService,
    ExportConfig,
    export_filename,
    image_format,
)
from app.services.object_storage_service import LocalObjectStorage

PRIMARY = "expense-evidence"
FALLBACK = "expense-photos"
PHOTO_SHEET = "2.안전시설물 사진대지"


@pytest.fixture()
def storage(tmp_path):
    return LocalObjectStorage(str(tmp_path / "objects"), "test-secret", "http://testserver/storage")


@pytest.fixture()
def service(db_session, storage, template_path):
    config = ExportConfig(template_path=str(template_path), bucket=PRIMARY, fallback_bucket=FALLBACK)
    return ExpenseExportService(db_session, config, storage)


def add_item(session, document, category_no, category_key, evidence_no, name, **values):
    item = ExpenseItem(
        document_id=document.id,
        category_no=category_no,
        category_key=category_key,
        evidence_no=evidence_no,
        item_name=name,
        quantity=values.pop("quantity", 1),
        **values,
    )
    session.add(item)
    session.commit()
    return item


def add_photo(session, storage, item, kind, slot, data, bucket=PRIMARY, ext="png"):
    path = f"expense_items/{item.id}/{kind}/{slot}.{ext}"
    storage.upload(bucket, path, data, upsert=True)
    photo = ExpensePhoto(item_id=item.id, kind=kind, slot_index=slot, storage_path=path)
    session.add(photo)
    session.commit()
    return photo


def test_export_fills_summary_rows(service, db_session, document):
    add_item(db_session, document, 2, "safety_facility", 1, "안전테이프",
             quantity=10, unit_price=500, used_at=date(2025, 12, 22))
    add_item(db_session, document, 2, "safety_facility", 2, "표지판", quantity=2, unit_price=3000)
    add_item(db_session, document, 3, "ppe", 1, "안전모", quantity=4, amount=48000)

    exported = service.export_document(document.id)

    assert exported.filename == "항목별사용내역서_2025-12.xlsx"
    assert exported.content[:2] == b"PK"
    summary = load_workbook(BytesIO(exported.content)).worksheets[0]
    assert summary["C8"].value == "안전테이프"
    assert summary["D8"].value == 10
    assert summary["B8"].value.date() == date(2025, 12, 22)
    assert summary["C9"].value == "표지판"
    assert summary["F9"].value is None
    assert summary["C20"].value == "안전모"
    assert summary["F20"].value == 48000
    assert summary["G20"].value == 1
    # Template content outside the item rows is untouched
    assert summary["A1"].value == "항목별 사용내역서"


def test_photo_sheets_per_item(service, db_session, document):
    add_item(db_session, document, 2, "safety_facility", 1, "안전테이프")
    add_item(db_session, document, 3, "ppe", 1, "안전모")
    add_item(db_session, document, 5, "cat_5", 2, "기타")

    exported = service.export_document(document.id)
    wb = load_workbook(BytesIO(exported.content))

    first, second, third = exported.photo_sheets
    assert first == "NO.1"
    assert second.startswith("NO.1_")
    assert third == "NO.2"
    assert wb[PHOTO_SHEET].sheet_state == "veryHidden"
    clone = wb["NO.1"]
    assert clone.sheet_state == "visible"
    assert clone["B2"].value == "사진대지"
    assert not clone.sheet_view.showGridLines
    assert wb.active.title == "항목별 사용내역서"


def test_unmapped_category_is_left_off_summary(service, db_session, document):
    add_item(db_session, document, 5, "cat_5", 1, "기타")

    exported = service.export_document(document.id)
    summary = load_workbook(BytesIO(exported.content)).worksheets[0]

    assert exported.photo_sheets == ["NO.1"]
    assert all(summary.cell(row=r, column=3).value != "기타" for r in range(8, 80))


def test_photo_ranges(service, db_session, storage, document, make_image):
    item = add_item(db_session, document, 2, "safety_facility", 1, "안전펜스")
    add_photo(db_session, storage, item, "inbound", 0, make_image())
    for slot in range(3):
        add_photo(db_session, storage, item, "install", slot, make_image(fmt="JPEG"), ext="jpg")

    items = ExpenseItemRepository(db_session).list_by_document(document.id)
    photos = ExpensePhotoRepository(db_session).list_by_items([item.id])
    workbook = service.load_template()
    titles, placed = service.add_photo_sheets(workbook, items, photos)

    assert placed == 4
    anchors = [
        (img.anchor._from.col, img.anchor._from.row, img.anchor.to.col, img.anchor.to.row)
        for img in workbook[titles[0]]._images
    ]
    assert anchors == [
        (1, 5, 5, 15),  # B6:E15
        (5, 5, 9, 10),  # F6:I10
        (5, 10, 7, 15),  # F11:G15
        (7, 10, 9, 15),  # H11:I15
    ]
    assert [img.format for img in workbook[titles[0]]._images] == ["png", "jpeg", "jpeg", "jpeg"]


def test_photo_from_fallback_bucket(service, db_session, storage, document, make_image):
    item = add_item(db_session, document, 2, "safety_facility", 1, "안전펜스")
    add_photo(db_session, storage, item, "install", 0, make_image(), bucket=FALLBACK)

    exported = service.export_document(document.id)

    assert exported.photos_placed == 1


def test_missing_photo_aborts_export(service, db_session, document):
    item = add_item(db_session, document, 2, "safety_facility", 1, "안전펜스")
    db_session.add(
        ExpensePhoto(item_id=item.id, kind="install", slot_index=0, storage_path="gone/0.png")
    )
    db_session.commit()

    with pytest.raises(PhotoFetchException) as excinfo:
        service.export_document(document.id)
    assert excinfo.value.details["buckets"] == [PRIMARY, FALLBACK]


def test_unreadable_photo_aborts_export(service, db_session, storage, document):
    item = add_item(db_session, document, 2, "safety_facility", 1, "안전펜스")
    add_photo(db_session, storage, item, "inbound", 0, b"not an image")

    with pytest.raises(PhotoFetchException):
        service.export_document(document.id)


def test_missing_template(db_session, storage, document, tmp_path):
    config = ExportConfig(template_path=str(tmp_path / "absent.xlsx"))
    service = ExpenseExportService(db_session, config, storage)

    with pytest.raises(TemplateNotFoundException):
        service.export_document(document.id)


def test_missing_photo_sheet(db_session, storage, document, template_path):
    config = ExportConfig(template_path=str(template_path), photo_sheet_name="사진대지 없음")
    service = ExpenseExportService(db_session, config, storage)

    with pytest.raises(PhotoSheetMissingException) as excinfo:
        service.export_document(document.id)
    assert PHOTO_SHEET in excinfo.value.details["available_sheets"]


def test_unknown_document(service):
    with pytest.raises(EntityNotFoundException):
        service.export_document("missing")


def test_helpers():
    assert export_filename("2026-01") == "항목별사용내역서_2026-01.xlsx"
    assert image_format("a/b/0.PNG") == "png"
    assert image_format("a/b/0.jpg") == "jpeg"
    assert image_format("a/b/0.webp") == "jpeg"

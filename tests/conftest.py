# tests/conftest.py
from io import BytesIO

import pytest
from openpyxl import Workbook
from openpyxl.styles import Border, Font, Side
from PIL import Image
from sqlalchemy.orm import sessionmaker

from app.db.models.base import Base
from app.db.models.expense import ExpenseDocument
from app.db.session import build_engine

PHOTO_SHEET = "2.안전시설물 사진대지"


@pytest.fixture()
def db_session():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def document(db_session):
    doc = ExpenseDocument(site_name="Test Site", month_key="2025-12")
    db_session.add(doc)
    db_session.commit()
    return doc


def workbook_bytes(rows):
    """An .xlsx whose first sheet holds `rows`, row 1 first. [] leaves a blank row."""
    wb = Workbook()
    ws = wb.active
    ws.title = "항목별 사용내역서"
    for row in rows:
        ws.append(list(row))
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def image_bytes(color=(200, 30, 30), fmt="PNG", size=(40, 30)):
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def write_template(path):
    """A minimal export template: summary sheet first, then the photo sheet."""
    wb = Workbook()
    summary = wb.active
    summary.title = "항목별 사용내역서"
    summary["A1"] = "항목별 사용내역서"
    summary["B7"] = "사용일자"
    summary["C7"] = "품명"

    photos = wb.create_sheet(PHOTO_SHEET)
    photos["B2"] = "사진대지"
    photos["B2"].font = Font(bold=True, size=14)
    photos["B5"] = "반입 사진"
    photos["F5"] = "지급·설치 사진"
    photos.merge_cells("B2:I3")
    photos.merge_cells("B5:E5")
    photos.merge_cells("F5:I5")
    thin = Side(style="thin")
    photos["B6"].border = Border(left=thin, top=thin)
    photos.column_dimensions["B"].width = 14.5
    photos.column_dimensions["F"].width = 14.5
    photos.row_dimensions[6].height = 30
    wb.save(path)
    return path


@pytest.fixture()
def make_workbook():
    return workbook_bytes


@pytest.fixture()
def make_image():
    return image_bytes


@pytest.fixture()
def template_path(tmp_path):
    return write_template(tmp_path / "template.xlsx")

# tests/test_expense_photo_service.py
import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import DatabaseException
from app.db.models.expense import ExpenseItem
from app.repositories.expense_photo_repository import ExpensePhotoRepository
from app.services.expense_photo_service import ExpensePhotoService
from app.services.object_storage_service import LocalObjectStorage

BUCKET = "expense-evidence"


@pytest.fixture()
def storage(tmp_path):
    return LocalObjectStorage(str(tmp_path / "objects"), "test-secret", "http://testserver/storage")


@pytest.fixture()
def service(db_session, storage):
    return ExpensePhotoService(db_session, storage, BUCKET)


@pytest.fixture()
def item(db_session, document):
    item = ExpenseItem(
        document_id=document.id,
        category_key="safety_facility",
        category_no=2,
        evidence_no=1,
        item_name="안전펜스",
        quantity=3,
    )
    db_session.add(item)
    db_session.commit()
    return item


def fail_commit(db_session, monkeypatch):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", broken_commit)


def test_replacing_slot_removes_previous_object(service, storage, item, make_image):
    first = service.upload_photo(item.id, "install", 0, make_image(), "a.png", "image/png")
    old_path = first.storage_path

    second = service.upload_photo(
        item.id, "install", 0, make_image(fmt="JPEG"), "b.jpg", "image/jpeg"
    )

    assert second.storage_path == f"expense_items/{item.id}/install/0.jpg"
    assert storage.exists(BUCKET, second.storage_path)
    assert not storage.exists(BUCKET, old_path)


def test_failed_commit_keeps_previous_object(
    service, storage, db_session, item, make_image, monkeypatch
):
    first = service.upload_photo(item.id, "install", 0, make_image(), "a.png", "image/png")
    old_path = first.storage_path
    new_path = f"expense_items/{item.id}/install/0.jpg"

    fail_commit(db_session, monkeypatch)
    with pytest.raises(DatabaseException):
        service.upload_photo(item.id, "install", 0, make_image(fmt="JPEG"), "b.jpg", "image/jpeg")
    monkeypatch.undo()

    row = ExpensePhotoRepository(db_session).get_slot(item.id, "install", 0)
    assert row.storage_path == old_path
    assert storage.exists(BUCKET, old_path)
    assert not storage.exists(BUCKET, new_path)


def test_failed_commit_on_empty_slot_leaves_no_object(
    service, storage, db_session, item, make_image, monkeypatch
):
    fail_commit(db_session, monkeypatch)
    with pytest.raises(DatabaseException):
        service.upload_photo(item.id, "inbound", 0, make_image(), "a.png", "image/png")
    monkeypatch.undo()

    assert ExpensePhotoRepository(db_session).get_slot(item.id, "inbound", 0) is None
    assert not storage.exists(BUCKET, f"expense_items/{item.id}/inbound/0.png")

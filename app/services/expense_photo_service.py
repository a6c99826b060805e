# File: app/services/expense_photo_service.py

from typing import Any, Dict, List, Optional
from io import BytesIO
import logging
import re

from PIL import Image, UnidentifiedImageError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    BusinessRuleException,
    EntityNotFoundException,
    ExpenseDocsException,
)
from app.db.models.expense import ExpensePhoto, PhotoKind
from app.repositories.expense_item_repository import ExpenseItemRepository
from app.repositories.expense_photo_repository import ExpensePhotoRepository
from app.services.base_service import BaseService
from app.services.object_storage_service import ObjectStorage

logger = logging.getLogger(__name__)


def photo_extension(filename: Optional[str]) -> str:
    """Lowercase alphanumeric extension of the uploaded file name, 'jpg' if none."""
    name = (filename or "").replace(" ", "_")
    if "." not in name:
        return "jpg"
    ext = re.sub(r"[^a-z0-9]", "", name.rsplit(".", 1)[1].lower())[:8]
    return ext or "jpg"


def photo_storage_path(item_id: str, kind: str, slot_index: int, extension: str) -> str:
    return f"expense_items/{item_id}/{kind}/{slot_index}.{extension}"


class ExpensePhotoService(BaseService[ExpensePhoto]):
    """
    Service for evidence photos.

    Each (item, kind, slot) holds one photo. Uploading to an occupied slot
    overwrites the stored object and updates the existing row; an item holds
    at most one inbound photo (slot 0) and four install photos (slots 0-3).
    """

    entity_name = "ExpensePhoto"

    def __init__(
        self,
        session: Session,
        storage: ObjectStorage,
        bucket: str,
        fallback_bucket: Optional[str] = None,
        signed_url_expires: int = 600,
        max_upload_bytes: int = 20 * 1024 * 1024,
        photo_repository: Optional[ExpensePhotoRepository] = None,
        item_repository: Optional[ExpenseItemRepository] = None,
    ):
        super().__init__(session, repository=photo_repository or ExpensePhotoRepository(session))
        self.storage = storage
        self.bucket = bucket
        self.fallback_bucket = fallback_bucket
        self.signed_url_expires = signed_url_expires
        self.max_upload_bytes = max_upload_bytes
        self.item_repository = item_repository or ExpenseItemRepository(session)

    def _check_upload(
        self, kind: str, slot_index: int, data: bytes, content_type: Optional[str]
    ) -> None:
        if kind not in PhotoKind.values():
            raise BusinessRuleException(
                f"Unknown photo kind '{kind}'",
                "photo_kind",
                {"allowed": PhotoKind.values()},
            )
        slot_limit = PhotoKind.SLOT_LIMITS[kind]
        if not 0 <= slot_index < slot_limit:
            raise BusinessRuleException(
                f"Slot {slot_index} is not allowed for {kind} photos (0-{slot_limit - 1})",
                "photo_slot_range",
                {"kind": kind, "slot": slot_index},
            )
        if not (content_type or "").startswith("image/"):
            raise BusinessRuleException(
                "Only image files can be uploaded",
                "image_only",
                {"content_type": content_type},
            )
        if not data:
            raise BusinessRuleException("Uploaded file is empty", "empty_file")
        if len(data) > self.max_upload_bytes:
            raise BusinessRuleException(
                f"File too large: {len(data)} bytes (max {self.max_upload_bytes})",
                "max_upload_size",
            )
        try:
            with Image.open(BytesIO(data)) as image:
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise BusinessRuleException(
                "Uploaded file is not a readable image", "image_only", {"reason": str(e)}
            )

    def upload_photo(
        self,
        item_id: str,
        kind: str,
        slot_index: int,
        data: bytes,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> ExpensePhoto:
        """
        Store a photo into an item's slot, replacing whatever was there.

        Raises:
            EntityNotFoundException: unknown item
            BusinessRuleException: bad kind/slot, non-image file, or a fifth
                install photo
        """
        if self.item_repository.get_by_id(item_id) is None:
            raise EntityNotFoundException("ExpenseItem", item_id)

        kind = (kind or "").strip().lower()
        self._check_upload(kind, slot_index, data, content_type)

        existing = self.repository.get_slot(item_id, kind, slot_index)
        if existing is None:
            current = self.repository.count_by_kind(item_id, kind)
            if current >= PhotoKind.SLOT_LIMITS[kind]:
                raise BusinessRuleException(
                    f"An item can hold at most {PhotoKind.SLOT_LIMITS[kind]} {kind} photos",
                    "photo_limit",
                    {"kind": kind, "count": current},
                )

        path = photo_storage_path(item_id, kind, slot_index, photo_extension(filename))
        previous_path = existing.storage_path if existing is not None else None
        self.storage.upload(self.bucket, path, data, content_type=content_type, upsert=True)

        values = {
            "storage_path": path,
            "original_name": filename,
            "content_type": content_type,
            "size_bytes": len(data),
        }
        try:
            with self.transaction():
                if existing is not None:
                    for key, value in values.items():
                        setattr(existing, key, value)
                    photo = existing
                else:
                    photo = ExpensePhoto(
                        item_id=item_id, kind=kind, slot_index=slot_index, **values
                    )
                    self.session.add(photo)
        except Exception:
            # The slot row still points at the previous object, so that one stays
            if path != previous_path:
                self._discard(path)
            raise

        if previous_path is not None and previous_path != path:
            self._discard(previous_path)

        self.session.refresh(photo)
        logger.info(
            f"{'Replaced' if existing is not None else 'Stored'} {kind} photo "
            f"slot {slot_index} for item {item_id} at {path}"
        )
        return photo

    def _discard(self, path: str) -> None:
        """Remove an object no photo row refers to; failures are only logged."""
        try:
            self.storage.remove(self.bucket, path)
        except ExpenseDocsException as e:
            logger.warning(f"Could not remove orphaned object {self.bucket}/{path}: {e}")

    def signed_url(self, storage_path: str) -> Optional[str]:
        """Fresh signed URL for a photo, trying the fallback bucket if needed."""
        for bucket in [self.bucket, self.fallback_bucket]:
            if not bucket:
                continue
            try:
                return self.storage.create_signed_url(
                    bucket, storage_path, self.signed_url_expires
                )
            except ExpenseDocsException as e:
                logger.warning(f"Cannot sign {storage_path} in bucket {bucket}: {e}")
        return None

    def list_photos(self, item_id: str) -> List[Dict[str, Any]]:
        """Photos of an item ordered by kind and slot, each with a fresh signed URL."""
        if self.item_repository.get_by_id(item_id) is None:
            raise EntityNotFoundException("ExpenseItem", item_id)

        return [
            {
                "id": photo.id,
                "item_id": photo.item_id,
                "kind": photo.kind,
                "slot_index": photo.slot_index,
                "storage_path": photo.storage_path,
                "original_name": photo.original_name,
                "content_type": photo.content_type,
                "size_bytes": photo.size_bytes,
                "signed_url": self.signed_url(photo.storage_path),
            }
            for photo in self.repository.list_by_item(item_id)
        ]

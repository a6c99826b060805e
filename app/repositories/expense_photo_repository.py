# File: app/repositories/expense_photo_repository.py

from typing import List, Optional, Dict
import logging

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.repositories.base_repository import BaseRepository
from app.db.models.expense import ExpensePhoto

logger = logging.getLogger(__name__)


class ExpensePhotoRepository(BaseRepository[ExpensePhoto]):
    """Repository for ExpensePhoto entities (one row per item/kind/slot)."""

    def __init__(self, session: Session):
        super().__init__(session, ExpensePhoto)

    def get_slot(self, item_id: str, kind: str, slot_index: int) -> Optional[ExpensePhoto]:
        stmt = select(self.model).where(
            self.model.item_id == item_id,
            self.model.kind == kind,
            self.model.slot_index == slot_index,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def count_by_kind(self, item_id: str, kind: str) -> int:
        stmt = select(func.count(self.model.id)).where(
            self.model.item_id == item_id,
            self.model.kind == kind,
        )
        return self.session.execute(stmt).scalar_one()

    def list_by_item(self, item_id: str) -> List[ExpensePhoto]:
        """Photos of one item ordered by kind, then slot."""
        stmt = (
            select(self.model)
            .where(self.model.item_id == item_id)
            .order_by(self.model.kind, self.model.slot_index)
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_by_items(self, item_ids: List[str]) -> Dict[str, List[ExpensePhoto]]:
        """Photos of many items, grouped by item id, each group ordered by kind and slot."""
        grouped: Dict[str, List[ExpensePhoto]] = {item_id: [] for item_id in item_ids}
        if not item_ids:
            return grouped
        stmt = (
            select(self.model)
            .where(self.model.item_id.in_(item_ids))
            .order_by(self.model.item_id, self.model.kind, self.model.slot_index)
        )
        for photo in self.session.execute(stmt).scalars().all():
            grouped.setdefault(photo.item_id, []).append(photo)
        return grouped

# File: app/repositories/expense_item_repository.py

from typing import List, Optional, Dict, Any, Set, Tuple
from datetime import date
import logging

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.repositories.base_repository import BaseRepository
from app.db.models.expense import ExpenseItem

logger = logging.getLogger(__name__)

ITEM_CONFLICT_COLUMNS = ("document_id", "category_key", "evidence_no")


class ExpenseItemRepository(BaseRepository[ExpenseItem]):
    """
    Repository for ExpenseItem entities.

    Implements the bulk contract used by the import pipeline: upsert keyed by
    (document_id, category_key, evidence_no), delete by document, and ordered
    selection by document.
    """

    def __init__(self, session: Session):
        super().__init__(session, ExpenseItem)

    def list_by_document(self, document_id: str) -> List[ExpenseItem]:
        """
        Items of a document in report order: category number, category key,
        evidence number.
        """
        stmt = (
            select(self.model)
            .where(self.model.document_id == document_id)
            .order_by(
                self.model.category_no.is_(None),
                self.model.category_no,
                self.model.category_key,
                self.model.evidence_no,
            )
        )
        return list(self.session.execute(stmt).scalars().all())

    def upsert_items(self, rows: List[Dict[str, Any]]) -> int:
        return self.upsert_many(rows, ITEM_CONFLICT_COLUMNS)

    def insert_items(self, rows: List[Dict[str, Any]]) -> int:
        """Plain bulk insert. Flushes, does not commit."""
        for row in rows:
            self.session.add(self.model(**row))
        self.session.flush()
        return len(rows)

    def delete_by_document(self, document_id: str) -> int:
        deleted = self.delete_where(document_id=document_id)
        logger.info(f"Deleted {deleted} items of document {document_id}")
        return deleted

    def content_keys(self, document_id: str) -> Set[Tuple[str, Optional[date], float]]:
        """(item_name, used_at, quantity) of every existing item in a document."""
        stmt = select(
            self.model.item_name, self.model.used_at, self.model.quantity
        ).where(self.model.document_id == document_id)
        return {
            (name, used_at, float(quantity))
            for name, used_at, quantity in self.session.execute(stmt).all()
        }

    def existing_evidence_numbers(self, document_id: str, category_key: str) -> Set[int]:
        stmt = select(self.model.evidence_no).where(
            self.model.document_id == document_id,
            self.model.category_key == category_key,
        )
        return set(self.session.execute(stmt).scalars().all())

    def next_evidence_no(self, document_id: str, category_key: str) -> int:
        stmt = select(func.max(self.model.evidence_no)).where(
            self.model.document_id == document_id,
            self.model.category_key == category_key,
        )
        current = self.session.execute(stmt).scalar_one_or_none()
        return (current or 0) + 1

    def search_by_name(self, query: str, limit: int = 20) -> List[ExpenseItem]:
        """Case-insensitive substring match on item name, for autocomplete."""
        pattern = f"%{query.strip()}%"
        stmt = (
            select(self.model)
            .where(self.model.item_name.ilike(pattern))
            .order_by(self.model.item_name)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

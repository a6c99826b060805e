# File: app/services/expense_document_service.py

from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from app.core.exceptions import BusinessRuleException, EntityNotFoundException
from app.db.models.expense import ExpenseDocument, ExpenseItem
from app.repositories.expense_document_repository import ExpenseDocumentRepository
from app.repositories.expense_item_repository import ExpenseItemRepository
from app.services.base_service import BaseService

logger = logging.getLogger(__name__)


class ExpenseDocumentService(BaseService[ExpenseDocument]):
    """
    Service for documents and their items outside the import pipeline:
    get-or-create by site/month, listing, manual entry and edits, search,
    and clearing a document's items.
    """

    entity_name = "ExpenseDocument"

    def __init__(
        self,
        session: Session,
        document_repository: Optional[ExpenseDocumentRepository] = None,
        item_repository: Optional[ExpenseItemRepository] = None,
    ):
        super().__init__(session, repository=document_repository or ExpenseDocumentRepository(session))
        self.item_repository = item_repository or ExpenseItemRepository(session)

    def get_or_create(self, site_name: str, month_key: str) -> ExpenseDocument:
        return self._write(self.repository.get_or_create, site_name, month_key)

    def list_items(self, document_id: str) -> List[ExpenseItem]:
        self.get_or_404(document_id)
        return self.item_repository.list_by_document(document_id)

    def search_items(self, query: str, limit: int = 20) -> List[ExpenseItem]:
        if not query or not query.strip():
            return []
        return self.item_repository.search_by_name(query, limit=limit)

    def get_item(self, item_id: str) -> ExpenseItem:
        item = self.item_repository.get_by_id(item_id)
        if item is None:
            raise EntityNotFoundException("ExpenseItem", item_id)
        return item

    def _ensure_free(self, document_id: str, category_key: str, evidence_no: int) -> None:
        taken = self.item_repository.existing_evidence_numbers(document_id, category_key)
        if evidence_no in taken:
            raise BusinessRuleException(
                f"Evidence number {evidence_no} is already used in category {category_key}",
                "duplicate_evidence_no",
                {"category_key": category_key, "evidence_no": evidence_no},
            )

    def create_item(self, document_id: str, data: Dict[str, Any]) -> ExpenseItem:
        """
        Manually add an item. Without an evidence number the next free one of
        the category is assigned.
        """
        self.get_or_404(document_id)
        data = dict(data)
        category_key = data["category_key"]
        if data.get("evidence_no") is None:
            data["evidence_no"] = self.item_repository.next_evidence_no(document_id, category_key)
        else:
            self._ensure_free(document_id, category_key, data["evidence_no"])

        data["document_id"] = document_id
        data["source"] = "manual"
        item = self._write(self.item_repository.create, data)
        logger.info(f"Added item {item.id} ({category_key} NO.{item.evidence_no}) to {document_id}")
        return item

    def update_item(self, item_id: str, changes: Dict[str, Any]) -> ExpenseItem:
        item = self.get_item(item_id)
        new_number = changes.get("evidence_no")
        if new_number is not None and new_number != item.evidence_no:
            self._ensure_free(item.document_id, item.category_key, new_number)
        return self._write(self.item_repository.update, item_id, changes)

    def clear_items(self, document_id: str) -> int:
        """Delete every item (and, by cascade, every photo row) of a document."""
        self.get_or_404(document_id)
        with self.transaction():
            deleted = self.item_repository.delete_by_document(document_id)
        return deleted

# File: app/repositories/expense_document_repository.py

from typing import Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.repositories.base_repository import BaseRepository
from app.db.models.expense import ExpenseDocument

logger = logging.getLogger(__name__)


class ExpenseDocumentRepository(BaseRepository[ExpenseDocument]):
    """
    Repository for ExpenseDocument entities.

    Documents are keyed by (site_name, month_key) and are created on first access.
    """

    def __init__(self, session: Session):
        super().__init__(session, ExpenseDocument)

    def find_by_site_and_month(
        self, site_name: str, month_key: str
    ) -> Optional[ExpenseDocument]:
        stmt = select(self.model).where(
            self.model.site_name == site_name,
            self.model.month_key == month_key,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def get_or_create(self, site_name: str, month_key: str) -> ExpenseDocument:
        """
        Return the document for a site/month, creating it if needed.

        A concurrent insert of the same pair loses on the unique constraint and
        re-reads the winner's row.
        """
        existing = self.find_by_site_and_month(site_name, month_key)
        if existing:
            return existing

        try:
            document = self.create({"site_name": site_name, "month_key": month_key})
            logger.info(f"Created expense document {document.id} for {site_name} {month_key}")
            return document
        except IntegrityError:
            self.session.rollback()
            logger.info(f"Document for {site_name} {month_key} created concurrently, re-reading")
            return self.find_by_site_and_month(site_name, month_key)

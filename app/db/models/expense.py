# File: app/db/models/expense.py
"""
Expense documentation database models.

This module defines the three persisted entities:
- ExpenseDocument: one site/month audit unit
- ExpenseItem: one line item inside a document
- ExpensePhoto: one evidence photo bound to an item slot
"""

from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Date,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from app.db.models.base import Base, TimestampMixin, generate_uuid


class PhotoKind:
    """Photo kinds and the number of slots each one owns."""

    INBOUND = "inbound"
    INSTALL = "install"

    SLOT_LIMITS = {INBOUND: 1, INSTALL: 4}

    @classmethod
    def values(cls):
        return list(cls.SLOT_LIMITS.keys())


class ExpenseDocument(Base, TimestampMixin):
    """
    One site/month expense-reporting unit. Created on first access for a
    (site_name, month_key) pair and not mutated afterwards.
    """

    __tablename__ = "expense_documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    site_name = Column(String(200), nullable=False)
    month_key = Column(String(7), nullable=False)  # YYYY-MM

    items = relationship(
        "ExpenseItem",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("site_name", "month_key", name="uq_expense_document_site_month"),
    )

    def __repr__(self):
        return f"<ExpenseDocument(id='{self.id}', site='{self.site_name}', month='{self.month_key}')>"


class ExpenseItem(Base, TimestampMixin):
    """
    A purchase/usage line inside a document.

    (document_id, category_key, evidence_no) is the natural key used as the
    conflict target for bulk upserts.
    """

    __tablename__ = "expense_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    document_id = Column(
        String(36),
        ForeignKey("expense_documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category_key = Column(String(64), nullable=False)
    category_no = Column(Integer, nullable=True)
    evidence_no = Column(Integer, nullable=False)

    item_name = Column(String(255), nullable=False)
    quantity = Column(Float, nullable=False)
    unit_price = Column(Float, nullable=True)
    amount = Column(Float, nullable=True)
    used_at = Column(Date, nullable=True)

    source = Column(String(20), nullable=False, default="excel")  # excel | manual

    document = relationship("ExpenseDocument", back_populates="items")
    photos = relationship(
        "ExpensePhoto",
        back_populates="item",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "document_id",
            "category_key",
            "evidence_no",
            name="uq_expense_item_doc_category_evidence",
        ),
        Index("ix_expense_items_item_name", "item_name"),
    )

    def __repr__(self):
        return (
            f"<ExpenseItem(id='{self.id}', category='{self.category_key}', "
            f"no={self.evidence_no}, name='{self.item_name}')>"
        )


class ExpensePhoto(Base, TimestampMixin):
    """
    Evidence photo for an item. A slot (item_id, kind, slot_index) holds at
    most one photo; re-uploading replaces both the object and this row.
    """

    __tablename__ = "expense_item_photos"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    item_id = Column(
        String(36),
        ForeignKey("expense_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind = Column(String(20), nullable=False)
    slot_index = Column(Integer, nullable=False, default=0)
    storage_path = Column(String(512), nullable=False)
    public_url = Column(String(1024), nullable=True)

    original_name = Column(String(255), nullable=True)
    content_type = Column(String(100), nullable=True)
    size_bytes = Column(Integer, nullable=True)

    item = relationship("ExpenseItem", back_populates="photos")

    __table_args__ = (
        UniqueConstraint("item_id", "kind", "slot_index", name="uq_expense_photo_slot"),
    )

    def __repr__(self):
        return f"<ExpensePhoto(item='{self.item_id}', kind='{self.kind}', slot={self.slot_index})>"

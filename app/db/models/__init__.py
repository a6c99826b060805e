"""
Initializes the models package for SQLAlchemy declarative base.

Importing the model classes here ensures that SQLAlchemy's metadata is
populated with all table definitions when `Base.metadata.create_all()`
is called.
"""

from app.db.models.base import Base, TimestampMixin
from app.db.models.expense import (
    ExpenseDocument,
    ExpenseItem,
    ExpensePhoto,
    PhotoKind,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "ExpenseDocument",
    "ExpenseItem",
    "ExpensePhoto",
    "PhotoKind",
]

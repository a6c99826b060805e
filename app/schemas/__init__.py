# File: app/schemas/__init__.py
"""
Schemas package for the expense documentation API.

This module exports Pydantic models used for request validation
and response serialization.
"""

from .expense import (
    ExpenseDocumentCreate,
    ExpenseDocumentResponse,
    ExpenseItemCreate,
    ExpenseItemUpdate,
    ExpenseItemResponse,
    ExpensePhotoResponse,
    ImportResultResponse,
    ImportWarning,
    TotalRow,
)

__all__ = [
    "ExpenseDocumentCreate",
    "ExpenseDocumentResponse",
    "ExpenseItemCreate",
    "ExpenseItemUpdate",
    "ExpenseItemResponse",
    "ExpensePhotoResponse",
    "ImportResultResponse",
    "ImportWarning",
    "TotalRow",
]

# File: app/schemas/expense.py
from typing import Dict, List, Optional
from datetime import date, datetime
import re

from pydantic import BaseModel, Field, field_validator

MONTH_KEY_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class ExpenseDocumentCreate(BaseModel):
    """Schema for getting or creating a site/month document."""

    site_name: str = Field(..., min_length=1, max_length=200, description="Site name")
    month_key: str = Field(..., description="Reporting month as YYYY-MM")

    @field_validator("site_name")
    @classmethod
    def strip_site_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("site_name must not be blank")
        return v

    @field_validator("month_key")
    @classmethod
    def validate_month_key(cls, v: str) -> str:
        v = v.strip()
        if not MONTH_KEY_PATTERN.match(v):
            raise ValueError("month_key must be formatted as YYYY-MM")
        return v


class ExpenseDocumentResponse(BaseModel):
    """Schema for expense document responses."""

    id: str
    site_name: str
    month_key: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseItemBase(BaseModel):
    """Fields shared by manual item entry and item responses."""

    category_key: str = Field(..., min_length=1, max_length=64, description="Stable category key")
    category_no: Optional[int] = Field(None, description="Source category ordinal")
    item_name: str = Field(..., min_length=1, max_length=255, description="Item name")
    quantity: float = Field(..., gt=0, description="Quantity, must be positive")
    unit_price: Optional[float] = Field(None, ge=0, description="Unit price")
    amount: Optional[float] = Field(None, ge=0, description="Line amount")
    used_at: Optional[date] = Field(None, description="Date of use")


class ExpenseItemCreate(ExpenseItemBase):
    """Schema for manual item entry. The next evidence number is assigned if omitted."""

    evidence_no: Optional[int] = Field(None, ge=1, description="Evidence number within the category")

    @field_validator("item_name")
    @classmethod
    def strip_item_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("item_name must not be blank")
        return v


class ExpenseItemUpdate(BaseModel):
    """Schema for manual edits. Only provided fields change."""

    item_name: Optional[str] = Field(None, min_length=1, max_length=255)
    quantity: Optional[float] = Field(None, gt=0)
    unit_price: Optional[float] = Field(None, ge=0)
    amount: Optional[float] = Field(None, ge=0)
    used_at: Optional[date] = None
    evidence_no: Optional[int] = Field(None, ge=1)


class ExpenseItemResponse(ExpenseItemBase):
    """Schema for item responses."""

    id: str
    document_id: str
    evidence_no: int
    source: str

    class Config:
        from_attributes = True


class ExpensePhotoResponse(BaseModel):
    """Schema for photo responses. signed_url is issued fresh on every listing."""

    id: str
    item_id: str
    kind: str
    slot_index: int
    storage_path: str
    original_name: Optional[str] = None
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    signed_url: Optional[str] = None

    class Config:
        from_attributes = True


class ImportWarning(BaseModel):
    row: int = Field(..., description="1-based worksheet row number")
    reason: str


class TotalRow(BaseModel):
    row: int
    category_key: Optional[str] = None
    label: str
    quantity: Optional[float] = None
    amount: Optional[float] = None


class ImportResultResponse(BaseModel):
    """Schema for the result of a workbook import."""

    committed: int = Field(..., description="Number of items written")
    skipped: int = Field(0, description="Items skipped as already present (skip_existing mode)")
    mode: str
    header_row: int = Field(..., description="1-based header row number")
    category_counts: Dict[str, int] = Field(default_factory=dict)
    warnings: List[ImportWarning] = Field(default_factory=list)
    totals: List[TotalRow] = Field(default_factory=list)

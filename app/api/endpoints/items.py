# File: app/api/endpoints/items.py

import logging
from typing import List

from fastapi import APIRouter, Depends, Path, Query

from app.api.deps import get_document_service
from app.schemas.expense import ExpenseItemResponse, ExpenseItemUpdate
from app.services.expense_document_service import ExpenseDocumentService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[ExpenseItemResponse])
def search_items(
    q: str = Query("", description="Part of the item name"),
    limit: int = Query(20, ge=1, le=100),
    service: ExpenseDocumentService = Depends(get_document_service),
):
    """
    Item name search for autocomplete.
    """
    return service.search_items(q, limit=limit)


@router.get("/{item_id}", response_model=ExpenseItemResponse)
def get_item(
    item_id: str = Path(..., description="The ID of the item"),
    service: ExpenseDocumentService = Depends(get_document_service),
):
    return service.get_item(item_id)


@router.patch("/{item_id}", response_model=ExpenseItemResponse)
def update_item(
    item_in: ExpenseItemUpdate,
    item_id: str = Path(..., description="The ID of the item"),
    service: ExpenseDocumentService = Depends(get_document_service),
):
    """
    Edit an item. Only fields present in the request body change.
    """
    return service.update_item(item_id, item_in.model_dump(exclude_unset=True))

# File: app/api/endpoints/photos.py

import logging
from typing import List

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Path,
    UploadFile,
    status,
)

from app.api.deps import get_photo_service
from app.core.exceptions import ExpenseDocsException
from app.schemas.expense import ExpensePhotoResponse
from app.services.expense_photo_service import ExpensePhotoService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/{item_id}/photos",
    response_model=ExpensePhotoResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_item_photo(
    item_id: str = Path(..., description="The ID of the item"),
    kind: str = Form(..., description="inbound or install"),
    slot: int = Form(..., description="Slot index (inbound: 0, install: 0-3)"),
    file: UploadFile = File(...),
    service: ExpensePhotoService = Depends(get_photo_service),
):
    """
    Upload a photo into an item slot. An occupied slot is replaced.
    """
    try:
        data = await file.read()
        photo = service.upload_photo(
            item_id,
            kind,
            slot,
            data,
            filename=file.filename,
            content_type=file.content_type,
        )
        response = ExpensePhotoResponse.model_validate(photo)
        response.signed_url = service.signed_url(photo.storage_path)
        return response
    except ExpenseDocsException:
        raise
    except Exception as e:
        logger.error(f"Error uploading photo for item {item_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Photo upload failed: {str(e)}",
        )
    finally:
        await file.close()


@router.get("/{item_id}/photos", response_model=List[ExpensePhotoResponse])
def list_item_photos(
    item_id: str = Path(..., description="The ID of the item"),
    service: ExpensePhotoService = Depends(get_photo_service),
):
    """
    List an item's photos ordered by kind and slot, with fresh signed URLs.
    """
    return service.list_photos(item_id)

# File: app/api/endpoints/documents.py
"""
Document endpoints: get-or-create, item listing and manual entry, clearing,
workbook import and workbook export.
"""

import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Path,
    Response,
    UploadFile,
    status,
)

from app.api.deps import (
    get_document_service,
    get_export_service,
    get_import_service,
    get_settings,
)
from app.core.config import Settings
from app.core.exceptions import ExpenseDocsException
from app.schemas.expense import (
    ExpenseDocumentCreate,
    ExpenseDocumentResponse,
    ExpenseItemCreate,
    ExpenseItemResponse,
    ImportResultResponse,
)
from app.services.expense_document_service import ExpenseDocumentService
from app.services.expense_export_service import ExpenseExportService
from app.services.expense_import_service import ExpenseImportService

router = APIRouter()
logger = logging.getLogger(__name__)


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name and the UTF-8 name (RFC 6266)."""
    fallback = filename.encode("ascii", "ignore").decode() or "export.xlsx"
    if fallback.startswith("_"):
        fallback = f"expense{fallback}"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@router.post("/", response_model=ExpenseDocumentResponse)
def get_or_create_document(
    document_in: ExpenseDocumentCreate,
    service: ExpenseDocumentService = Depends(get_document_service),
):
    """
    Get the document for a site and month, creating it on first access.
    """
    return service.get_or_create(document_in.site_name, document_in.month_key)


@router.get("/{document_id}", response_model=ExpenseDocumentResponse)
def get_document(
    document_id: str = Path(..., description="The ID of the document"),
    service: ExpenseDocumentService = Depends(get_document_service),
):
    return service.get_or_404(document_id)


@router.get("/{document_id}/items", response_model=List[ExpenseItemResponse])
def list_document_items(
    document_id: str = Path(..., description="The ID of the document"),
    service: ExpenseDocumentService = Depends(get_document_service),
):
    """
    List a document's items ordered by category and evidence number.
    """
    return service.list_items(document_id)


@router.post(
    "/{document_id}/items",
    response_model=ExpenseItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_document_item(
    item_in: ExpenseItemCreate,
    document_id: str = Path(..., description="The ID of the document"),
    service: ExpenseDocumentService = Depends(get_document_service),
):
    """
    Manually add an item. The next evidence number of the category is used
    unless one is given.
    """
    return service.create_item(document_id, item_in.model_dump())


@router.delete("/{document_id}/items")
def clear_document_items(
    document_id: str = Path(..., description="The ID of the document"),
    service: ExpenseDocumentService = Depends(get_document_service),
):
    """
    Delete every item of a document, typically before a full re-import.
    """
    deleted = service.clear_items(document_id)
    return {"deleted": deleted}


@router.post("/{document_id}/import", response_model=ImportResultResponse)
async def import_workbook(
    document_id: str = Path(..., description="The ID of the document"),
    file: UploadFile = File(...),
    mode: Optional[str] = Form(None, description="upsert, replace or skip_existing"),
    quantity_fallback: Optional[bool] = Form(None),
    service: ExpenseImportService = Depends(get_import_service),
    config: Settings = Depends(get_settings),
):
    """
    Import line items from an .xlsx workbook into a document.

    The whole batch is rejected when the workbook shape is wrong or validation
    fails; skipped rows are reported as warnings.
    """
    try:
        data = await file.read()
        if len(data) > config.max_upload_size_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large (max {config.MAX_UPLOAD_SIZE_MB}MB)",
            )
        logger.info(f"Importing {file.filename} ({len(data)} bytes) into document {document_id}")
        result = service.import_workbook(
            document_id, data, mode=mode, quantity_fallback=quantity_fallback
        )
        return result.to_dict()
    except (HTTPException, ExpenseDocsException):
        raise
    except Exception as e:
        logger.error(f"Error importing workbook into {document_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Import failed: {str(e)}",
        )
    finally:
        await file.close()


@router.get("/{document_id}/export")
def export_workbook(
    document_id: str = Path(..., description="The ID of the document"),
    service: ExpenseExportService = Depends(get_export_service),
):
    """
    Download the audit workbook: summary sheet plus one photo sheet per item.
    """
    exported = service.export_document(document_id)
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": content_disposition(exported.filename)},
    )

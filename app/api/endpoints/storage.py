# File: app/api/endpoints/storage.py
"""
Signed-URL read access to stored objects.

This route is what LocalObjectStorage signed URLs point at. The token in the
query string is the only credential: it names the bucket and path and expires.
"""

import logging
import mimetypes

from fastapi import APIRouter, Depends, Path, Query, Response

from app.api.deps import get_object_storage, get_settings
from app.core.config import Settings
from app.core.security import verify_storage_token
from app.services.object_storage_service import ObjectStorage

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{bucket}/{object_path:path}")
def read_object(
    bucket: str = Path(..., description="Bucket name"),
    object_path: str = Path(..., description="Object path inside the bucket"),
    token: str = Query(..., description="Signed URL token"),
    storage: ObjectStorage = Depends(get_object_storage),
    config: Settings = Depends(get_settings),
):
    verify_storage_token(
        token, config.SECRET_KEY, bucket=bucket, path=object_path, algorithm=config.JWT_ALGORITHM
    )
    data = storage.read(bucket, object_path)
    media_type, _ = mimetypes.guess_type(object_path)
    logger.debug(f"Serving {bucket}/{object_path} ({len(data)} bytes)")
    return Response(
        content=data,
        media_type=media_type or "application/octet-stream",
        headers={"Cache-Control": "private, max-age=60"},
    )

# app/api/api.py

from fastapi import APIRouter, Depends

from app.api.deps import verify_api_key
from app.api.endpoints import documents, items, photos, storage

api_router = APIRouter()

# Routers behind the API key check
protected = [Depends(verify_api_key)]
api_router.include_router(
    documents.router, prefix="/documents", tags=["Documents"], dependencies=protected
)
api_router.include_router(
    items.router, prefix="/items", tags=["Items"], dependencies=protected
)
api_router.include_router(
    photos.router, prefix="/items", tags=["Photos"], dependencies=protected
)

# Signed URLs carry their own token
api_router.include_router(storage.router, prefix="/storage", tags=["Storage"])

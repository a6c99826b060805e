# app/api/deps.py
"""
FastAPI dependencies for the expense documentation API.

Provides dependency functions for database sessions, API key checking and
service injection for API routes. Settings and object storage are
dependencies of their own so tests can override them.
"""

import logging
from typing import Optional

from fastapi import Depends, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from app.core.config import Settings, settings
from app.core.exceptions import UnauthorizedException
from app.core.security import api_key_matches

# Database session provider
from app.db.session import get_db

from app.services.expense_document_service import ExpenseDocumentService
from app.services.expense_export_service import ExpenseExportService
from app.services.expense_import_service import ExpenseImportService
from app.services.expense_photo_service import ExpensePhotoService
from app.services.object_storage_service import ObjectStorage
from app.services.service_factory import ServiceFactory, build_object_storage

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

__all__ = [
    "get_db",
    "get_settings",
    "get_object_storage",
    "get_service_factory",
    "get_document_service",
    "get_import_service",
    "get_export_service",
    "get_photo_service",
    "verify_api_key",
]


def get_settings() -> Settings:
    return settings


def get_object_storage(config: Settings = Depends(get_settings)) -> ObjectStorage:
    return build_object_storage(config)


def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
    config: Settings = Depends(get_settings),
) -> None:
    """
    Check the X-API-Key header against the configured key.
    Without a configured API_KEY every request is accepted.
    """
    if not api_key_matches(api_key, config.API_KEY):
        logger.warning("Rejected request with a missing or wrong API key")
        raise UnauthorizedException("Missing or invalid API key")


def get_service_factory(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    storage: ObjectStorage = Depends(get_object_storage),
) -> ServiceFactory:
    return ServiceFactory(db, config=config, object_storage=storage)


# --- Service Dependency Getters ---
def get_document_service(
    factory: ServiceFactory = Depends(get_service_factory),
) -> ExpenseDocumentService:
    return factory.get_document_service()


def get_import_service(
    factory: ServiceFactory = Depends(get_service_factory),
) -> ExpenseImportService:
    return factory.get_import_service()


def get_export_service(
    factory: ServiceFactory = Depends(get_service_factory),
) -> ExpenseExportService:
    return factory.get_export_service()


def get_photo_service(
    factory: ServiceFactory = Depends(get_service_factory),
) -> ExpensePhotoService:
    return factory.get_photo_service()

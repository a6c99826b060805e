# app/services/service_factory.py
"""
Factory for creating service instances.

This module provides a centralized factory for creating service instances,
ensuring consistent initialization and dependency injection. It is the only
place where settings are turned into ImportOptions / ExportConfig objects.
"""

from typing import Optional, Any, Dict

from sqlalchemy.orm import Session

from app.core.config import Settings, settings as default_settings
from app.services.expense_document_service import ExpenseDocumentService
from app.services.expense_export_service import ExpenseExportService, ExportConfig
from app.services.expense_import_service import ExpenseImportService, ImportOptions
from app.services.expense_photo_service import ExpensePhotoService
from app.services.object_storage_service import LocalObjectStorage, ObjectStorage


def build_object_storage(config: Settings) -> ObjectStorage:
    return LocalObjectStorage(
        base_path=config.STORAGE_BASE_PATH,
        secret_key=config.SECRET_KEY,
        public_url=config.STORAGE_PUBLIC_URL,
        algorithm=config.JWT_ALGORITHM,
    )


class ServiceFactory:
    """
    Factory for creating service instances with proper dependencies.

    This factory ensures that services are created with consistent dependencies
    and provides a single point for service instantiation.
    """

    def __init__(
        self,
        session: Session,
        config: Optional[Settings] = None,
        object_storage: Optional[ObjectStorage] = None,
    ):
        """
        Initialize the service factory with dependencies.

        Args:
            session: Database session for persistence operations
            config: Settings to derive service options from (defaults to app settings)
            object_storage: Storage backend (defaults to local storage from settings)
        """
        self.session = session
        self.config = config or default_settings
        self.object_storage = object_storage or build_object_storage(self.config)

        # Service instance cache, one per factory
        self._service_instances: Dict[str, Any] = {}

    def _cached(self, name: str, build):
        if name not in self._service_instances:
            self._service_instances[name] = build()
        return self._service_instances[name]

    def get_document_service(self) -> ExpenseDocumentService:
        return self._cached(
            "document_service", lambda: ExpenseDocumentService(self.session)
        )

    def get_import_service(self) -> ExpenseImportService:
        return self._cached(
            "import_service",
            lambda: ExpenseImportService(
                self.session, options=ImportOptions.from_settings(self.config)
            ),
        )

    def get_export_service(self) -> ExpenseExportService:
        return self._cached(
            "export_service",
            lambda: ExpenseExportService(
                self.session,
                config=ExportConfig.from_settings(self.config),
                storage=self.object_storage,
            ),
        )

    def get_photo_service(self) -> ExpensePhotoService:
        """
        Get an ExpensePhotoService instance.

        Returns:
            ExpensePhotoService writing to the primary bucket
        """
        return self._cached(
            "photo_service",
            lambda: ExpensePhotoService(
                self.session,
                storage=self.object_storage,
                bucket=self.config.STORAGE_BUCKET,
                fallback_bucket=self.config.STORAGE_FALLBACK_BUCKET,
                signed_url_expires=self.config.SIGNED_URL_EXPIRE_SECONDS,
                max_upload_bytes=self.config.max_upload_size_bytes,
            ),
        )

# File: app/core/exceptions.py

from typing import Dict, Any, List, Optional
from datetime import datetime


class ExpenseDocsException(Exception):
    """Base exception for all expense documentation errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize an expense documentation exception.

        Args:
            message: Human-readable error message
            code: Optional machine-processable error code
            details: Additional error details
        """
        self.message = message
        self.code = code or "GENERIC_ERROR"
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for API responses.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": datetime.now().isoformat(),
        }


# Domain-specific exceptions
class DomainException(ExpenseDocsException):
    """Base exception for domain-related errors."""

    CODE_PREFIX = "DOMAIN_"


class EntityNotFoundException(DomainException):
    """Raised when a requested entity does not exist."""

    status_code = 404

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} with ID {entity_id} not found",
            f"{self.CODE_PREFIX}001",
            {"entity_type": entity_type, "entity_id": entity_id},
        )


# Validation exceptions
class ValidationException(ExpenseDocsException):
    """Raised when input validation fails."""

    status_code = 422

    def __init__(
        self, message: str, validation_errors: Optional[Dict[str, List[str]]] = None
    ):
        super().__init__(
            message, "VALIDATION_001", {"validation_errors": validation_errors or {}}
        )


# Business rule exceptions
class BusinessRuleException(ExpenseDocsException):
    """Raised when a business rule or constraint is violated."""

    CODE_PREFIX = "BUSINESS_"
    status_code = 400

    def __init__(
        self,
        message: str,
        rule_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if rule_name:
            error_details["rule_name"] = rule_name
        super().__init__(message, f"{self.CODE_PREFIX}001", error_details)


# Import exceptions
class ImportException(ExpenseDocsException):
    """Base exception for workbook import errors. Nothing is committed."""

    CODE_PREFIX = "IMPORT_"
    status_code = 400


class WorkbookFormatException(ImportException):
    """
    Raised when the uploaded workbook has the wrong shape: unreadable file,
    no sheets, no detectable header row or a missing mandatory column.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, f"{self.CODE_PREFIX}001", details or {})


class ImportValidationException(ImportException):
    """
    Raised when the parsed batch fails validation (duplicate evidence numbers,
    invalid records, no valid rows). Carries every offending row.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        rule_name: Optional[str] = None,
    ):
        details: Dict[str, Any] = {"errors": errors or []}
        if rule_name:
            details["rule_name"] = rule_name
        super().__init__(message, f"{self.CODE_PREFIX}002", details)


# Export exceptions
class ExportException(ExpenseDocsException):
    """Base exception for workbook export errors. No partial output is returned."""

    CODE_PREFIX = "EXPORT_"


class TemplateNotFoundException(ExportException):
    """Raised when the export template workbook cannot be loaded."""

    def __init__(self, template_path: str, reason: Optional[str] = None):
        details = {"template_path": template_path}
        if reason:
            details["reason"] = reason
        super().__init__(
            f"Export template not found or unreadable: {template_path}",
            f"{self.CODE_PREFIX}001",
            details,
        )


class PhotoSheetMissingException(ExportException):
    """Raised when the named photo template sheet is absent from the template."""

    def __init__(self, sheet_name: str, available: Optional[List[str]] = None):
        super().__init__(
            f"Photo template sheet not found, check the sheet name: {sheet_name}",
            f"{self.CODE_PREFIX}002",
            {"sheet_name": sheet_name, "available_sheets": available or []},
        )


class PhotoFetchException(ExportException):
    """Raised when a photo cannot be read from any configured bucket."""

    def __init__(self, storage_path: str, buckets: List[str], reason: str):
        super().__init__(
            f"Failed to fetch photo {storage_path}: {reason}",
            f"{self.CODE_PREFIX}003",
            {"storage_path": storage_path, "buckets": buckets, "reason": reason},
        )


# Storage exceptions
class StorageException(ExpenseDocsException):
    """Base exception for storage-related errors."""

    CODE_PREFIX = "STORAGE_"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, f"{self.CODE_PREFIX}001", details or {})


class InvalidPathException(StorageException):
    """Raised when an object path escapes its bucket or is malformed."""

    status_code = 400

    def __init__(self, path: str):
        super().__init__(f"Invalid storage path: {path}", {"path": path})


class FileStorageException(StorageException):
    """
    Exception raised for file storage-specific errors.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if file_path:
            error_details["file_path"] = file_path
        if operation:
            error_details["operation"] = operation
        super().__init__(message=message, details=error_details)


class SignedUrlException(StorageException):
    """Raised when a signed URL is expired, tampered with or malformed."""

    status_code = 403

    def __init__(self, message: str = "Invalid or expired signed URL"):
        super().__init__(message)
        self.code = f"{self.CODE_PREFIX}003"


# Security exceptions
class UnauthorizedException(ExpenseDocsException):
    """Raised when the API key is missing or wrong."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized access"):
        super().__init__(message, "SECURITY_001", {})


class DatabaseException(ExpenseDocsException):
    """
    Exception raised for database-related errors. The driver message is kept
    verbatim in the error text.
    """

    CODE_PREFIX = "DATABASE_"

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        entity_type: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if query:
            error_details["query"] = query
        if entity_type:
            error_details["entity_type"] = entity_type
        code = error_code or f"{self.CODE_PREFIX}001"
        super().__init__(message=message, code=code, details=error_details)

# File: app/core/config.py
"""
Configuration settings for the safety expense documentation service.

This module defines application settings using Pydantic's BaseSettings,
which supports environment variable loading and validation.
"""

import secrets
from typing import List, Optional, Union

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The import/export services never read these values directly; the service
    factory turns them into ImportOptions / ExportConfig objects.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # API settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Safety Expense Docs"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    PRODUCTION: bool = False

    # Security
    SECRET_KEY: str = secrets.token_urlsafe(32)
    JWT_ALGORITHM: str = "HS256"
    API_KEY: Optional[str] = None  # Unset disables the X-API-Key check

    # CORS
    BACKEND_CORS_ORIGINS: List[Union[AnyHttpUrl, str]] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse CORS origins from a JSON list or a comma-separated string."""
        if isinstance(v, str):
            try:
                import json

                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                return [i.strip() for i in v.split(",") if i.strip()]
        return v or []

    # Database
    DATABASE_URL: str = "sqlite:///./expense_docs.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 900

    # Object storage
    STORAGE_BASE_PATH: str = "./storage"
    STORAGE_PUBLIC_URL: str = "http://localhost:8000/api/v1/storage"
    STORAGE_BUCKET: str = "expense-evidence"
    STORAGE_FALLBACK_BUCKET: Optional[str] = "expense-photos"
    SIGNED_URL_EXPIRE_SECONDS: int = 60 * 10

    # Upload limits
    MAX_UPLOAD_SIZE_MB: int = 20

    # Import
    IMPORT_HEADER_SCAN_ROWS: int = 40
    IMPORT_QUANTITY_FALLBACK: bool = False
    IMPORT_QUANTITY_FALLBACK_CEILING: float = 100000
    IMPORT_COMMIT_MODE: str = "upsert"

    # Export
    EXPORT_TEMPLATE_PATH: str = "templates/항목별사용내역서_template.xlsx"
    EXPORT_SUMMARY_SHEET_INDEX: int = 0
    PHOTO_SHEET_NAME: str = "2.안전시설물 사진대지"

    @field_validator("IMPORT_COMMIT_MODE")
    @classmethod
    def validate_commit_mode(cls, v: str) -> str:
        """Only the three documented commit disciplines are accepted."""
        v = v.strip().lower()
        if v not in ("upsert", "replace", "skip_existing"):
            raise ValueError(
                "IMPORT_COMMIT_MODE must be one of: upsert, replace, skip_existing"
            )
        return v

    @field_validator("SIGNED_URL_EXPIRE_SECONDS")
    @classmethod
    def validate_signed_url_ttl(cls, v: int) -> int:
        """Signed URLs are short-lived; clamp to 1 second .. 1 day."""
        return max(1, min(v, 60 * 60 * 24))

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024


settings = Settings()

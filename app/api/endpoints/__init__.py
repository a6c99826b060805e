# File: app/api/endpoints/__init__.py
"""
API endpoints package for the expense documentation service.

This package contains the endpoint modules for documents, items, photos and
signed-URL storage reads.
"""

from app.api.endpoints import documents, items, photos, storage

__all__ = ["documents", "items", "photos", "storage"]

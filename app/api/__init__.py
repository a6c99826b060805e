# File: app/api/__init__.py
"""
API package for the expense documentation service.

This package contains the API layer, including endpoints, dependencies,
exception handlers and routing configuration.
"""

from app.api import deps, endpoints
from app.api.api import api_router

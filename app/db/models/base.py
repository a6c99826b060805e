# File: app/db/models/base.py
"""
Base model and mixins for the expense documentation database.

This module provides the declarative base shared by every table and the
timestamp mixin used by all persisted entities.
"""

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, DateTime, MetaData
from sqlalchemy.orm import declarative_base

# Create the SQLAlchemy base

Base = declarative_base(metadata=MetaData())


def generate_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """
    Mixin providing automatic timestamp functionality.

    Adds created_at and updated_at timestamps that are automatically
    maintained when records are created or updated.
    """

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

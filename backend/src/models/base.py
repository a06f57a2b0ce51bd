"""
Database base models and utilities.

This module provides the base SQLAlchemy model class and column types
shared by the models.
"""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# Re-export Base from core.database for backward compatibility
from core.database import Base  # type: ignore[reportUnusedImport]

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

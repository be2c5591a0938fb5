"""Database layer for Buildgate.

This module handles database connections, session management, and the
SQLAlchemy models backing the build registry.

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    create_tables: Create missing tables.
    Base: SQLAlchemy declarative base for all models.
"""

from buildgate.database.connection import create_tables, get_engine, get_session_factory
from buildgate.database.models import (
    Base,
    Build,
    BuildJob,
    BuildStatus,
    TimestampMixin,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "create_tables",
    "Base",
    "TimestampMixin",
    "Build",
    "BuildJob",
    "BuildStatus",
]

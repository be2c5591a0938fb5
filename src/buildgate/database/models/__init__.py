"""SQLAlchemy ORM models for Buildgate.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from buildgate.database.models.base import Base, TimestampMixin
from buildgate.database.models.build import Build, BuildJob, BuildStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "Build",
    "BuildJob",
    "BuildStatus",
]

"""Database query functions for Buildgate."""

from buildgate.database.queries.build import (
    attach_build_job,
    create_build,
    find_builds_by_commits,
    get_build,
    update_build_status,
)

__all__ = [
    "attach_build_job",
    "create_build",
    "find_builds_by_commits",
    "get_build",
    "update_build_status",
]

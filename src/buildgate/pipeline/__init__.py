"""Source repository operations for Buildgate."""

from __future__ import annotations

from buildgate.pipeline.git_ops import GitSourceRepository

__all__ = [
    "GitSourceRepository",
]

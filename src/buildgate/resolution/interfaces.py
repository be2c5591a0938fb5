"""Collaborator contracts of the build resolution engine.

Implementations shipped with Buildgate:
- BuildRegistry: buildgate.database.build_registry.SqlBuildRegistry
- BuildExecutor: buildgate.integrations.build_service.HttpBuildExecutor
- SourceRepository: buildgate.pipeline.git_ops.GitSourceRepository
- OutputSink: buildgate.output.ConsoleOutput, buildgate.output.BufferedOutput
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol, Union

from buildgate.database.models.build import Build
from buildgate.resolution.context import DeployContext, ProjectConfig


class BuildRegistry(Protocol):
    """Read/write access to build records."""

    async def find_builds(self, commit_shas: Sequence[str]) -> list[Build]:
        """Builds of any project at any of the given commits."""
        ...

    async def create_build(
        self,
        commit: str,
        ref: str,
        requester: str,
        project: ProjectConfig,
        dockerfile: str,
        name: str,
    ) -> Build:
        """Insert a new pending build."""
        ...

    async def reload(self, build: Build) -> Build:
        """Current state of ``build``."""
        ...


class BuildExecutor(Protocol):
    """External service that runs builds."""

    async def start(self, build: Build) -> None:
        """Trigger execution of ``build`` without waiting for it."""
        ...


class SourceRepository(Protocol):
    """Read access to the project's source tree."""

    async def file_exists(self, path: str, commit: str) -> bool:
        """Whether ``path`` exists in the tree of ``commit``."""
        ...


class OutputSink(Protocol):
    """Append-only, line-oriented deploy output."""

    def puts(self, line: str) -> None: ...


PostBuildCheck = Callable[[Build, DeployContext], Union[bool, Awaitable[bool]]]
"""Extra validation of a successful build; returns False to reject it."""

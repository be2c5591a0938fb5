"""SQLAlchemy-backed build registry.

Adapts the build query functions to the BuildRegistry contract used by the
resolution engine. Every call runs in its own short-lived session so reads
always observe the latest committed state written by the build service.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from buildgate.database.models.build import Build
from buildgate.database.queries.build import (
    create_build,
    find_builds_by_commits,
    get_build,
)
from buildgate.logging import get_logger
from buildgate.resolution.context import ProjectConfig
from buildgate.resolution.selectors import short_image_name


class SqlBuildRegistry:
    """BuildRegistry implementation over the builds table.

    Attributes:
        session_factory: Factory producing async sessions
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self.logger = get_logger(__name__)

    async def find_builds(self, commit_shas: Sequence[str]) -> list[Build]:
        """Builds of any project at any of the given commits, newest first."""
        async with self.session_factory() as session:
            builds = await find_builds_by_commits(session, commit_shas)

        self.logger.debug(
            "builds_found",
            commits=list(commit_shas),
            count=len(builds),
        )
        return builds

    async def create_build(
        self,
        commit: str,
        ref: str,
        requester: str,
        project: ProjectConfig,
        dockerfile: str,
        name: str,
    ) -> Build:
        """Insert a pending build publishing the project's image for ``dockerfile``."""
        async with self.session_factory() as session:
            return await create_build(
                session,
                git_sha=commit,
                git_ref=ref,
                project_name=project.name,
                image_name=short_image_name(project.image_for(dockerfile)),
                dockerfile=dockerfile,
                creator=requester,
                name=name,
            )

    async def reload(self, build: Build) -> Build:
        """Current state of ``build``.

        Raises:
            LookupError: If the build row was deleted
        """
        async with self.session_factory() as session:
            fresh = await get_build(session, build.id)

        if fresh is None:
            self.logger.error("build_disappeared", build_id=str(build.id))
            raise LookupError(f"Build {build.id} no longer exists")
        return fresh

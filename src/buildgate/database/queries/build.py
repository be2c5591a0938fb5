"""Build query functions for Buildgate.

Provides async functions for creating and reading Build records and for the
status updates the build-execution service reports back.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from buildgate.database.models.build import Build, BuildJob, BuildStatus

logger = structlog.get_logger(__name__)


async def create_build(
    session: AsyncSession,
    git_sha: str,
    git_ref: str,
    project_name: str,
    image_name: str,
    dockerfile: str | None = None,
    creator: str | None = None,
    name: str | None = None,
    external: bool = False,
    external_url: str | None = None,
) -> Build:
    """Insert a new pending build.

    Args:
        session: Active async database session.
        git_sha: Commit to build.
        git_ref: Branch or tag the commit belongs to.
        project_name: Requesting project.
        image_name: Short image name the build will publish.
        dockerfile: Repository path of the dockerfile.
        creator: Requesting user or system.
        name: Human-readable build name.
        external: Whether an external build system owns the build.
        external_url: Link to the external build system's page.

    Returns:
        The newly created Build instance.
    """
    build = Build(
        git_sha=git_sha,
        git_ref=git_ref,
        project_name=project_name,
        image_name=image_name,
        dockerfile=dockerfile,
        creator=creator,
        name=name,
        external=external,
        external_url=external_url,
        status=BuildStatus.pending,
    )

    async with session.begin():
        session.add(build)
        await session.flush()
        await session.refresh(build)

    logger.info(
        "build_created",
        build_id=str(build.id),
        git_sha=git_sha,
        project=project_name,
        dockerfile=dockerfile,
        image_name=image_name,
    )

    return build


async def get_build(session: AsyncSession, build_id: UUID) -> Build | None:
    """Read the current state of a build, bypassing the identity map.

    Args:
        session: Active async database session.
        build_id: UUID of the build.

    Returns:
        The Build instance if found, None otherwise.
    """
    return await session.get(Build, build_id, populate_existing=True)


async def find_builds_by_commits(
    session: AsyncSession,
    commit_shas: Sequence[str],
) -> list[Build]:
    """List builds for any of the given commits, newest first.

    Args:
        session: Active async database session.
        commit_shas: Commits to look up.

    Returns:
        Matching builds across all projects.
    """
    if not commit_shas:
        return []

    stmt = (
        select(Build)
        .where(Build.git_sha.in_(list(commit_shas)))
        .order_by(Build.created_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def attach_build_job(
    session: AsyncSession,
    build_id: UUID,
    status: str = "pending",
) -> BuildJob:
    """Attach an execution job to a build.

    Args:
        session: Active async database session.
        build_id: UUID of the build being executed.
        status: Initial job status.

    Returns:
        The newly created BuildJob.

    Raises:
        ValueError: If the build does not exist or already has a job.
    """
    async with session.begin():
        build = await session.get(Build, build_id)
        if build is None:
            raise ValueError(f"Build {build_id} not found")
        if build.build_job is not None:
            raise ValueError(f"Build {build_id} already has a job")

        job = BuildJob(status=status)
        build.build_job = job
        await session.flush()
        await session.refresh(job)

    logger.info("build_job_attached", build_id=str(build_id), job_status=status)
    return job


async def update_build_status(
    session: AsyncSession,
    build_id: UUID,
    status: BuildStatus,
    docker_repo_digest: str | None = None,
    job_status: str | None = None,
) -> Build:
    """Record progress reported by the build-execution service.

    Args:
        session: Active async database session.
        build_id: UUID of the build.
        status: New build status.
        docker_repo_digest: Published image digest, if any.
        job_status: New status of the attached job, if any.

    Returns:
        The updated Build instance.

    Raises:
        ValueError: If the build does not exist, or a job status is given
            for a build without a job.
    """
    async with session.begin():
        build = await session.get(Build, build_id)
        if build is None:
            raise ValueError(f"Build {build_id} not found")

        old_status = build.status
        build.status = status
        if docker_repo_digest is not None:
            build.docker_repo_digest = docker_repo_digest
        if job_status is not None:
            if build.build_job is None:
                raise ValueError(f"Build {build_id} has no job")
            build.build_job.status = job_status

        await session.flush()

    logger.info(
        "build_status_updated",
        build_id=str(build_id),
        from_status=old_status.value,
        to_status=status.value,
        has_digest=build.docker_repo_digest is not None,
        job_status=job_status,
    )

    return build

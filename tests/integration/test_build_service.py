"""Integration tests for the build service webhook client."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest
import respx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from buildgate.config import BuildServiceConfig, BuildWaitConfig
from buildgate.database.build_registry import SqlBuildRegistry
from buildgate.database.models.build import Build, BuildStatus
from buildgate.database.queries.build import update_build_status
from buildgate.errors import BuildNotSuccessful
from buildgate.integrations.build_service import BuildTrigger, HttpBuildExecutor
from buildgate.output import BufferedOutput
from buildgate.resolution.context import DeployContext, ProjectConfig
from buildgate.resolution.finder import BuildFinder
from tests.fakes import COMMIT, DIGEST, FakeClock, FakeSource

WEBHOOK_URL = "https://builds.example.com/hooks/start"


class ReportingClock(FakeClock):
    """Clock during whose sleeps the build service reports progress.

    The first sleep moves every build to active with a running job, the
    second one marks them succeeded.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: SqlBuildRegistry,
    ) -> None:
        super().__init__()
        self.session_factory = session_factory
        self.registry = registry

    async def sleep(self, seconds: float) -> None:
        await super().sleep(seconds)
        for build in await self.registry.find_builds([COMMIT]):
            async with self.session_factory() as session:
                if len(self.sleeps) == 1:
                    await update_build_status(session, build.id, BuildStatus.active, job_status="running")
                elif len(self.sleeps) == 2:
                    await update_build_status(
                        session,
                        build.id,
                        BuildStatus.succeeded,
                        docker_repo_digest=DIGEST,
                        job_status="succeeded",
                    )


@pytest.fixture
def service_config() -> BuildServiceConfig:
    return BuildServiceConfig(url=WEBHOOK_URL, auth_header="Bearer s3cret")


async def _new_build(registry: SqlBuildRegistry, project: ProjectConfig) -> Build:
    return await registry.create_build(COMMIT, "main", "alice", project, "Dockerfile", "Autobuild")


def test_trigger_to_dict(make_build: Callable[..., Build]) -> None:
    """Verify payload serialization."""
    build = make_build(dockerfile="Dockerfile.worker", image_name="web-worker", name="Autobuild for Deploy #42")

    result = BuildTrigger.from_build(build).to_dict()

    assert result["build_id"] == str(build.id)
    assert result["git_sha"] == build.git_sha
    assert result["git_ref"] == "main"
    assert result["project"] == "web"
    assert result["image_name"] == "web-worker"
    assert result["dockerfile"] == "Dockerfile.worker"
    assert result["name"] == "Autobuild for Deploy #42"
    assert "requested_at" in result


@respx.mock
@pytest.mark.asyncio
async def test_start_attaches_job_and_posts_trigger(
    service_config: BuildServiceConfig,
    sql_registry: SqlBuildRegistry,
    session_factory: async_sessionmaker[AsyncSession],
    project: ProjectConfig,
) -> None:
    """A started build is queued with a pending job before the service picks it up."""
    route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(202))
    executor = HttpBuildExecutor(service_config, session_factory)
    build = await _new_build(sql_registry, project)

    await executor.start(build)
    await executor.close()

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer s3cret"
    assert json.loads(request.content)["build_id"] == str(build.id)

    reloaded = await sql_registry.reload(build)
    assert reloaded.status == BuildStatus.pending
    assert reloaded.build_job is not None
    assert reloaded.build_job.status == "pending"
    assert reloaded.is_active is True


@respx.mock
@pytest.mark.asyncio
async def test_rejected_trigger_fails_build(
    service_config: BuildServiceConfig,
    sql_registry: SqlBuildRegistry,
    session_factory: async_sessionmaker[AsyncSession],
    project: ProjectConfig,
) -> None:
    respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(500, text="Internal Error"))
    executor = HttpBuildExecutor(service_config, session_factory)
    build = await _new_build(sql_registry, project)

    await executor.start(build)
    await executor.close()

    reloaded = await sql_registry.reload(build)
    assert reloaded.status == BuildStatus.failed
    assert reloaded.build_job.status == "errored"
    assert reloaded.is_active is False


@respx.mock
@pytest.mark.asyncio
async def test_connection_error_is_not_raised(
    service_config: BuildServiceConfig,
    session_factory: async_sessionmaker[AsyncSession],
    make_build: Callable[..., Build],
) -> None:
    respx.post(WEBHOOK_URL).mock(side_effect=httpx.ConnectError("Connection failed"))
    executor = HttpBuildExecutor(service_config, session_factory)

    assert await executor.send(BuildTrigger.from_build(make_build())) is False
    await executor.close()


@respx.mock
@pytest.mark.asyncio
async def test_disabled_service_starts_nothing(
    sql_registry: SqlBuildRegistry,
    session_factory: async_sessionmaker[AsyncSession],
    project: ProjectConfig,
) -> None:
    route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(200))
    executor = HttpBuildExecutor(BuildServiceConfig(url=WEBHOOK_URL, enabled=False), session_factory)
    build = await _new_build(sql_registry, project)

    await executor.start(build)

    assert not route.called
    reloaded = await sql_registry.reload(build)
    assert reloaded.build_job is None


@respx.mock
@pytest.mark.asyncio
async def test_created_build_is_waited_for_until_the_service_reports(
    service_config: BuildServiceConfig,
    sql_registry: SqlBuildRegistry,
    session_factory: async_sessionmaker[AsyncSession],
    project: ProjectConfig,
    deploy: DeployContext,
) -> None:
    """The service only reports progress after the first reload of the new build."""
    respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(202))
    executor = HttpBuildExecutor(service_config, session_factory)
    clock = ReportingClock(session_factory, sql_registry)
    output = BufferedOutput()

    finder = BuildFinder(
        output,
        project,
        deploy,
        sql_registry,
        FakeSource(),
        executor,
        settings=BuildWaitConfig(),
        clock=clock,
    )
    builds = await finder.ensure_successful_builds()
    await executor.close()

    assert len(builds) == 1
    assert builds[0].status == BuildStatus.succeeded
    assert clock.sleeps == [2, 2]
    assert output.lines[-1] == f"Build /builds/{builds[0].id} is looking good!"
    assert f"Waiting for Build /builds/{builds[0].id} to finish." in output.lines


@respx.mock
@pytest.mark.asyncio
async def test_created_build_rejected_by_service(
    service_config: BuildServiceConfig,
    sql_registry: SqlBuildRegistry,
    session_factory: async_sessionmaker[AsyncSession],
    project: ProjectConfig,
    deploy: DeployContext,
) -> None:
    respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(503))
    executor = HttpBuildExecutor(service_config, session_factory)
    finder = BuildFinder(
        BufferedOutput(),
        project,
        deploy,
        sql_registry,
        FakeSource(),
        executor,
        settings=BuildWaitConfig(),
        clock=FakeClock(),
    )

    with pytest.raises(BuildNotSuccessful, match="is errored, rerun it."):
        await finder.ensure_successful_builds()
    await executor.close()

"""Makes sure all builds a deploy needs exist and succeeded.

Needed builds come from the project's dockerfiles or from an explicit
selector list passed by the deploy.

Special cases:
- a project without dockerfiles needs no builds and never blocks
- a repo without a Dockerfile needs no builds when the project only lists
  the default one
- when a build is missing but the project has a release branch, or build
  creation disabled, discovery waits a little for someone else to create it
- builds can be reused from the previous release if the deploy allows it
- builds are found across all projects so projects can share them
- a cancelled deploy finishes up as fast as possible and skips validation

Example usage:
    >>> finder = BuildFinder(output, project, deploy, registry, source, executor)
    >>> builds = await finder.ensure_successful_builds()
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from buildgate.config import BuildWaitConfig
from buildgate.database.models.build import Build
from buildgate.logging import log_duration
from buildgate.resolution.cancellation import CancellationToken
from buildgate.resolution.clock import Clock, SystemClock
from buildgate.resolution.context import DEFAULT_DOCKERFILE, DeployContext, ProjectConfig
from buildgate.resolution.creator import BuildCreator
from buildgate.resolution.discovery import BuildDiscoveryPoller
from buildgate.resolution.interfaces import (
    BuildExecutor,
    BuildRegistry,
    OutputSink,
    SourceRepository,
)
from buildgate.resolution.selectors import Selector, derive_selectors
from buildgate.resolution.validator import OutcomeValidator, PostBuildChecks
from buildgate.resolution.waiter import CompletionWaiter

logger = structlog.get_logger(__name__)


class BuildFinder:
    """Resolves, waits for and validates the builds of one deploy.

    Attributes:
        project: Project being deployed
        deploy: Deploy waiting for the builds
        token: Cancellation token owned by the deploy
    """

    def __init__(
        self,
        output: OutputSink,
        project: ProjectConfig,
        deploy: DeployContext,
        registry: BuildRegistry,
        source: SourceRepository,
        executor: BuildExecutor,
        checks: PostBuildChecks | None = None,
        settings: BuildWaitConfig | None = None,
        clock: Clock | None = None,
        token: CancellationToken | None = None,
        selectors: Sequence[Selector] | None = None,
    ) -> None:
        self.project = project
        self.deploy = deploy
        self.token = token or CancellationToken()
        self._selectors = list(selectors) if selectors is not None else None
        self._clock = clock or SystemClock()
        settings = settings or BuildWaitConfig()

        self._source = source

        creator = BuildCreator(project, deploy, registry, source, executor, output)
        self._poller = BuildDiscoveryPoller(
            project, deploy, registry, creator, settings, self._clock, self.token
        )
        self._waiter = CompletionWaiter(
            registry, output, self._clock, self.token, settings.completion_tick_seconds
        )
        self._validator = OutcomeValidator(deploy, checks or PostBuildChecks(), output)
        self.logger = logger.bind(
            component="BuildFinder",
            project=project.name,
            deploy_id=deploy.deploy_id,
        )

    def cancelled(self) -> None:
        """Deploy was cancelled, finish up as fast as possible."""
        self.token.cancel("deploy cancelled")

    async def find_or_create_builds(self) -> list[Build]:
        """Resolve every needed selector to a build, creating missing ones."""
        selectors = derive_selectors(self.project, self._selectors)
        if not selectors:
            self.logger.info("no_builds_required")
            return []
        if self._selectors is None and self.project.uses_default_dockerfile:
            if not await self._source.file_exists(DEFAULT_DOCKERFILE, self.deploy.target_commit):
                self.logger.info("no_builds_required", reason="default dockerfile absent")
                return []
        return await self._poller.find_or_create(selectors)

    async def ensure_successful_builds(self) -> list[Build]:
        """Resolve builds, then wait for and validate each one in turn.

        Returns:
            The resolved builds in their latest known state

        Raises:
            UserError: If a build is missing, failed, never ran or was
                rejected by a post-build check
            BuildResolutionInvariantError: On an upstream seeding defect
        """
        builds = await self.find_or_create_builds()
        finished: list[Build] = []

        for build in builds:
            with log_duration(
                self.logger,
                "wait_for_build",
                self._clock.monotonic,
                build_id=str(build.id),
                build_project=build.project_name,
                external=build.external,
            ):
                build = await self._waiter.wait(build)
            finished.append(build)

            if not self.token.cancelled:
                await self._validator.ensure_successful(build)

        return finished

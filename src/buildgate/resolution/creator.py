"""Creation of missing builds.

Builds are only created for dockerfiles that exist at the deploy's commit.
Execution is handed to the external build service; this module never waits
for it.
"""

from __future__ import annotations

import structlog

from buildgate.database.models.build import Build
from buildgate.errors import DockerfileMissing
from buildgate.resolution.context import DeployContext, ProjectConfig
from buildgate.resolution.interfaces import (
    BuildExecutor,
    BuildRegistry,
    OutputSink,
    SourceRepository,
)

logger = structlog.get_logger(__name__)


class BuildCreator:
    """Creates and starts builds for a deploy.

    Attributes:
        project: Project the builds belong to
        deploy: Deploy requesting the builds
    """

    def __init__(
        self,
        project: ProjectConfig,
        deploy: DeployContext,
        registry: BuildRegistry,
        source: SourceRepository,
        executor: BuildExecutor,
        output: OutputSink,
    ) -> None:
        self.project = project
        self.deploy = deploy
        self._registry = registry
        self._source = source
        self._executor = executor
        self._output = output
        self.logger = logger.bind(component="BuildCreator", project=project.name)

    async def create(self, dockerfile: str) -> Build:
        """Create a build of ``dockerfile`` at the deploy's commit and start it.

        Args:
            dockerfile: Repository path of the dockerfile to build

        Returns:
            The new build, still pending or active

        Raises:
            DockerfileMissing: If the dockerfile is not in the source tree
        """
        commit = self.deploy.target_commit
        label = f"build for {dockerfile}"

        if not await self._source.file_exists(dockerfile, commit):
            self.logger.warning(
                "dockerfile_missing",
                dockerfile=dockerfile,
                commit=commit,
            )
            raise DockerfileMissing(dockerfile, commit)

        self._output.puts(f"Creating {label}.")
        build = await self._registry.create_build(
            commit=commit,
            ref=self.deploy.target_ref,
            requester=self.deploy.requester,
            project=self.project,
            dockerfile=dockerfile,
            name=f"Autobuild for Deploy #{self.deploy.deploy_id}",
        )
        await self._executor.start(build)

        self.logger.info(
            "build_started",
            build_id=str(build.id),
            dockerfile=dockerfile,
            commit=commit,
        )
        return build

"""Validation of finished builds.

A finished build is usable when it published an image (has a repository
digest) and every registered post-build check accepts it.
"""

from __future__ import annotations

import inspect

import structlog

from buildgate.database.models.build import Build
from buildgate.errors import BuildNeverRan, BuildNotSuccessful, PostBuildCheckFailed
from buildgate.resolution.context import DeployContext
from buildgate.resolution.interfaces import OutputSink, PostBuildCheck

logger = structlog.get_logger(__name__)


class PostBuildChecks:
    """Ordered registry of post-build check functions.

    Checks may be plain or async callables taking (build, deploy) and
    returning a bool. They run sequentially in registration order.
    """

    def __init__(self, checks: list[PostBuildCheck] | None = None) -> None:
        self._checks: list[PostBuildCheck] = list(checks or [])

    def register(self, check: PostBuildCheck) -> PostBuildCheck:
        """Add a check; usable as a decorator."""
        self._checks.append(check)
        return check

    def __len__(self) -> int:
        return len(self._checks)

    async def run_checks(self, build: Build, deploy: DeployContext) -> list[bool]:
        """Run every check against ``build``.

        Returns:
            One verdict per registered check, empty when none are registered
        """
        verdicts: list[bool] = []
        for check in self._checks:
            verdict = check(build, deploy)
            if inspect.isawaitable(verdict):
                verdict = await verdict
            verdicts.append(bool(verdict))
        return verdicts


class OutcomeValidator:
    """Classifies a finished build as usable or raises a user error."""

    def __init__(
        self,
        deploy: DeployContext,
        checks: PostBuildChecks,
        output: OutputSink,
    ) -> None:
        self.deploy = deploy
        self._checks = checks
        self._output = output

    async def ensure_successful(self, build: Build) -> None:
        """Raise unless ``build`` published an image that passes all checks.

        Args:
            build: Finished build

        Raises:
            PostBuildCheckFailed: If a post-build check rejected the build
            BuildNotSuccessful: If the build ran but published nothing
            BuildNeverRan: If no execution job was ever attached
        """
        if build.docker_repo_digest:
            verdicts = await self._checks.run_checks(build, self.deploy)
            if not all(verdicts):
                logger.warning(
                    "post_build_checks_failed",
                    build_id=str(build.id),
                    verdicts=verdicts,
                )
                raise PostBuildCheckFailed(build.url)
            self._output.puts(f"Build {build.url} is looking good!")
        elif build.build_job is not None:
            raise BuildNotSuccessful(build.url, build.build_job.status)
        else:
            raise BuildNeverRan(build.url)

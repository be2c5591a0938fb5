"""Build discovery: resolve selectors to existing builds, creating on the last try.

Builds are often created by someone else shortly before or after a deploy
starts (a CI webhook on the release branch, an external build system), so
discovery polls the registry for a bounded time before falling back to
creating the build itself, or failing when the project has build creation
disabled.

Candidate builds are ranked by commit source: builds of the deploy's own
commit first, then builds of the previous release when the deploy allows
reusing them. Builds are shared across projects.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

import structlog

from buildgate.config import BuildWaitConfig
from buildgate.database.models.build import Build
from buildgate.errors import BuildResolutionInvariantError
from buildgate.resolution.cancellation import CancellationToken
from buildgate.resolution.clock import Clock
from buildgate.resolution.context import DeployContext, ProjectConfig
from buildgate.resolution.creator import BuildCreator
from buildgate.resolution.interfaces import BuildRegistry
from buildgate.resolution.matcher import resolve
from buildgate.resolution.selectors import Selector

logger = structlog.get_logger(__name__)


def wait_budget_seconds(project: ProjectConfig, settings: BuildWaitConfig) -> int:
    """How long discovery may wait for builds created by someone else.

    Args:
        project: Project configuration
        settings: Wait timing configuration

    Returns:
        Budget in seconds; 0 means resolve once and create what is missing
    """
    if project.build_creation_disabled:
        return settings.external_build_wait_seconds
    if project.release_branch:
        # the release branch push may be creating the same build right now
        return settings.release_branch_wait_seconds
    return 0


class BudgetState(str, Enum):
    """State of a RetryBudget.

    Attributes:
        POLLING: More ticks may follow
        EXHAUSTED: The current tick is the final attempt
    """

    POLLING = "polling"
    EXHAUSTED = "exhausted"


class RetryBudget:
    """Wait budget consumed one discovery interval per tick.

    A tick is the final attempt once the remaining budget drops below zero,
    so a zero budget gives exactly one attempt and a budget of one interval
    gives two.

    Attributes:
        remaining_seconds: Budget left after the last tick
        interval_seconds: Budget consumed per tick
        state: POLLING until the final attempt has been handed out
    """

    def __init__(self, budget_seconds: int, interval_seconds: int) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.remaining_seconds = budget_seconds
        self.interval_seconds = interval_seconds
        self.state = BudgetState.POLLING

    def tick(self) -> bool:
        """Consume one interval.

        Returns:
            True if this tick is the final attempt

        Raises:
            RuntimeError: If called after the final attempt
        """
        if self.state == BudgetState.EXHAUSTED:
            raise RuntimeError("Retry budget already exhausted")

        self.remaining_seconds -= self.interval_seconds
        if self.remaining_seconds < 0:
            self.state = BudgetState.EXHAUSTED
        return self.state == BudgetState.EXHAUSTED


class CommitSource(str, Enum):
    """Where a candidate commit comes from, in preference order."""

    OWN_COMMIT = "own_commit"
    PREVIOUS_RELEASE = "previous_release"


def candidate_commits(deploy: DeployContext) -> list[tuple[CommitSource, str]]:
    """Commits whose builds may satisfy ``deploy``, most preferred first."""
    commits = [(CommitSource.OWN_COMMIT, deploy.target_commit)]
    previous = deploy.previous_release_commit
    if deploy.reuse_previous_release_builds and previous and previous != deploy.target_commit:
        commits.append((CommitSource.PREVIOUS_RELEASE, previous))
    return commits


def rank_candidates(builds: Sequence[Build], commit_shas: Sequence[str]) -> list[Build]:
    """Stable-sort builds by the position of their commit in ``commit_shas``.

    Builds of commits not in the list are dropped.
    """
    rank = {sha: index for index, sha in enumerate(commit_shas)}
    return sorted(
        (build for build in builds if build.git_sha in rank),
        key=lambda build: rank[build.git_sha],
    )


class BuildDiscoveryPoller:
    """Resolves a deploy's selectors to builds, polling until the budget runs out."""

    def __init__(
        self,
        project: ProjectConfig,
        deploy: DeployContext,
        registry: BuildRegistry,
        creator: BuildCreator,
        settings: BuildWaitConfig,
        clock: Clock,
        token: CancellationToken,
    ) -> None:
        self.project = project
        self.deploy = deploy
        self.settings = settings
        self._registry = registry
        self._creator = creator
        self._clock = clock
        self._token = token
        self.logger = logger.bind(component="BuildDiscoveryPoller", project=project.name)

    async def fetch_candidates(self) -> list[Build]:
        """All builds that could satisfy the deploy, most preferred first."""
        commit_shas = [sha for _, sha in candidate_commits(self.deploy)]
        builds = await self._registry.find_builds(commit_shas)
        return rank_candidates(builds, commit_shas)

    async def find_or_create(self, selectors: Sequence[Selector]) -> list[Build]:
        """Resolve every selector to one build.

        Args:
            selectors: Requirements to satisfy

        Returns:
            One build per selector, in selector order. On cancellation only
            the selectors resolved so far are included.

        Raises:
            SelectorUnresolved: If a build is missing and creation is disabled
            DockerfileMissing: If a missing build's dockerfile does not exist
            BuildResolutionInvariantError: If a missing build cannot be created
                because its selector has no dockerfile
        """
        if not selectors:
            return []

        creation_disabled = self.project.build_creation_disabled
        budget = RetryBudget(
            wait_budget_seconds(self.project, self.settings),
            self.settings.discovery_interval_seconds,
        )
        resolved: dict[int, Build] = {}
        created: dict[str, Build] = {}
        attempt = 0

        while not self._token.cancelled:
            attempt += 1
            final = budget.tick()
            candidates = await self.fetch_candidates()

            for index, selector in enumerate(selectors):
                if index in resolved:
                    continue

                found = resolve(
                    candidates,
                    selector,
                    fail_if_unmatched=final and creation_disabled and not self._token.cancelled,
                )
                if found is not None:
                    resolved[index] = found
                    continue
                if not final or self._token.cancelled:
                    continue

                if not selector.dockerfile:
                    raise BuildResolutionInvariantError(
                        f"Cannot create build for {selector.describe()!r} without a dockerfile",
                        selector=selector,
                    )
                if creation_disabled:
                    raise BuildResolutionInvariantError(
                        f"Unresolved selector {selector.describe()!r} with build creation disabled",
                        selector=selector,
                    )

                if selector.dockerfile not in created:
                    created[selector.dockerfile] = await self._creator.create(
                        selector.dockerfile
                    )
                resolved[index] = created[selector.dockerfile]

            if len(resolved) == len(selectors) or final:
                break

            self.logger.info(
                "waiting_for_build_creation",
                attempt=attempt,
                missing=[
                    selector.describe()
                    for index, selector in enumerate(selectors)
                    if index not in resolved
                ],
                remaining_seconds=budget.remaining_seconds,
            )
            await self._clock.sleep(self.settings.discovery_interval_seconds)

        self.logger.info(
            "builds_resolved",
            attempts=attempt,
            resolved=len(resolved),
            wanted=len(selectors),
            created=len(created),
            cancelled=self._token.cancelled,
        )
        return [resolved[index] for index in sorted(resolved)]

"""Waiting for a build to leave the active state."""

from __future__ import annotations

import structlog

from buildgate.database.models.build import Build
from buildgate.resolution.cancellation import CancellationToken
from buildgate.resolution.clock import Clock
from buildgate.resolution.interfaces import BuildRegistry, OutputSink

logger = structlog.get_logger(__name__)


class CompletionWaiter:
    """Polls a build's status on a fixed tick until it finishes.

    Cancellation is not an error: the waiter returns early without reading
    the registry again.
    """

    def __init__(
        self,
        registry: BuildRegistry,
        output: OutputSink,
        clock: Clock,
        token: CancellationToken,
        tick_seconds: float = 2,
    ) -> None:
        self._registry = registry
        self._output = output
        self._clock = clock
        self._token = token
        self.tick_seconds = tick_seconds

    async def wait(self, build: Build) -> Build:
        """Block until ``build`` is no longer active or the deploy is cancelled.

        Args:
            build: Build to wait for

        Returns:
            The most recently read state of the build
        """
        if self._token.cancelled:
            return build

        build = await self._registry.reload(build)
        if not build.is_active:
            self._output.puts(f"Build {build.url} is finished.")
            return build

        self._output.puts(f"Waiting for Build {build.url} to finish.")
        polls = 0
        while not self._token.cancelled:
            await self._clock.sleep(self.tick_seconds)
            if self._token.cancelled:
                break
            build = await self._registry.reload(build)
            polls += 1
            if not build.is_active:
                break

        logger.debug(
            "build_wait_finished",
            build_id=str(build.id),
            status=build.status.value,
            polls=polls,
            cancelled=self._token.cancelled,
        )
        return build

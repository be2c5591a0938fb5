"""Webhook client for the external build-execution service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from buildgate.config import BuildServiceConfig
from buildgate.database.models.build import Build, BuildStatus
from buildgate.database.queries.build import attach_build_job, update_build_status
from buildgate.logging import get_logger

logger = get_logger(__name__)


@dataclass
class BuildTrigger:
    """Payload asking the build service to run one build."""

    build_id: UUID
    git_sha: str
    git_ref: str
    project: str
    image_name: str
    dockerfile: str | None
    name: str | None
    requested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_build(cls, build: Build) -> BuildTrigger:
        return cls(
            build_id=build.id,
            git_sha=build.git_sha,
            git_ref=build.git_ref,
            project=build.project_name,
            image_name=build.image_name,
            dockerfile=build.dockerfile,
            name=build.name,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert payload to dictionary for JSON serialization."""
        return {
            "build_id": str(self.build_id),
            "git_sha": self.git_sha,
            "git_ref": self.git_ref,
            "project": self.project,
            "image_name": self.image_name,
            "dockerfile": self.dockerfile,
            "name": self.name,
            "requested_at": self.requested_at.isoformat(),
        }


class HttpBuildExecutor:
    """BuildExecutor that triggers builds through a webhook.

    A pending job is attached to the build before the webhook fires, so the
    build counts as queued from the moment it is started. The service then
    reports status, job status and digest back to the build registry.
    Trigger failures are logged and not raised; they fail the build with an
    errored job. With the service disabled nothing is attached and the
    build shows up as never ran.
    """

    def __init__(
        self,
        config: BuildServiceConfig,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.config = config
        self.session_factory = session_factory
        self.logger = get_logger(__name__)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, trigger: BuildTrigger) -> bool:
        """Post ``trigger`` to the build service.

        Returns True if the service accepted it, False otherwise.
        """
        if not self.config.enabled:
            self.logger.debug("build_service_disabled", build_id=str(trigger.build_id))
            return True

        try:
            client = await self._get_client()
            headers = {"Content-Type": "application/json"}
            if self.config.auth_header:
                headers["Authorization"] = self.config.auth_header

            response = await client.post(
                self.config.url,
                json=trigger.to_dict(),
                headers=headers,
            )

            if response.is_success:
                self.logger.info(
                    "build_triggered",
                    build_id=str(trigger.build_id),
                    status_code=response.status_code,
                )
                return True
            else:
                self.logger.warning(
                    "build_trigger_rejected",
                    build_id=str(trigger.build_id),
                    status_code=response.status_code,
                    response_text=response.text[:200],
                )
                return False

        except httpx.RequestError as e:
            self.logger.error(
                "build_trigger_error",
                build_id=str(trigger.build_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def start(self, build: Build) -> None:
        """Queue ``build`` for execution without waiting for it to finish."""
        if not self.config.enabled:
            self.logger.warning(
                "build_not_started",
                build_id=str(build.id),
                reason="build service disabled",
            )
            return

        async with self.session_factory() as session:
            await attach_build_job(session, build.id, status="pending")

        if not await self.send(BuildTrigger.from_build(build)):
            async with self.session_factory() as session:
                await update_build_status(
                    session, build.id, BuildStatus.failed, job_status="errored"
                )

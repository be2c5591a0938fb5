"""In-memory stand-ins for the build resolution collaborators.

The fake registry, source repository, build executor and clock let
resolution flows run deterministically without sleeping.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from typing import Any

from buildgate.database.models.build import Build, BuildJob, BuildStatus
from buildgate.resolution.context import ProjectConfig

COMMIT = "a" * 40
PREVIOUS_COMMIT = "b" * 40
DIGEST = "ghcr.io/acme/web@sha256:" + "0" * 64


def build_factory(**overrides: Any) -> Build:
    """Create a transient Build with sensible defaults."""
    values: dict[str, Any] = {
        "id": uuid.uuid4(),
        "git_sha": COMMIT,
        "git_ref": "main",
        "project_name": "web",
        "creator": "alice",
        "name": None,
        "dockerfile": "Dockerfile",
        "image_name": "web",
        "status": BuildStatus.succeeded,
        "docker_repo_digest": DIGEST,
        "external": False,
        "external_url": None,
    }
    job_status = overrides.pop("job_status", None)
    values.update(overrides)
    build = Build(**values)
    build.build_job = BuildJob(status=job_status) if job_status is not None else None
    return build


class FakeClock:
    """Clock that advances instantly and records every sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
        self.on_sleep: Callable[[FakeClock], None] | None = None

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(self)

    def monotonic(self) -> float:
        return self.now


class FakeRegistry:
    """In-memory BuildRegistry recording every call.

    ``on_find`` runs before each find with the 1-based call number, so tests
    can make builds appear late. ``script`` queues attribute updates that are
    applied one per reload of a build.
    """

    def __init__(self, builds: Sequence[Build] = ()) -> None:
        self.builds: list[Build] = list(builds)
        self.find_calls: list[list[str]] = []
        self.create_calls: list[dict[str, Any]] = []
        self.reload_calls: list[uuid.UUID] = []
        self.on_find: Callable[[int], None] | None = None
        self._scripts: dict[uuid.UUID, list[dict[str, Any]]] = {}

    def script(self, build: Build, *updates: dict[str, Any]) -> None:
        self._scripts.setdefault(build.id, []).extend(updates)

    async def find_builds(self, commit_shas: Sequence[str]) -> list[Build]:
        self.find_calls.append(list(commit_shas))
        if self.on_find is not None:
            self.on_find(len(self.find_calls))
        return [b for b in self.builds if b.git_sha in commit_shas]

    async def create_build(
        self,
        commit: str,
        ref: str,
        requester: str,
        project: ProjectConfig,
        dockerfile: str,
        name: str,
    ) -> Build:
        self.create_calls.append(
            {
                "commit": commit,
                "ref": ref,
                "requester": requester,
                "project": project.name,
                "dockerfile": dockerfile,
                "name": name,
            }
        )
        build = build_factory(
            git_sha=commit,
            git_ref=ref,
            project_name=project.name,
            creator=requester,
            name=name,
            dockerfile=dockerfile,
            image_name=project.image_for(dockerfile).rsplit("/", 1)[-1],
            status=BuildStatus.pending,
            docker_repo_digest=None,
        )
        self.builds.append(build)
        return build

    async def reload(self, build: Build) -> Build:
        self.reload_calls.append(build.id)
        updates = self._scripts.get(build.id)
        if updates:
            for key, value in updates.pop(0).items():
                if key == "job_status":
                    build.build_job = BuildJob(status=value)
                else:
                    setattr(build, key, value)
        return build


class FakeSource:
    """SourceRepository knowing a fixed set of paths at every commit."""

    def __init__(self, paths: Sequence[str] = ("Dockerfile",)) -> None:
        self.paths = set(paths)
        self.calls: list[tuple[str, str]] = []

    async def file_exists(self, path: str, commit: str) -> bool:
        self.calls.append((path, commit))
        return path in self.paths


class FakeExecutor:
    """BuildExecutor that queues started builds in the registry.

    The pending job becomes visible on the next reload, the way a job row
    written by the real executor is. The build object itself is untouched.
    """

    def __init__(self, registry: FakeRegistry) -> None:
        self.registry = registry
        self.started: list[Build] = []

    async def start(self, build: Build) -> None:
        self.started.append(build)
        self.registry.script(build, {"job_status": "pending"})



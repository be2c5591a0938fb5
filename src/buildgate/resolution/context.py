"""Read-only inputs of a build resolution run.

ProjectConfig describes which images a project deploys and how builds for it
may be obtained. DeployContext identifies the deploy that needs them.

Example project file:
    name = "web"
    dockerfiles = ["Dockerfile", "Dockerfile.worker"]
    docker_registry = "ghcr.io/acme"
    release_branch = "main"
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import Any

import tomli
from pydantic import BaseModel, Field

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")

DEFAULT_DOCKERFILE = "Dockerfile"


def _slugify(value: str) -> str:
    return _SLUG_PATTERN.sub("-", value.lower()).strip("-")


class ProjectConfig(BaseModel):
    """Image build configuration of a project.

    Attributes:
        name: Project name, also the default image name
        dockerfiles: Dockerfile paths the project deploys, in order
        image_name: Base image name (defaults to the slugified project name)
        docker_registry: Registry prefix for image references, if any
        build_creation_disabled: Builds must be created by someone else
        release_branch: Branch whose pushes trigger release builds
    """

    name: str = Field(min_length=1, description="Project name")
    dockerfiles: list[str] = Field(
        default_factory=lambda: [DEFAULT_DOCKERFILE],
        description="Dockerfile paths in deploy order",
    )
    image_name: str | None = Field(default=None, description="Base image name")
    docker_registry: str | None = Field(default=None, description="Registry prefix")
    build_creation_disabled: bool = Field(default=False)
    release_branch: str | None = Field(default=None)

    @property
    def uses_default_dockerfile(self) -> bool:
        """Whether the only dockerfile is the default one."""
        return self.dockerfile_list == [DEFAULT_DOCKERFILE]

    @property
    def dockerfile_list(self) -> list[str]:
        """Configured dockerfiles with blanks and duplicates removed."""
        seen: list[str] = []
        for dockerfile in self.dockerfiles:
            dockerfile = dockerfile.strip()
            if dockerfile and dockerfile not in seen:
                seen.append(dockerfile)
        return seen

    def image_for(self, dockerfile: str) -> str:
        """Image reference a build of ``dockerfile`` publishes.

        ``Dockerfile`` maps to the base image name; ``Dockerfile.worker`` and
        ``worker.Dockerfile`` map to ``<base>-worker``.

        Args:
            dockerfile: Repository path of the dockerfile

        Returns:
            Image reference, prefixed with the registry when one is configured
        """
        image = self.image_name or _slugify(self.name)

        basename = PurePosixPath(dockerfile).name
        suffix = ""
        if basename.startswith("Dockerfile"):
            suffix = basename[len("Dockerfile"):].lstrip(".-_")
        elif basename.endswith(".Dockerfile"):
            suffix = basename[: -len(".Dockerfile")]
        if suffix:
            image = f"{image}-{_slugify(suffix)}"

        if self.docker_registry:
            return f"{self.docker_registry.rstrip('/')}/{image}"
        return image


class DeployContext(BaseModel):
    """The deploy waiting for builds.

    Attributes:
        deploy_id: Deploy identifier, used in generated build names
        target_commit: Commit being deployed
        target_ref: Branch or tag being deployed
        requester: User who started the deploy
        previous_release_commit: Commit of the previous successful deploy
        reuse_previous_release_builds: Allow builds of the previous release
            to satisfy this deploy
    """

    deploy_id: str = Field(description="Deploy identifier")
    target_commit: str = Field(min_length=1, description="Commit being deployed")
    target_ref: str = Field(description="Ref being deployed")
    requester: str = Field(description="Deploy requester")
    previous_release_commit: str | None = Field(default=None)
    reuse_previous_release_builds: bool = Field(default=False)


def load_project_config(path: Path) -> ProjectConfig:
    """Load a ProjectConfig from a TOML file.

    Args:
        path: Path to the project TOML file

    Returns:
        Parsed project configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file contents are invalid
    """
    if not path.exists():
        raise FileNotFoundError(f"Project file not found: {path}")

    with open(path, "rb") as f:
        data: dict[str, Any] = tomli.load(f)

    try:
        return ProjectConfig(**data)
    except Exception as e:
        raise ValueError(f"Invalid project configuration in {path}: {e}") from e

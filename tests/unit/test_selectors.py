"""Unit tests for selectors and project image naming."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from buildgate.resolution.context import ProjectConfig, load_project_config
from buildgate.resolution.selectors import Selector, derive_selectors, short_image_name


class TestShortImageName:
    """Test stripping of registry paths, tags and digests."""

    @pytest.mark.parametrize(
        ("reference", "expected"),
        [
            ("ghcr.io/acme/app:v1", "app"),
            ("registry/app@sha256:abc", "app"),
            ("app", "app"),
            ("localhost:5000/team/app", "app"),
            ("docker.io/library/app:latest@sha256:abc", "app"),
        ],
    )
    def test_strips_path_and_tag(self, reference: str, expected: str) -> None:
        assert short_image_name(reference) == expected


class TestSelector:
    """Test Selector validation and helpers."""

    def test_requires_dockerfile_or_image(self) -> None:
        with pytest.raises(ValidationError):
            Selector()

    def test_image_only_selector(self) -> None:
        selector = Selector(image_reference="ghcr.io/acme/web:v2")
        assert selector.dockerfile is None
        assert selector.short_image_name == "web"
        assert selector.describe() == "ghcr.io/acme/web:v2"

    def test_dockerfile_only_selector(self) -> None:
        selector = Selector(dockerfile="Dockerfile")
        assert selector.short_image_name is None
        assert selector.describe() == "Dockerfile"

    def test_selectors_are_hashable_values(self) -> None:
        a = Selector(dockerfile="Dockerfile", image_reference="web")
        b = Selector(dockerfile="Dockerfile", image_reference="web")
        assert a == b
        assert len({a, b}) == 1


class TestProjectImages:
    """Test image references derived from dockerfiles."""

    def test_default_dockerfile_uses_project_name(self) -> None:
        project = ProjectConfig(name="Web App")
        assert project.image_for("Dockerfile") == "web-app"

    def test_suffixed_dockerfiles(self) -> None:
        project = ProjectConfig(name="web", docker_registry="ghcr.io/acme/")
        assert project.image_for("Dockerfile.worker") == "ghcr.io/acme/web-worker"
        assert project.image_for("docker/cron.Dockerfile") == "ghcr.io/acme/web-cron"

    def test_explicit_image_name(self) -> None:
        project = ProjectConfig(name="web", image_name="frontend")
        assert project.image_for("Dockerfile") == "frontend"

    def test_dockerfile_list_strips_blanks_and_duplicates(self) -> None:
        project = ProjectConfig(name="web", dockerfiles=["Dockerfile", " ", "Dockerfile ", "Dockerfile.worker"])
        assert project.dockerfile_list == ["Dockerfile", "Dockerfile.worker"]


class TestDeriveSelectors:
    """Test the selector list a deploy has to satisfy."""

    def test_one_selector_per_dockerfile(self) -> None:
        project = ProjectConfig(
            name="web",
            dockerfiles=["Dockerfile", "Dockerfile.worker"],
            docker_registry="ghcr.io/acme",
        )

        selectors = derive_selectors(project)

        assert selectors == [
            Selector(dockerfile="Dockerfile", image_reference="ghcr.io/acme/web"),
            Selector(dockerfile="Dockerfile.worker", image_reference="ghcr.io/acme/web-worker"),
        ]

    def test_no_dockerfiles_means_no_selectors(self) -> None:
        assert derive_selectors(ProjectConfig(name="web", dockerfiles=[])) == []

    def test_overrides_used_verbatim(self) -> None:
        project = ProjectConfig(name="web", dockerfiles=["Dockerfile"])
        overrides = [Selector(image_reference="ghcr.io/acme/api:v3")]

        assert derive_selectors(project, overrides) == overrides

    def test_empty_overrides_win_over_dockerfiles(self) -> None:
        project = ProjectConfig(name="web", dockerfiles=["Dockerfile"])
        assert derive_selectors(project, []) == []


class TestLoadProjectConfig:
    """Test loading project files."""

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "project.toml"
        path.write_text('name = "web"\ndockerfiles = ["Dockerfile.api"]\nrelease_branch = "main"\n')

        project = load_project_config(path)

        assert project.name == "web"
        assert project.dockerfiles == ["Dockerfile.api"]
        assert project.release_branch == "main"
        assert project.build_creation_disabled is False

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_project_config(tmp_path / "nope.toml")

    def test_invalid_contents(self, tmp_path: Path) -> None:
        path = tmp_path / "project.toml"
        path.write_text('name = ""\n')

        with pytest.raises(ValueError, match="Invalid project configuration"):
            load_project_config(path)

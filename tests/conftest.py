"""Shared fixtures for Buildgate tests."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from buildgate.config import BuildWaitConfig
from buildgate.database.models.build import Build
from buildgate.output import BufferedOutput
from buildgate.resolution.cancellation import CancellationToken
from buildgate.resolution.context import DeployContext, ProjectConfig
from tests.fakes import (
    COMMIT,
    PREVIOUS_COMMIT,
    FakeClock,
    FakeExecutor,
    FakeRegistry,
    FakeSource,
    build_factory,
)


@pytest.fixture
def make_build() -> Callable[..., Build]:
    """Factory for transient Build objects."""
    return build_factory


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def executor(registry: FakeRegistry) -> FakeExecutor:
    return FakeExecutor(registry)


@pytest.fixture
def output() -> BufferedOutput:
    return BufferedOutput()


@pytest.fixture
def token() -> CancellationToken:
    return CancellationToken()


@pytest.fixture
def settings() -> BuildWaitConfig:
    """Wait settings with the production defaults, independent of the environment."""
    return BuildWaitConfig(
        discovery_interval_seconds=5,
        completion_tick_seconds=2,
        release_branch_wait_seconds=5,
        external_build_wait_seconds=5,
    )


@pytest.fixture
def project() -> ProjectConfig:
    return ProjectConfig(name="web", docker_registry="ghcr.io/acme")


@pytest.fixture
def deploy() -> DeployContext:
    return DeployContext(
        deploy_id="42",
        target_commit=COMMIT,
        target_ref="main",
        requester="alice",
        previous_release_commit=PREVIOUS_COMMIT,
    )

"""Build resolution and synchronization engine.

Given the builds a deploy needs, finds or creates them, waits for them to
finish and validates that each one is usable.
"""

from __future__ import annotations

from buildgate.resolution.cancellation import CancellationToken
from buildgate.resolution.clock import Clock, SystemClock
from buildgate.resolution.context import DeployContext, ProjectConfig, load_project_config
from buildgate.resolution.creator import BuildCreator
from buildgate.resolution.discovery import (
    BudgetState,
    BuildDiscoveryPoller,
    CommitSource,
    RetryBudget,
    candidate_commits,
    rank_candidates,
    wait_budget_seconds,
)
from buildgate.resolution.finder import BuildFinder
from buildgate.resolution.matcher import matches, resolve
from buildgate.resolution.selectors import Selector, derive_selectors, short_image_name
from buildgate.resolution.validator import OutcomeValidator, PostBuildChecks
from buildgate.resolution.waiter import CompletionWaiter

__all__ = [
    # Inputs
    "DeployContext",
    "ProjectConfig",
    "load_project_config",
    "Selector",
    "derive_selectors",
    "short_image_name",
    # Matching
    "matches",
    "resolve",
    # Discovery
    "BudgetState",
    "BuildDiscoveryPoller",
    "CommitSource",
    "RetryBudget",
    "candidate_commits",
    "rank_candidates",
    "wait_budget_seconds",
    # Creation, waiting, validation
    "BuildCreator",
    "CompletionWaiter",
    "OutcomeValidator",
    "PostBuildChecks",
    # Pipeline
    "BuildFinder",
    "CancellationToken",
    "Clock",
    "SystemClock",
]

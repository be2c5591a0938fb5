"""Matching of candidate builds against selectors.

Both functions are pure: no I/O, and the same inputs always pick the same
build.
"""

from __future__ import annotations

from collections.abc import Sequence

from buildgate.database.models.build import Build
from buildgate.errors import SelectorUnresolved
from buildgate.resolution.selectors import Selector


def matches(build: Build, selector: Selector) -> bool:
    """Whether ``build`` satisfies ``selector``.

    The image name is compared first, then the dockerfile.

    Args:
        build: Candidate build
        selector: Requirement to satisfy

    Returns:
        True if the short image names or the dockerfiles are equal
    """
    image_name = selector.short_image_name
    if image_name and build.image_name == image_name:
        return True
    return bool(selector.dockerfile) and build.dockerfile == selector.dockerfile


def candidate_summary(candidates: Sequence[Build]) -> list[tuple[str | None, str]]:
    """Distinct (dockerfile, image_name) pairs of candidates, in order."""
    summary: list[tuple[str | None, str]] = []
    for build in candidates:
        pair = (build.dockerfile, build.image_name)
        if pair not in summary:
            summary.append(pair)
    return summary


def resolve(
    candidates: Sequence[Build],
    selector: Selector,
    fail_if_unmatched: bool,
) -> Build | None:
    """Pick the first candidate that satisfies ``selector``.

    Args:
        candidates: Builds in preference order
        selector: Requirement to satisfy
        fail_if_unmatched: Raise instead of returning None when nothing matches

    Returns:
        The matching build, or None to signal "not yet"

    Raises:
        SelectorUnresolved: If nothing matches and fail_if_unmatched is set
    """
    for build in candidates:
        if matches(build, selector):
            return build

    if fail_if_unmatched:
        raise SelectorUnresolved(selector, candidate_summary(candidates))
    return None

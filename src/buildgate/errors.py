"""Exception hierarchy for Buildgate.

User errors describe a condition the deploy requester can fix (push the
missing dockerfile, rerun a failed build, ...) and then retry the deploy.
Invariant errors point at a defect upstream and should not be retried.
Cancellation is never an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from buildgate.resolution.selectors import Selector


class BuildgateError(Exception):
    """Base class for all Buildgate errors."""


class UserError(BuildgateError):
    """Raised for failures the deploy requester can fix and retry."""


class SelectorUnresolved(UserError):
    """No candidate build satisfies a selector and none may be created.

    Attributes:
        selector: The selector that could not be resolved.
        candidates: Distinct (dockerfile, image_name) pairs that were considered.
    """

    def __init__(
        self,
        selector: Selector,
        candidates: list[tuple[str | None, str]],
    ) -> None:
        self.selector = selector
        self.candidates = candidates
        super().__init__(
            f"Did not find build for dockerfile {selector.dockerfile!r} "
            f"or image_name {selector.short_image_name!r}.\n"
            f"Found builds: {candidates!r}."
        )


class DockerfileMissing(UserError):
    """The dockerfile to build does not exist at the target commit.

    Attributes:
        dockerfile: Repository path of the missing dockerfile.
        commit: Commit that was checked.
    """

    def __init__(self, dockerfile: str, commit: str) -> None:
        self.dockerfile = dockerfile
        self.commit = commit
        super().__init__(
            f"Could not create build for {dockerfile}, "
            f"since {dockerfile} does not exist in the repository."
        )


class BuildNotSuccessful(UserError):
    """A build finished without publishing an image.

    Attributes:
        build_url: URL of the failed build.
        job_status: Status reported by the build's execution job.
    """

    def __init__(self, build_url: str, job_status: str) -> None:
        self.build_url = build_url
        self.job_status = job_status
        super().__init__(f"Build {build_url} is {job_status}, rerun it.")


class BuildNeverRan(UserError):
    """A build record exists but no execution job was ever attached."""

    def __init__(self, build_url: str) -> None:
        self.build_url = build_url
        super().__init__(f"Build {build_url} was created but never ran, run it.")


class PostBuildCheckFailed(UserError):
    """A post-build check rejected an otherwise successful build."""

    def __init__(self, build_url: str) -> None:
        self.build_url = build_url
        super().__init__(f"Plugin build checks for {build_url} failed.")


class BuildResolutionInvariantError(BuildgateError):
    """Build resolution reached a state that upstream seeding rules out.

    Raised when the final discovery attempt leaves a selector unresolved that
    can neither be created (no dockerfile) nor was reported as a user error.
    """

    def __init__(self, message: str, selector: Selector | None = None) -> None:
        self.selector = selector
        super().__init__(message)

"""Build selectors: what a deploy needs built.

A selector names a dockerfile, an image reference, or both. A deploy either
passes an explicit list of selectors or gets one per configured dockerfile.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, model_validator

from buildgate.resolution.context import ProjectConfig

_TAG_OR_DIGEST = re.compile(r"[:@]")


def short_image_name(image_reference: str) -> str:
    """Strip registry path and tag/digest from an image reference.

    >>> short_image_name("ghcr.io/acme/app:v1")
    'app'
    >>> short_image_name("registry/app@sha256:abc")
    'app'
    """
    last_segment = image_reference.rsplit("/", 1)[-1]
    return _TAG_OR_DIGEST.split(last_segment, maxsplit=1)[0]


class Selector(BaseModel):
    """A (dockerfile, image reference) requirement satisfied by one build.

    Attributes:
        dockerfile: Repository path of the dockerfile
        image_reference: Image reference; only its short name is matched
    """

    model_config = ConfigDict(frozen=True)

    dockerfile: str | None = None
    image_reference: str | None = None

    @model_validator(mode="after")
    def check_not_empty(self) -> Selector:
        """Require at least one of dockerfile and image_reference."""
        if not self.dockerfile and not self.image_reference:
            raise ValueError("Selector needs a dockerfile or an image_reference")
        return self

    @property
    def short_image_name(self) -> str | None:
        """Short image name of image_reference, None without one."""
        if not self.image_reference:
            return None
        return short_image_name(self.image_reference)

    def describe(self) -> str:
        """Human-readable label for progress output."""
        return self.dockerfile or self.image_reference or ""


def derive_selectors(
    project: ProjectConfig,
    overrides: Sequence[Selector] | None = None,
) -> list[Selector]:
    """Compute the selectors a deploy has to satisfy.

    Args:
        project: Project configuration
        overrides: Explicit selectors; used verbatim when given

    Returns:
        Selectors in resolution order. Empty when the project declares no
        dockerfiles and no overrides were given.
    """
    if overrides is not None:
        return list(overrides)

    return [
        Selector(dockerfile=dockerfile, image_reference=project.image_for(dockerfile))
        for dockerfile in project.dockerfile_list
    ]

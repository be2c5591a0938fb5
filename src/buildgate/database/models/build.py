"""Build models for Buildgate.

Defines the Build table, which records one container image build attempt,
and the BuildJob table holding the execution job the external build service
attaches once it picks the build up.

Builds are inserted once by whoever requests them (a deploy, a CI webhook,
an external build system) and afterwards only mutated by the build-execution
service, which moves the status along and sets the repository digest.
"""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import Boolean, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from buildgate.database.models.base import Base, TimestampMixin


class BuildStatus(enum.Enum):
    """Lifecycle status of a build.

    States:
        pending: Build recorded, execution not started yet.
        active: Build is executing.
        succeeded: Build finished and published an image.
        failed: Build finished without publishing an image.
    """

    pending = "pending"
    active = "active"
    succeeded = "succeeded"
    failed = "failed"


class Build(TimestampMixin, Base):
    """A container image build attempt for one dockerfile at one commit.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        git_sha: Commit the image was built from.
        git_ref: Branch or tag the commit was resolved from.
        project_name: Project that requested the build.
        creator: User or system that requested the build.
        name: Human-readable build name.
        dockerfile: Repository path of the dockerfile, None for builds
            created outside of Buildgate without one.
        image_name: Short image name (no registry, tag or digest).
        status: Current lifecycle status.
        docker_repo_digest: Pushed image reference with digest, set on success.
        external: True when an external build system created the build.
        external_url: Link to the external build system's page, if any.
        build_job: Execution job attached by the build service.
    """

    __tablename__ = "builds"

    git_sha: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    git_ref: Mapped[str] = mapped_column(Text, nullable=False)
    project_name: Mapped[str] = mapped_column(Text, nullable=False)
    creator: Mapped[str | None] = mapped_column(Text, nullable=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    dockerfile: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[BuildStatus] = mapped_column(
        default=BuildStatus.pending,
        nullable=False,
    )
    docker_repo_digest: Mapped[str | None] = mapped_column(Text, nullable=True)
    external: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    external_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    build_job: Mapped[BuildJob | None] = relationship(
        back_populates="build",
        lazy="selectin",
        uselist=False,
    )

    @property
    def url(self) -> str:
        """Link shown to the deploy requester."""
        return self.external_url or f"/builds/{self.id}"

    @property
    def is_active(self) -> bool:
        """Whether the build is still executing or queued for execution.

        A pending build without an execution job never ran and is not active.
        """
        if self.status == BuildStatus.active:
            return True
        return self.status == BuildStatus.pending and self.build_job is not None


class BuildJob(TimestampMixin, Base):
    """Execution job attached to a build by the build-execution service.

    Attributes:
        build_id: Foreign key to the build being executed.
        status: Job status as reported by the build service (free-form).
        output: Optional tail of the job log.
    """

    __tablename__ = "build_jobs"

    build_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("builds.id"),
        nullable=False,
        unique=True,
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    output: Mapped[str | None] = mapped_column(Text, nullable=True)

    build: Mapped[Build] = relationship(back_populates="build_job")

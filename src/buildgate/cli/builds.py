"""Build CLI commands.

This module provides CLI commands for listing builds, reporting build status
on behalf of the build service, and running build resolution for a deploy.
"""

from __future__ import annotations

import asyncio
import json
import signal
from pathlib import Path
from typing import Annotated, Optional
from uuid import UUID

import typer
from git.exc import InvalidGitRepositoryError, NoSuchPathError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from buildgate.database.models.build import Build, BuildStatus
from buildgate.database.queries.build import (
    attach_build_job,
    find_builds_by_commits,
    get_build,
    update_build_status,
)
from buildgate.errors import BuildResolutionInvariantError, UserError
from buildgate.integrations.build_service import HttpBuildExecutor
from buildgate.logging import bind_deploy_context
from buildgate.output import ConsoleOutput
from buildgate.pipeline.git_ops import GitSourceRepository
from buildgate.resolution.cancellation import CancellationToken
from buildgate.resolution.context import DeployContext, load_project_config
from buildgate.resolution.finder import BuildFinder
from buildgate.resolution.selectors import Selector

app = typer.Typer(help="Build commands")
console = Console()

_STATUS_COLORS = {
    "pending": "dim",
    "active": "yellow",
    "succeeded": "green",
    "failed": "red",
}


def parse_selector(value: str) -> Selector:
    """Parse ``DOCKERFILE=IMAGE``, ``DOCKERFILE`` or ``=IMAGE`` into a Selector.

    Raises:
        typer.BadParameter: If neither part is given
    """
    dockerfile, _, image = value.partition("=")
    try:
        return Selector(dockerfile=dockerfile or None, image_reference=image or None)
    except ValueError as e:
        raise typer.BadParameter(f"Invalid selector {value!r}: expected DOCKERFILE=IMAGE") from e


def _build_table(builds: list[Build], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Project", style="bold")
    table.add_column("Commit", style="dim")
    table.add_column("Dockerfile")
    table.add_column("Image")
    table.add_column("Status", style="magenta")
    table.add_column("Digest", style="dim")

    for b in builds:
        status_color = _STATUS_COLORS.get(b.status.value, "white")
        table.add_row(
            str(b.id),
            b.project_name,
            b.git_sha[:8],
            b.dockerfile or "-",
            b.image_name,
            f"[{status_color}]{b.status.value}[/{status_color}]",
            b.docker_repo_digest or "-",
        )
    return table


@app.command("list")
def list_builds(
    commits: Annotated[list[str], typer.Argument(help="Commit SHAs to list builds for")],
    format: Annotated[
        str,
        typer.Option(
            "--format",
            "-f",
            help="Output format (table or json)",
        ),
    ] = "table",
) -> None:
    """List builds of any project at the given commits.

    Args:
        commits: Commit SHAs
        format: Output format (table or json)
    """
    from buildgate.main import get_app_context

    ctx = get_app_context()

    async def _list_builds() -> list[Build]:
        try:
            async with ctx.session_factory() as session:
                return await find_builds_by_commits(session, commits)
        finally:
            await ctx.engine.dispose()

    try:
        builds = asyncio.run(_list_builds())
    except Exception as e:
        console.print(f"[red]Error listing builds:[/red] {e}")
        raise typer.Exit(code=1)

    if format == "json":
        output = [
            {
                "id": str(b.id),
                "project": b.project_name,
                "git_sha": b.git_sha,
                "dockerfile": b.dockerfile,
                "image_name": b.image_name,
                "status": b.status.value,
                "docker_repo_digest": b.docker_repo_digest,
                "job_status": b.build_job.status if b.build_job else None,
            }
            for b in builds
        ]
        typer.echo(json.dumps(output, indent=2))
        return

    if not builds:
        console.print("[yellow]No builds found[/yellow]")
        return

    console.print(_build_table(builds, "Builds"))


@app.command()
def report(
    build_id: Annotated[str, typer.Argument(help="Build UUID")],
    status: Annotated[
        str,
        typer.Option("--status", "-s", help="Build status (pending, active, succeeded, failed)"),
    ],
    digest: Annotated[
        Optional[str],
        typer.Option("--digest", "-d", help="Published image reference with digest"),
    ] = None,
    job_status: Annotated[
        Optional[str],
        typer.Option("--job-status", "-j", help="Status of the execution job"),
    ] = None,
) -> None:
    """Record build progress reported by the build service.

    A job is attached to the build the first time a job status is reported.

    Args:
        build_id: UUID of the build
        status: New build status
        digest: Published image digest
        job_status: Execution job status
    """
    from buildgate.main import get_app_context

    ctx = get_app_context()

    try:
        build_uuid = UUID(build_id)
    except ValueError:
        console.print(f"[red]Invalid build UUID:[/red] {build_id}")
        raise typer.Exit(code=1)

    try:
        build_status = BuildStatus(status)
    except ValueError:
        console.print(
            f"[red]Invalid status:[/red] {status}. "
            f"Valid values: pending, active, succeeded, failed"
        )
        raise typer.Exit(code=1)

    async def _report() -> Build:
        try:
            async with ctx.session_factory() as session:
                build = await get_build(session, build_uuid)
            if build is None:
                raise ValueError(f"Build {build_uuid} not found")

            if job_status is not None and build.build_job is None:
                async with ctx.session_factory() as session:
                    await attach_build_job(session, build_uuid, status=job_status)

            async with ctx.session_factory() as session:
                return await update_build_status(
                    session,
                    build_uuid,
                    build_status,
                    docker_repo_digest=digest,
                    job_status=job_status,
                )
        finally:
            await ctx.engine.dispose()

    try:
        build = asyncio.run(_report())
    except Exception as e:
        console.print(f"[red]Error reporting build status:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]Build {build.id} is now {build.status.value}[/green]")


@app.command()
def ensure(
    project_file: Annotated[
        Path,
        typer.Argument(
            help="Project configuration file (TOML)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    commit: Annotated[str, typer.Option("--commit", help="Commit being deployed")],
    ref: Annotated[str, typer.Option("--ref", help="Branch or tag being deployed")],
    deploy_id: Annotated[str, typer.Option("--deploy-id", help="Deploy identifier")],
    requester: Annotated[
        str,
        typer.Option("--requester", help="User requesting the deploy"),
    ] = "buildgate",
    images: Annotated[
        Optional[list[str]],
        typer.Option(
            "--image",
            "-i",
            help="Explicit selector DOCKERFILE=IMAGE (repeatable); overrides the project dockerfiles",
        ),
    ] = None,
    previous_commit: Annotated[
        Optional[str],
        typer.Option("--previous-commit", help="Commit of the previous release"),
    ] = None,
    reuse_previous: Annotated[
        bool,
        typer.Option("--reuse-previous", help="Allow builds of the previous release"),
    ] = False,
) -> None:
    """Make sure all builds a deploy needs exist and succeeded.

    Exits 0 when every build is usable or the deploy was cancelled, 1 on a
    user error and 2 on an internal resolution error. Ctrl+C cancels.
    """
    from buildgate.main import get_app_context

    ctx = get_app_context()

    try:
        project = load_project_config(project_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading project:[/red] {e}")
        raise typer.Exit(code=1)

    selectors = [parse_selector(value) for value in images] if images else None
    deploy = DeployContext(
        deploy_id=deploy_id,
        target_commit=commit,
        target_ref=ref,
        requester=requester,
        previous_release_commit=previous_commit,
        reuse_previous_release_builds=reuse_previous,
    )
    bind_deploy_context(deploy_id=deploy_id, project=project.name)

    try:
        source = GitSourceRepository(ctx.config.git)
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        console.print(f"[red]Invalid source repository:[/red] {e}")
        raise typer.Exit(code=1)

    token = CancellationToken()

    def signal_handler(sig, frame):
        console.print("[yellow]Cancel requested, finishing up...[/yellow]")
        token.cancel(f"signal {sig}")

    previous_handlers = {
        sig: signal.signal(sig, signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)
    }

    async def _ensure() -> list[Build]:
        executor = HttpBuildExecutor(ctx.config.build_service, ctx.session_factory)
        finder = BuildFinder(
            ConsoleOutput(console),
            project,
            deploy,
            ctx.registry,
            source,
            executor,
            settings=ctx.config.builds,
            token=token,
            selectors=selectors,
        )
        try:
            return await finder.ensure_successful_builds()
        finally:
            await executor.close()
            await ctx.engine.dispose()

    try:
        builds = asyncio.run(_ensure())
    except UserError as e:
        console.print(f"[red]Builds not ready:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)
    except BuildResolutionInvariantError as e:
        console.print(f"[red]Internal build resolution error:[/red] {escape(str(e))}")
        raise typer.Exit(code=2)
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)

    if token.cancelled:
        console.print("[yellow]Deploy cancelled, skipped build validation[/yellow]")
        return

    if not builds:
        console.print("[green]No builds required[/green]")
        return

    console.print(_build_table(builds, f"Builds for deploy #{deploy_id}"))
    console.print("[bold green]All builds are ready[/bold green]")

"""Main CLI entry point for Buildgate.

This module provides the main Typer application with sub-commands for
database setup and build resolution.

Usage:
    buildgate init-db
    buildgate builds list 3f2a9c1
    buildgate builds ensure project.toml --commit 3f2a9c1 --ref main --deploy-id 42
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from buildgate.cli import builds as builds_cli
from buildgate.config import BuildgateConfig, load_config
from buildgate.database.build_registry import SqlBuildRegistry
from buildgate.database.connection import create_tables, get_engine, get_session_factory
from buildgate.logging import setup_logging

app = typer.Typer(
    name="buildgate",
    help="Buildgate: make sure a deploy's builds are ready",
    no_args_is_help=True,
)

app.add_typer(builds_cli.app, name="builds", help="Find, report and ensure builds")

console = Console()


class AppContext:
    """Application context shared across CLI commands.

    Attributes:
        config: Loaded Buildgate configuration
        engine: Async SQLAlchemy engine
        session_factory: Factory for creating database sessions
        registry: Build registry backed by the session factory
    """

    def __init__(self, config: BuildgateConfig):
        self.config = config
        self.engine = get_engine(config.database)
        self.session_factory = get_session_factory(self.engine)
        self.registry = SqlBuildRegistry(self.session_factory)


# Global context holder
_app_context: AppContext | None = None


def get_app_context() -> AppContext:
    """Get the shared application context.

    Raises:
        RuntimeError: If context has not been initialized
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized. Call initialize_context first.")
    return _app_context


def initialize_context(config: BuildgateConfig) -> AppContext:
    """Initialize the global application context."""
    global _app_context
    _app_context = AppContext(config)
    return _app_context


@app.command("init-db")
def init_db() -> None:
    """Create the build registry tables."""
    ctx = get_app_context()

    async def _init_db() -> None:
        try:
            await create_tables(ctx.engine)
        finally:
            await ctx.engine.dispose()

    try:
        asyncio.run(_init_db())
    except Exception as e:
        console.print(f"[red]Error creating tables:[/red] {e}")
        raise typer.Exit(code=1)

    console.print("[green]Build registry tables are ready[/green]")


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure global options and initialize application context.

    Args:
        config_path: Optional path to TOML configuration file
        verbose: Enable debug-level logging
    """
    try:
        config = load_config(config_path)
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)

    try:
        initialize_context(config)
    except Exception as e:
        console.print(f"[red]Error initializing application:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        console.print("[dim]Debug logging enabled[/dim]")


if __name__ == "__main__":
    app()

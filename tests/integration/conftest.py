"""Pytest fixtures for integration tests.

Provides an in-memory SQLite build registry and a temporary git repository.
Production uses PostgreSQL; the build queries stick to portable SQL, so
SQLite is enough to exercise them.
"""

from __future__ import annotations

from pathlib import Path
from collections.abc import Callable
from typing import AsyncGenerator

import git
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from buildgate.database.build_registry import SqlBuildRegistry
from buildgate.database.connection import create_tables, get_session_factory


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite async engine with the build tables.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(test_engine)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return get_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def sql_registry(session_factory: async_sessionmaker[AsyncSession]) -> SqlBuildRegistry:
    return SqlBuildRegistry(session_factory)


def _commit_files(repo: git.Repo, files: dict[str, str], message: str) -> str:
    root = Path(repo.working_tree_dir)
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    repo.index.add(list(files))
    return repo.index.commit(message).hexsha


@pytest.fixture
def commit_files() -> Callable[[git.Repo, dict[str, str], str], str]:
    """Helper writing files into a repository work tree and committing them."""
    return _commit_files


@pytest.fixture
def temp_repo(tmp_path: Path) -> git.Repo:
    """Create a temporary git repository with a Dockerfile committed."""
    repo_path = tmp_path / "source"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    _commit_files(
        repo,
        {"README.md": "# web\n", "Dockerfile": "FROM alpine:3.20\n"},
        "Initial commit",
    )
    return repo

"""Source repository access via GitPython.

Build creation only needs one question answered: does a dockerfile exist in
the tree of the deploy's commit? Lookups read the object database directly,
so the working tree checkout is never touched.

Example usage:
    >>> from buildgate.config import GitConfig
    >>> from buildgate.pipeline.git_ops import GitSourceRepository
    >>>
    >>> source = GitSourceRepository(GitConfig(repo_path=Path("/workspace/repo")))
    >>> await source.file_exists("Dockerfile", "3f2a9c1")
    True
"""

from __future__ import annotations

import asyncio
from pathlib import PurePosixPath

import git
from git.exc import BadName, BadObject, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from buildgate.config import GitConfig
from buildgate.logging import get_logger


class GitSourceRepository:
    """SourceRepository implementation over a local git clone.

    Attributes:
        config: Git configuration from BuildgateConfig
        repo: GitPython Repo object
        logger: Structured logger instance
    """

    def __init__(self, config: GitConfig) -> None:
        """Open the repository at ``config.repo_path``.

        Raises:
            InvalidGitRepositoryError: If repo_path is not a valid git repository
            NoSuchPathError: If repo_path does not exist
        """
        self.config = config
        self.logger = get_logger(__name__)

        try:
            self.repo = git.Repo(config.repo_path)
            self.logger.info(
                "git_source_initialized",
                repo_path=str(config.repo_path),
                fetch_on_miss=config.fetch_on_miss,
            )
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            self.logger.error(
                "git_source_init_failed",
                repo_path=str(config.repo_path),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    def _resolve_commit(self, commit: str) -> git.Commit | None:
        try:
            return self.repo.commit(commit)
        except (BadName, BadObject, ValueError):
            return None

    def _fetch(self) -> None:
        for remote in self.repo.remotes:
            try:
                remote.fetch()
                self.logger.info("git_remote_fetched", remote=remote.name)
            except GitCommandError as e:
                self.logger.warning(
                    "git_fetch_failed",
                    remote=remote.name,
                    error=str(e),
                )

    def lookup(self, path: str, commit: str) -> bool:
        """Synchronous variant of file_exists.

        Args:
            path: Repository-relative file path
            commit: Commit SHA or ref

        Returns:
            True if the path is a file in the commit's tree. Unknown commits
            count as not containing the file.
        """
        resolved = self._resolve_commit(commit)
        if resolved is None and self.config.fetch_on_miss and self.repo.remotes:
            self._fetch()
            resolved = self._resolve_commit(commit)

        if resolved is None:
            self.logger.warning("git_commit_not_found", commit=commit)
            return False

        normalized = str(PurePosixPath(path.lstrip("/")))
        try:
            blob = resolved.tree / normalized
        except KeyError:
            return False
        return blob.type == "blob"

    async def file_exists(self, path: str, commit: str) -> bool:
        """Whether ``path`` exists in the tree of ``commit``."""
        exists = await asyncio.to_thread(self.lookup, path, commit)
        self.logger.debug("git_file_checked", path=path, commit=commit, exists=exists)
        return exists

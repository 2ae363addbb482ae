"""Source history backed by the git checkouts of upstream buckets.

Upstream buckets are usually shallow clones, so the commit date of the most
recent commit touching a file is the best available change date. Files outside
any repository fall back to their modification time.
"""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from bucketsync.domain.errors import SourceHistoryError

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)


def git_blob_id(content: bytes) -> str:
    """Object id git assigns to ``content`` as a blob."""

    header = f"blob {len(content)}\0".encode()
    return hashlib.sha1(header + content, usedforsecurity=False).hexdigest()


class GitSourceHistory:
    """``SourceHistory`` implementation using GitPython."""

    def __init__(self) -> None:
        self._repos: dict[Path, Repo | None] = {}

    def content_id(self, path: Path) -> str:
        return git_blob_id(path.read_bytes())

    def last_change_date(self, path: Path) -> datetime:
        repo = self._repo_for(path.parent)
        if repo is not None:
            try:
                commit = next(repo.iter_commits(paths=str(path), max_count=1), None)
            except (GitCommandError, ValueError) as exc:
                log.debug("git log failed for %s: %s", path, exc)
                commit = None
            if commit is not None:
                return commit.committed_datetime.astimezone(UTC)
            log.debug("%s has no commits in %s; using mtime", path, repo.working_dir)
        try:
            return datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
        except OSError as exc:
            raise SourceHistoryError(f"Cannot stat {path}: {exc}") from exc

    def _repo_for(self, directory: Path) -> Repo | None:
        key = directory.resolve()
        if key not in self._repos:
            try:
                self._repos[key] = Repo(key, search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError):
                log.debug("%s is not inside a git repository", key)
                self._repos[key] = None
        return self._repos[key]

    def close(self) -> None:
        for repo in self._repos.values():
            if repo is not None:
                repo.close()
        self._repos.clear()


__all__ = ["GitSourceHistory", "git_blob_id"]

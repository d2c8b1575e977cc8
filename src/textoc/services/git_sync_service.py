"""Git sync service for the note mirror directory.

Commits whatever the mirror currently holds and, when a remote is
configured, exchanges it with that remote. ``sync()`` reports failures in
its result and never raises.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from textoc.exceptions import ErrorCode, SyncError
from textoc.models.schema import SyncResult
from textoc.storage.git_wrapper import GitError, GitWrapper

logger = logging.getLogger(__name__)

_COMMIT_NAME = "textoc"
_COMMIT_EMAIL = "textoc@localhost"


class GitSyncService:
    """Stage, commit, pull and push the mirror repository."""

    def __init__(
        self,
        repo_path: Path,
        remote: str = "origin",
        branch: str = "main",
        timeout: int = 60,
        git: Optional[GitWrapper] = None,
    ) -> None:
        self._remote = remote
        self._branch = branch
        self._git = git or GitWrapper(repo_path, timeout=timeout)

    @property
    def git(self) -> GitWrapper:
        return self._git

    @property
    def is_setup(self) -> bool:
        """Check if the mirror directory is a git repository."""
        return self._git.is_repository()

    def init_repository(self) -> None:
        """Initialize the repository. Idempotent.

        Raises:
            SyncError: If ``git init`` or the identity setup fails.
        """
        if not self.is_setup:
            try:
                self._git.init()
            except GitError as e:
                if "already" not in (e.stderr or "").lower():
                    raise SyncError(
                        f"git init failed: {e}",
                        operation="init_repository",
                        code=ErrorCode.SYNC_NOT_CONFIGURED,
                        original_error=e,
                    ) from e
            logger.info(f"Initialized git repository at {self._git.repo_path}")
        try:
            self._git.set_identity(_COMMIT_NAME, _COMMIT_EMAIL)
            if not self._git.has_commits():
                self._git.ensure_branch(self._branch)
        except GitError as e:
            raise SyncError(
                f"git configuration failed: {e}",
                operation="init_repository",
                code=ErrorCode.SYNC_NOT_CONFIGURED,
                original_error=e,
            ) from e

    def sync(self) -> SyncResult:
        """Commit local changes, then pull and push when a remote exists.

        A failed pull is logged and the push still attempted. A failed push
        keeps the local commit and is reported in the result.
        """
        try:
            return self._sync()
        except Exception as e:
            logger.error(f"Sync failed: {e}")
            return SyncResult(success=False, error=str(e))

    def _sync(self) -> SyncResult:
        if not self.is_setup:
            try:
                self.init_repository()
            except SyncError as e:
                logger.error(f"Sync aborted: {e}")
                return SyncResult(success=False, error=str(e))

        committed = False
        try:
            self._git.add_all()
            if self._git.status_porcelain():
                stamp = datetime.now(timezone.utc).isoformat()
                self._git.commit(f"sync: {stamp}")
                committed = True
                logger.info(f"Committed mirror changes at {stamp}")
            else:
                logger.debug("No mirror changes to commit")
        except GitError as e:
            logger.error(f"Commit failed: {e}")
            return SyncResult(success=False, error=f"commit failed: {e}")

        try:
            remotes = self._git.remotes()
        except GitError as e:
            logger.error(f"Could not list remotes: {e}")
            return SyncResult(success=False, error=str(e), committed=committed)

        if self._remote not in remotes:
            logger.debug(f"No remote '{self._remote}' configured, skipping push")
            return SyncResult(success=True, committed=committed)

        pulled = False
        try:
            self._git.pull_rebase(self._remote, self._branch)
            pulled = True
        except GitError as e:
            logger.warning(f"Pull failed, continuing with push: {e}")

        try:
            self._git.push(self._remote, self._branch)
        except GitError as first:
            logger.debug(f"Push failed, retrying with upstream: {first}")
            try:
                self._git.push(self._remote, self._branch, set_upstream=True)
            except GitError as e:
                logger.error(f"Push failed: {e}")
                return SyncResult(
                    success=False,
                    error=f"push failed: {e}",
                    committed=committed,
                    pulled=pulled,
                )
        logger.info(f"Pushed to {self._remote}/{self._branch}")
        return SyncResult(success=True, committed=committed, pulled=pulled, pushed=True)

"""Git wrapper for the note mirror directory.

All operations shell out to the ``git`` binary with ``-C <repo>`` so the
process working directory is never changed.
"""

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

LOCK_MARKER = "index.lock"


class GitError(Exception):
    """A git invocation on the mirror directory failed.

    ``command``, ``returncode`` and ``stderr`` are filled in when git
    actually ran; a missing binary or a timeout only carries the command.
    """

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.command = command
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        text = self.message
        if self.command:
            text += f" [{' '.join(self.command)}]"
        if self.returncode is not None:
            text += f" exited {self.returncode}"
        if self.stderr:
            text += f": {self.stderr[:200]}"
        return text


class GitWrapper:
    """Runs the handful of git commands that sync needs.

    Args:
        repo_path: Repository root (the note mirror directory).
        timeout: Seconds before a single git invocation is abandoned.
    """

    def __init__(self, repo_path: Path, timeout: int = 60):
        self.repo_path = Path(repo_path).expanduser().resolve()
        self.timeout = timeout

    def _invoke(self, cmd: List[str]) -> subprocess.CompletedProcess:
        # Never prompt for credentials
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        try:
            return subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(
                f"git gave no answer within {self.timeout}s, timed out", command=cmd
            ) from e
        except FileNotFoundError as e:
            raise GitError("git is not installed or not on PATH", command=cmd) from e

    def _run_git(
        self,
        args: List[str],
        check: bool = True,
        retries: int = 3,
        retry_delay: float = 0.1,
    ) -> subprocess.CompletedProcess:
        """Run ``git -C <mirror> <args>``.

        A held ``index.lock`` (another git process in the mirror) is waited
        out up to ``retries`` times with a growing delay. With ``check`` a
        non-zero exit raises GitError; otherwise the result is returned as is.
        """
        cmd = ["git", "-C", str(self.repo_path), *args]
        attempt = 0
        result = self._invoke(cmd)
        while (
            result.returncode != 0
            and LOCK_MARKER in (result.stderr or "")
            and attempt < retries
        ):
            attempt += 1
            logger.debug(f"Mirror index is locked, retry {attempt}/{retries}: git {args[0]}")
            time.sleep(retry_delay * attempt)
            result = self._invoke(cmd)

        if check and result.returncode != 0:
            raise GitError(
                f"git {' '.join(args)} failed",
                command=cmd,
                returncode=result.returncode,
                stderr=(result.stderr or "").strip() or None,
            )
        return result

    def is_repository(self) -> bool:
        return (self.repo_path / ".git").exists()

    def init(self) -> None:
        """``git init``; the directory is created when missing."""
        self.repo_path.mkdir(parents=True, exist_ok=True)
        self._run_git(["init"])

    def set_identity(self, name: str, email: str) -> None:
        """Set a repository-local commit identity."""
        self._run_git(["config", "user.email", email])
        self._run_git(["config", "user.name", name])

    def add_all(self) -> None:
        self._run_git(["add", "-A"])

    def status_porcelain(self) -> str:
        """Machine-readable status; empty when the tree is clean."""
        return self._run_git(["status", "--porcelain"]).stdout.strip()

    def commit(self, message: str) -> None:
        self._run_git(["commit", "-m", message])

    def remotes(self) -> List[str]:
        """Names of the configured remotes."""
        result = self._run_git(["remote"])
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def has_commits(self) -> bool:
        """True once HEAD resolves to a commit."""
        result = self._run_git(["rev-parse", "--verify", "HEAD"], check=False)
        return result.returncode == 0

    def current_branch(self) -> Optional[str]:
        result = self._run_git(["symbolic-ref", "--short", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def ensure_branch(self, branch: str) -> None:
        """Point HEAD at ``branch`` (works before the first commit too)."""
        if self.current_branch() != branch:
            self._run_git(["symbolic-ref", "HEAD", f"refs/heads/{branch}"])

    def pull_rebase(self, remote: str, branch: str) -> None:
        self._run_git(["pull", "--rebase", remote, branch])

    def push(self, remote: str, branch: str, set_upstream: bool = False) -> None:
        args = ["push"]
        if set_upstream:
            args.append("-u")
        self._run_git(args + [remote, branch])

"""
Git-backed version store.

Drives the ``git`` executable through subprocess. Commit SHAs are the version
ids handed to callers, who must treat them as opaque strings.
"""

import fnmatch
import os
import subprocess
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from chronicle.logging import get_chronicle_logger, performance_monitor

from .backend import VersionBackend
from .errors import BackendError, GitCommandError, PublishFailure
from .schemas import VersionMatch

log = get_chronicle_logger("git")


class GitBackend(VersionBackend):
    """
    Version backend storing every document version as a git commit.

    The repository root is the storage root of the recorder. It is created and
    initialised by the first write; lookups against a missing repository find
    nothing and leave the filesystem untouched.
    """

    def __init__(
        self,
        root: Union[str, Path],
        remote: str = "origin",
        branch: str = "main",
        author_name: str = "chronicle",
        author_email: str = "chronicle@localhost",
    ):
        """
        Initialize the git backend.

        Args:
            root: Repository root directory
            remote: Remote name used by ``push``
            branch: Branch versions are committed on and pushed to
            author_name: Author and committer name of created versions
            author_email: Author and committer email of created versions
        """
        self.root = Path(root)
        self.remote = remote
        self.branch = branch
        self.author_name = author_name
        self.author_email = author_email
        self._init_lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return (self.root / ".git").exists()

    def _init_repo(self) -> None:
        """Initialize git repository if not already present."""
        with self._init_lock:
            if self.initialized:
                return

            self.root.mkdir(parents=True, exist_ok=True)
            self._run("init")
            self._run("symbolic-ref", "HEAD", f"refs/heads/{self.branch}")
            log.info(f"Initialized git repository at {self.root}")

    @performance_monitor(threshold_ms=2000.0, component="git")
    def _run(
        self,
        *args: str,
        stdin: Optional[str] = None,
        check: bool = True,
        read_only: bool = False,
    ) -> subprocess.CompletedProcess:
        command = [
            "-c",
            f"user.name={self.author_name}",
            "-c",
            f"user.email={self.author_email}",
            "-c",
            "core.quotePath=false",
            *args,
        ]
        env: Dict[str, str] = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        if read_only:
            # Read-only queries must never take the index lock a commit holds.
            env["GIT_OPTIONAL_LOCKS"] = "0"

        log.trace(f"git {' '.join(args)}", cwd=str(self.root))
        try:
            result = subprocess.run(
                ["git", *command],
                cwd=self.root,
                input=stdin,
                capture_output=True,
                text=True,
                encoding="utf-8",
                env=env,
            )
        except OSError as e:
            raise BackendError(f"Could not run git in {self.root}: {e}") from e

        if check and result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr or result.stdout)
        return result

    def _has_head(self) -> bool:
        if not self.initialized:
            return False
        result = self._run("rev-parse", "--verify", "--quiet", "HEAD", check=False, read_only=True)
        return result.returncode == 0

    def has_changes(self, path: Path) -> bool:
        self._init_repo()
        relative_path = self.relative(path)
        result = self._run(
            "status", "--porcelain", "--untracked-files=all", "--", relative_path, read_only=True
        )
        return bool(result.stdout.strip())

    def is_untracked(self, path: Path) -> bool:
        if not self._has_head():
            return True
        result = self._run(
            "log", "-n", "1", "--format=%H", "--", self.relative(path), read_only=True
        )
        return not result.stdout.strip()

    def commit(self, path: Path, message: str) -> str:
        self._init_repo()
        relative_path = self.relative(path)
        self._run("add", "--", relative_path)
        # --file=- keeps the changelog verbatim (no comment stripping)
        self._run("commit", "--file=-", "--", relative_path, stdin=message)
        version_id = self._run("rev-parse", "HEAD", read_only=True).stdout.strip()

        log.debug(f"Committed {relative_path} as {version_id[:8]}", version_id=version_id)
        return version_id

    def find_latest(self, pattern: Path) -> Optional[VersionMatch]:
        if not self._has_head():
            return None

        relative_pattern = self.relative(pattern)
        result = self._run(
            "log", "-n", "1", "--format=%H", "--name-only", "--", relative_pattern, read_only=True
        )
        lines: List[str] = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            return None

        version_id, file_names = lines[0], lines[1:]
        for file_name in file_names:
            if fnmatch.fnmatchcase(file_name, relative_pattern):
                return VersionMatch(version_id=version_id, path=self.root / file_name)
        return None

    def push(self) -> None:
        if not self.initialized:
            raise PublishFailure(f"Nothing to publish: no repository at {self.root}")
        try:
            self._run("push", self.remote, f"HEAD:refs/heads/{self.branch}")
        except BackendError as e:
            log.error(f"Could not push to {self.remote}: {e}")
            raise PublishFailure(f"Could not publish to remote '{self.remote}': {e}") from e

        log.info(f"Pushed {self.branch} to {self.remote}")

    def history(self, pattern: Path, max_count: int = 10) -> List[str]:
        """
        Version ids touching paths matching ``pattern``, most recent first.

        Args:
            pattern: Concrete path or wildcard pattern
            max_count: Maximum number of versions to return
        """
        if not self._has_head():
            return []
        result = self._run(
            "log", "-n", str(max_count), "--format=%H", "--", self.relative(pattern), read_only=True
        )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

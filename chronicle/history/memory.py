"""
In-memory version backend.

Reads the working tree from disk like the git backend does, but keeps
committed history in memory. Used for dry runs and deterministic tests of
ordering and failure isolation without invoking git.
"""

import fnmatch
import hashlib
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from chronicle.logging import get_chronicle_logger

from .backend import VersionBackend
from .errors import BackendError, PublishFailure
from .schemas import VersionMatch

log = get_chronicle_logger("history")


@dataclass(frozen=True)
class MemoryCommit:
    """A version held by the in-memory backend."""

    version_id: str
    path: str
    message: str
    content: bytes
    parent_id: Optional[str] = None


class InMemoryBackend(VersionBackend):
    """
    Version backend keeping committed state in memory.

    Attributes:
        commits: Every created version, oldest first
        pushed: Versions published by the last successful ``push``
        fail_on: Relative paths whose commit raises ``BackendError``
        fail_push: Whether ``push`` raises ``PublishFailure``
        max_concurrent_commits: Highest number of commits observed running at once
    """

    def __init__(
        self,
        root: Union[str, Path],
        fail_on: Optional[Set[str]] = None,
        fail_push: bool = False,
        commit_delay: float = 0.0,
    ):
        """
        Initialize the in-memory backend.

        Args:
            root: Directory holding the working tree
            fail_on: Relative paths whose commits must fail
            fail_push: Make ``push`` fail as if the remote rejected it
            commit_delay: Seconds each commit takes, to widen race windows
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.fail_on: Set[str] = set(fail_on or ())
        self.fail_push = fail_push
        self.commit_delay = commit_delay

        self.commits: List[MemoryCommit] = []
        self.pushed: List[MemoryCommit] = []
        self._committed: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self._running = 0
        self.max_concurrent_commits = 0

    def _read(self, relative_path: str) -> Optional[bytes]:
        file_path = self.root / relative_path
        if not file_path.exists():
            return None
        return file_path.read_bytes()

    def has_changes(self, path: Path) -> bool:
        relative_path = self.relative(path)
        content = self._read(relative_path)
        with self._lock:
            committed = self._committed.get(relative_path)
        if committed is None:
            return content is not None
        return content != committed

    def is_untracked(self, path: Path) -> bool:
        relative_path = self.relative(path)
        with self._lock:
            return relative_path not in self._committed

    def commit(self, path: Path, message: str) -> str:
        relative_path = self.relative(path)

        with self._lock:
            self._running += 1
            self.max_concurrent_commits = max(self.max_concurrent_commits, self._running)
        try:
            if self.commit_delay:
                time.sleep(self.commit_delay)

            if relative_path in self.fail_on:
                raise BackendError(f"Simulated failure committing {relative_path}")

            content = self._read(relative_path)
            with self._lock:
                if content is None or self._committed.get(relative_path) == content:
                    raise BackendError(f"Nothing to commit for {relative_path}")

                parent_id = self.commits[-1].version_id if self.commits else None
                version_id = hashlib.sha1(
                    b"\0".join(
                        [
                            (parent_id or "").encode("utf-8"),
                            relative_path.encode("utf-8"),
                            content,
                            message.encode("utf-8"),
                        ]
                    )
                ).hexdigest()
                self.commits.append(
                    MemoryCommit(
                        version_id=version_id,
                        path=relative_path,
                        message=message,
                        content=content,
                        parent_id=parent_id,
                    )
                )
                self._committed[relative_path] = content
        finally:
            with self._lock:
                self._running -= 1

        log.debug(f"Committed {relative_path} as {version_id[:8]} (in memory)")
        return version_id

    def _matching(self, pattern: Path) -> List[MemoryCommit]:
        relative_pattern = self.relative(pattern)
        with self._lock:
            commits = list(self.commits)
        return [c for c in reversed(commits) if fnmatch.fnmatchcase(c.path, relative_pattern)]

    def find_latest(self, pattern: Path) -> Optional[VersionMatch]:
        matching = self._matching(pattern)
        if not matching:
            return None
        latest = matching[0]
        return VersionMatch(version_id=latest.version_id, path=self.root / latest.path)

    def history(self, pattern: Path, max_count: int = 10) -> List[str]:
        return [c.version_id for c in self._matching(pattern)[:max_count]]

    def push(self) -> None:
        if self.fail_push:
            raise PublishFailure("Simulated rejection of push to remote")
        with self._lock:
            self.pushed = list(self.commits)

    def message_of(self, version_id: str) -> Optional[str]:
        """Commit message of ``version_id``, None if unknown."""
        with self._lock:
            for commit in self.commits:
                if commit.version_id == version_id:
                    return commit.message
        return None

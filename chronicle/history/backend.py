"""
Version backend capability interface.

The history stores documents in an external history-preserving tool instead of
a database of its own. Implementations expose working tree vs. committed
history semantics; the recorder orchestrates and serializes around them.

Every method is synchronous and may block; async callers run them through
``asyncio.to_thread``.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from .schemas import VersionMatch


class VersionBackend(ABC):
    """Abstract history-preserving store for document files under ``root``."""

    root: Path

    @abstractmethod
    def has_changes(self, path: Path) -> bool:
        """True iff ``path`` differs from its last version or was never committed."""

    @abstractmethod
    def is_untracked(self, path: Path) -> bool:
        """True iff no version in history has ever touched ``path``."""

    @abstractmethod
    def commit(self, path: Path, message: str) -> str:
        """
        Stage the working tree content of ``path`` and create exactly one version.

        Returns:
            Opaque version id

        Raises:
            BackendError: If there is nothing to commit or the store refuses
        """

    @abstractmethod
    def find_latest(self, pattern: Path) -> Optional[VersionMatch]:
        """
        Find the most recent version touching any path matching ``pattern``.

        ``pattern`` may use a ``*`` wildcard for the extension.

        Returns:
            The version and the concrete path it touched, None if none ever did
        """

    def is_tracked(self, pattern: Path) -> bool:
        """True iff any version ever touched a path matching ``pattern``."""
        return self.find_latest(pattern) is not None

    @abstractmethod
    def history(self, pattern: Path, max_count: int = 10) -> List[str]:
        """Version ids touching paths matching ``pattern``, most recent first."""

    @abstractmethod
    def push(self) -> None:
        """
        Publish all local versions to the remote counterpart.

        Raises:
            PublishFailure: If the remote is unreachable or rejects the push
        """

    def relative(self, path: Path) -> str:
        """Path of ``path`` relative to the backend root, in forward-slash form."""
        path = Path(path)
        try:
            relative = path.relative_to(self.root)
        except ValueError:
            relative = path.resolve().relative_to(self.root.resolve())
        return relative.as_posix()

"""
Data structures exchanged by the history components.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .errors import CommitFailure


class CommitStatus(str, Enum):
    """Outcome of an attempt to turn a saved file into a version."""

    COMMITTED = "committed"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class CommitResult:
    """
    Three-way commit outcome.

    Attributes:
        status: Whether a version was created, skipped, or refused
        version_id: Id of the created version (COMMITTED only)
        error: Failure carrying path and message (FAILED only)
    """

    status: CommitStatus
    version_id: Optional[str] = None
    error: Optional[CommitFailure] = None

    @classmethod
    def committed(cls, version_id: str) -> "CommitResult":
        return cls(status=CommitStatus.COMMITTED, version_id=version_id)

    @classmethod
    def unchanged(cls) -> "CommitResult":
        return cls(status=CommitStatus.UNCHANGED)

    @classmethod
    def failed(cls, error: CommitFailure) -> "CommitResult":
        return cls(status=CommitStatus.FAILED, error=error)

    @property
    def is_committed(self) -> bool:
        return self.status is CommitStatus.COMMITTED


@dataclass
class CommitTask:
    """
    A pending "stage and create one version" unit of work.

    Owned by the commit queue from enqueue until its future is settled.
    """

    path: Path
    message: str
    future: asyncio.Future
    sequence: int = 0


@dataclass(frozen=True)
class VersionMatch:
    """Most recent version touching a path pattern and the concrete path it matched."""

    version_id: str
    path: Path


@dataclass(frozen=True)
class Record:
    """
    Result of recording a document snapshot.

    Attributes:
        path: Path the content was written to
        version_id: Id of the created version, None when content was unchanged
        is_first_version: True when no version of this path existed before
        status: COMMITTED or UNCHANGED
    """

    path: Path
    version_id: Optional[str]
    is_first_version: bool
    status: CommitStatus = CommitStatus.COMMITTED

    @property
    def changed(self) -> bool:
        return self.version_id is not None


@dataclass(frozen=True)
class LatestRecord:
    """Latest recorded version of a document, read back from the working tree."""

    version_id: str
    content: Union[str, bytes]
    mime_type: Optional[str]
    path: Path = field(default_factory=Path)

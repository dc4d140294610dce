"""
Versioned document history.

Records successive snapshots of tracked documents as git commits, creating a
version only when content changed, and reads back the latest version of any
document.
"""

from .schemas import (
    CommitStatus,
    CommitResult,
    CommitTask,
    Record,
    LatestRecord,
    VersionMatch,
)

from .errors import (
    HistoryError,
    BackendError,
    GitCommandError,
    RecordingFailure,
    WriteFailure,
    CommitFailure,
    PublishFailure,
)

from .document_types import DocumentType, DOCUMENT_TYPES, get_document_type, display_name
from .paths import PathResolver, WILDCARD_EXTENSION
from .backend import VersionBackend
from .git import GitBackend
from .memory import InMemoryBackend, MemoryCommit
from .commit_queue import CommitQueue, CommitRunner
from .recorder import Recorder
from .archive import DocumentArchive

__all__ = [
    # Schemas
    "CommitStatus",
    "CommitResult",
    "CommitTask",
    "Record",
    "LatestRecord",
    "VersionMatch",
    # Errors
    "HistoryError",
    "BackendError",
    "GitCommandError",
    "RecordingFailure",
    "WriteFailure",
    "CommitFailure",
    "PublishFailure",
    # Document types
    "DocumentType",
    "DOCUMENT_TYPES",
    "get_document_type",
    "display_name",
    # Paths
    "PathResolver",
    "WILDCARD_EXTENSION",
    # Backends
    "VersionBackend",
    "GitBackend",
    "InMemoryBackend",
    "MemoryCommit",
    # Recording
    "CommitQueue",
    "CommitRunner",
    "Recorder",
    "DocumentArchive",
]

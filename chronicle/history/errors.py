"""
Error taxonomy for the versioned document history.

Absence of a recorded version is never an error: lookups return ``None``.
"""

from typing import Optional, Sequence


class HistoryError(Exception):
    """Base exception for history operations."""

    pass


class BackendError(HistoryError):
    """Raised when the version backend fails or refuses an operation."""

    pass


class GitCommandError(BackendError):
    """Raised when a git invocation exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(
            f"git {' '.join(self.command)} exited with status {returncode}"
            + (f": {self.stderr}" if self.stderr else "")
        )


class RecordingFailure(HistoryError):
    """Raised to the caller of ``record`` when a snapshot could not be recorded."""

    pass


class WriteFailure(RecordingFailure):
    """Raised when content or its containing directory could not be written."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        super().__init__(f"Could not write {path}: {cause}")


class CommitFailure(RecordingFailure):
    """Raised when the backend rejects staging or committing a changed path."""

    def __init__(self, path: str, message: str, cause: Optional[BaseException] = None):
        self.path = path
        self.message = message
        self.cause = cause
        super().__init__(
            f'Could not commit {path} with message "{message}" due to error: "{cause}"'
        )


class PublishFailure(HistoryError):
    """Raised when the remote is unreachable or rejects the push."""

    pass

"""
Recorder: the boundary beyond which the version backend is abstracted.

Records document snapshots as versions (only when content changed) and reads
back the latest version of any tracked document. Version ids are opaque.

Concurrency:
- disk writes and change detection of different documents overlap freely
- commits are serialized through the recorder's own commit queue
- reads (latest record, tracking status) bypass the queue
- ``publish`` is not serialized against the queue; call ``drain`` first when
  a consistent remote snapshot is required
"""

import asyncio
import mimetypes
from pathlib import Path
from typing import List, Optional, Union

from chronicle.config import HistoryConfig
from chronicle.logging import get_chronicle_logger, log_history_operation

from .backend import VersionBackend
from .commit_queue import CommitQueue, CommitRunner
from .document_types import display_name
from .errors import BackendError, CommitFailure, RecordingFailure, WriteFailure
from .git import GitBackend
from .paths import PathResolver
from .schemas import CommitResult, CommitStatus, LatestRecord, Record

log = get_chronicle_logger("history")

mimetypes.add_type("text/markdown", ".md")

TEXTUAL_APPLICATION_TYPES = {
    "application/json",
    "application/xml",
    "application/xhtml+xml",
    "application/javascript",
}

Content = Union[str, bytes]


def is_textual(mime_type: Optional[str]) -> bool:
    """Whether content of ``mime_type`` is read back decoded as UTF-8 text."""
    if not mime_type:
        return False
    return mime_type.startswith("text/") or mime_type in TEXTUAL_APPLICATION_TYPES


def extension_for(mime_type: Optional[str]) -> Optional[str]:
    """File extension for ``mime_type``, None when unknown."""
    if not mime_type:
        return None
    if mime_type == "text/markdown":
        return "md"
    extension = mimetypes.guess_extension(mime_type.split(";")[0].strip())
    return extension.lstrip(".") if extension else None


class Recorder:
    """
    Records successive snapshots of documents as immutable versions.

    Each recorder owns one commit queue; all commits issued through it run
    one at a time, in the order they were enqueued.
    """

    def __init__(
        self,
        root: Union[str, Path],
        backend: Optional[VersionBackend] = None,
        default_extension: str = "md",
        commit_runner: Optional[CommitRunner] = None,
    ):
        """
        Initialize the recorder.

        Args:
            root: Storage root, also the backend repository root
            backend: Version backend (git repository at ``root`` by default)
            default_extension: Extension used when none is given or derivable
            commit_runner: Serialized task runner (a CommitQueue by default)
        """
        self.paths = PathResolver(root, default_extension)
        self.backend = backend if backend is not None else GitBackend(root)
        self.commit_queue: CommitRunner = (
            commit_runner if commit_runner is not None else CommitQueue(self.backend)
        )

    @classmethod
    def from_config(
        cls,
        root: Union[str, Path],
        history_config: HistoryConfig,
        default_extension: Optional[str] = None,
    ) -> "Recorder":
        """Create a git-backed recorder using repository settings from configuration."""
        backend = GitBackend(
            root,
            remote=history_config.remote,
            branch=history_config.branch,
            author_name=history_config.author_name,
            author_email=history_config.author_email,
        )
        return cls(
            root,
            backend=backend,
            default_extension=default_extension or history_config.default_extension,
        )

    @property
    def root(self) -> Path:
        return self.paths.root

    async def record(
        self,
        collection_id: Optional[str],
        document_kind: str,
        content: Content,
        changelog: Optional[str] = None,
        extension: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> Record:
        """
        Record a snapshot of a document.

        Writing byte-identical content is a no-op: no version is created and
        the returned record has ``version_id`` None.

        Args:
            collection_id: Collection of the document, None for collection-wide
            document_kind: Kind of document (e.g. "privacy-policy")
            content: Full document content (text is stored as UTF-8)
            changelog: Free text appended to the commit message body
            extension: Explicit file extension
            mime_type: MIME type used to derive the extension when none is given

        Returns:
            Record with path, version id and first-version flag

        Raises:
            WriteFailure: If the file or its directory could not be written
            CommitFailure: If the backend refused the commit
        """
        path = await self.save(collection_id, document_kind, content, extension, mime_type)

        try:
            is_first_version = await asyncio.to_thread(self.backend.is_untracked, path)
        except BackendError as e:
            log.error(f"Could not inspect history of {path}: {e}")
            raise RecordingFailure(f"Could not inspect history of {path}: {e}") from e

        message = self.commit_message(collection_id, document_kind, is_first_version, changelog)
        result = await self.commit(path, message)

        if result.status is CommitStatus.FAILED:
            assert result.error is not None
            raise result.error

        log_history_operation(
            log,
            operation="record",
            path=str(path),
            status=result.status.value,
            version_id=result.version_id,
            is_first_version=is_first_version,
        )
        return Record(
            path=path,
            version_id=result.version_id,
            is_first_version=is_first_version,
            status=result.status,
        )

    async def save(
        self,
        collection_id: Optional[str],
        document_kind: str,
        content: Content,
        extension: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> Path:
        """
        Write content to the document's path, fully overwriting it.

        Returns:
            The path written to

        Raises:
            WriteFailure: If the file or its directory could not be written
        """
        path = self.paths.resolve(
            collection_id, document_kind, extension or extension_for(mime_type)
        )
        await asyncio.to_thread(self._write, path, content)
        return path

    @staticmethod
    def _write(path: Path, content: Content) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            log.error(f"Failed to write {path}: {e}")
            raise WriteFailure(str(path), e) from e

    async def commit(self, path: Path, message: str) -> CommitResult:
        """
        Turn the saved content of ``path`` into a version if it changed.

        Returns:
            COMMITTED with the version id, UNCHANGED, or FAILED with the error
        """
        try:
            changed = await asyncio.to_thread(self.backend.has_changes, path)
        except BackendError as e:
            error = CommitFailure(str(path), message, e)
            log.error(str(error))
            return CommitResult.failed(error)

        if not changed:
            log.debug(f"No changes in {path}, nothing to commit")
            return CommitResult.unchanged()

        try:
            version_id = await self.commit_queue.enqueue(path, message)
        except CommitFailure as e:
            return CommitResult.failed(e)

        log.info(f"Recorded {path} in {version_id[:8]}", version_id=version_id)
        return CommitResult.committed(version_id)

    @staticmethod
    def commit_message(
        collection_id: Optional[str],
        document_kind: str,
        is_first_version: bool,
        changelog: Optional[str] = None,
    ) -> str:
        """
        Build ``"Start tracking|Update <collection> <display name>"`` with an
        optional blank line and changelog body.
        """
        subject = " ".join(
            part
            for part in (
                "Start tracking" if is_first_version else "Update",
                collection_id,
                display_name(document_kind),
            )
            if part
        )
        if changelog:
            return f"{subject}\n\n{changelog}"
        return subject

    async def get_latest_record(
        self, collection_id: Optional[str], document_kind: str
    ) -> Optional[LatestRecord]:
        """
        Read back the latest recorded version of a document.

        Content is read from the working tree, which reflects the latest
        version of every path once its record call has returned.
        Textual content is decoded as UTF-8; undecodable bytes become U+FFFD.

        Returns:
            The latest record, None if the document was never recorded
        """
        pattern = self.paths.pattern(collection_id, document_kind)
        match = await asyncio.to_thread(self.backend.find_latest, pattern)
        if match is None:
            return None

        mime_type, _ = mimetypes.guess_type(match.path.name)
        data = await asyncio.to_thread(match.path.read_bytes)
        content: Content = data.decode("utf-8", errors="replace") if is_textual(mime_type) else data

        return LatestRecord(
            version_id=match.version_id,
            content=content,
            mime_type=mime_type,
            path=match.path,
        )

    async def is_tracked(self, collection_id: Optional[str], document_kind: str) -> bool:
        """Whether any version of the document was ever recorded."""
        pattern = self.paths.pattern(collection_id, document_kind)
        return await asyncio.to_thread(self.backend.is_tracked, pattern)

    async def history(
        self, collection_id: Optional[str], document_kind: str, max_count: int = 10
    ) -> List[str]:
        """Version ids of a document, most recent first."""
        pattern = self.paths.pattern(collection_id, document_kind)
        return await asyncio.to_thread(self.backend.history, pattern, max_count)

    async def publish(self) -> None:
        """
        Push all local versions to the remote.

        Raises:
            PublishFailure: If the remote is unreachable or rejects the push
        """
        await asyncio.to_thread(self.backend.push)
        log_history_operation(log, operation="publish", root=str(self.root))

    async def drain(self) -> None:
        """Wait until every pending commit has completed."""
        await self.commit_queue.join()

    async def close(self) -> None:
        """Drain pending commits and stop the commit worker."""
        await self.commit_queue.close()

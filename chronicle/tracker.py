"""
Document tracking runs.

Drives the collaborators around the archive for each declared document:
fetch -> record snapshot -> extract -> record version -> notify.

Fetching, extraction and notification are supplied by the caller through the
``Fetcher``, ``Extractor`` and ``Notifier`` protocols; this module only
orchestrates them.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Tuple

from chronicle.history.archive import DocumentArchive
from chronicle.history.document_types import display_name
from chronicle.history.errors import RecordingFailure
from chronicle.history.recorder import Content
from chronicle.history.schemas import Record
from chronicle.logging import get_chronicle_logger

log = get_chronicle_logger("tracker")


@dataclass(frozen=True)
class DocumentDeclaration:
    """
    A document to track.

    Attributes:
        collection_id: Collection (service) the document belongs to
        document_kind: Kind of document (e.g. "terms-of-service")
        url: Location the document is fetched from
        collection_name: Human name of the collection
        select: Selectors of the content to keep, for the extractor
        remove: Selectors of the content to drop, for the extractor
    """

    collection_id: Optional[str]
    document_kind: str
    url: str
    collection_name: Optional[str] = None
    select: Tuple[str, ...] = ()
    remove: Tuple[str, ...] = ()

    @property
    def label(self) -> str:
        name = self.collection_name or self.collection_id or "*"
        return f"[{name}-{display_name(self.document_kind)}]"


@dataclass(frozen=True)
class FetchedContent:
    """Raw content returned by a fetcher."""

    content: Content
    mime_type: Optional[str] = None


class Fetcher(Protocol):
    """Retrieves the raw content of a document."""

    async def fetch(self, url: str) -> FetchedContent:
        ...


class Extractor(Protocol):
    """Turns raw content into the text that is versioned."""

    async def extract(self, content: Content, declaration: DocumentDeclaration) -> str:
        ...


class Notifier(Protocol):
    """Receives tracking outcomes. Never touches the archive."""

    async def on_first_version(self, declaration: DocumentDeclaration, version_id: str) -> None:
        ...

    async def on_version_change(self, declaration: DocumentDeclaration, version_id: str) -> None:
        ...

    async def on_error(self, declaration: DocumentDeclaration, error: Exception) -> None:
        ...


class NullNotifier:
    """Notifier that ignores every event."""

    async def on_first_version(self, declaration: DocumentDeclaration, version_id: str) -> None:
        pass

    async def on_version_change(self, declaration: DocumentDeclaration, version_id: str) -> None:
        pass

    async def on_error(self, declaration: DocumentDeclaration, error: Exception) -> None:
        pass


class TrackingStatus(str, Enum):
    """Outcome of tracking one document."""

    FIRST_VERSION = "first_version"
    UPDATED = "updated"
    UNCHANGED_SNAPSHOT = "unchanged_snapshot"
    UNCHANGED_VERSION = "unchanged_version"
    INVALID_DECLARATION = "invalid_declaration"
    FETCH_FAILED = "fetch_failed"
    EXTRACTION_FAILED = "extraction_failed"
    RECORDING_FAILED = "recording_failed"


@dataclass
class TrackingResult:
    """What happened to one declared document during a run."""

    declaration: DocumentDeclaration
    status: TrackingStatus
    snapshot: Optional[Record] = None
    version: Optional[Record] = None
    error: Optional[Exception] = field(default=None, repr=False)

    @property
    def failed(self) -> bool:
        return self.status in (
            TrackingStatus.INVALID_DECLARATION,
            TrackingStatus.FETCH_FAILED,
            TrackingStatus.EXTRACTION_FAILED,
            TrackingStatus.RECORDING_FAILED,
        )


class DocumentTracker:
    """Tracks declared documents into a document archive."""

    def __init__(
        self,
        archive: DocumentArchive,
        fetcher: Fetcher,
        extractor: Extractor,
        notifier: Optional[Notifier] = None,
    ):
        self.archive = archive
        self.fetcher = fetcher
        self.extractor = extractor
        self.notifier: Notifier = notifier or NullNotifier()

    async def track(self, declaration: DocumentDeclaration) -> TrackingResult:
        """
        Track one document.

        Invalid declarations, fetch errors and extraction errors are reported
        to the notifier and returned as failed results.

        Raises:
            RecordingFailure: If the snapshot or version could not be recorded
            ValueError: If the fetched MIME type maps to an unusable extension
        """
        label = declaration.label

        try:
            self.archive.check_identity(declaration.collection_id, declaration.document_kind)
        except ValueError as e:
            log.error(f"{label} Invalid declaration: {e}")
            await self.notifier.on_error(declaration, e)
            return TrackingResult(declaration, TrackingStatus.INVALID_DECLARATION, error=e)

        log.info(f"{label} Fetch '{declaration.url}'")
        try:
            fetched = await self.fetcher.fetch(declaration.url)
        except Exception as e:
            log.error(f"{label} Could not fetch '{declaration.url}': {e}")
            await self.notifier.on_error(declaration, e)
            return TrackingResult(declaration, TrackingStatus.FETCH_FAILED, error=e)

        snapshot = await self.archive.record_snapshot(
            declaration.collection_id,
            declaration.document_kind,
            fetched.content,
            mime_type=fetched.mime_type,
            url=declaration.url,
        )
        log.info(f"{label} Saved snapshot to '{snapshot.path}'")

        if not snapshot.changed:
            log.info(f"{label} No changes in snapshot, did not record a version")
            return TrackingResult(declaration, TrackingStatus.UNCHANGED_SNAPSHOT, snapshot=snapshot)

        log.info(f"{label} Recorded snapshot in {snapshot.version_id}")

        try:
            text = await self.extractor.extract(fetched.content, declaration)
        except Exception as e:
            log.error(f"{label} Could not extract document: {e}")
            await self.notifier.on_error(declaration, e)
            return TrackingResult(
                declaration, TrackingStatus.EXTRACTION_FAILED, snapshot=snapshot, error=e
            )

        version = await self.archive.record_version(
            declaration.collection_id,
            declaration.document_kind,
            text,
            snapshot_id=snapshot.version_id,
        )

        if not version.changed:
            log.info(f"{label} No changes after extraction, did not record a version")
            return TrackingResult(
                declaration, TrackingStatus.UNCHANGED_VERSION, snapshot=snapshot, version=version
            )

        assert version.version_id is not None
        log.info(f"{label} Recorded version in {version.version_id}")
        if version.is_first_version:
            await self.notifier.on_first_version(declaration, version.version_id)
            status = TrackingStatus.FIRST_VERSION
        else:
            await self.notifier.on_version_change(declaration, version.version_id)
            status = TrackingStatus.UPDATED

        return TrackingResult(declaration, status, snapshot=snapshot, version=version)

    async def track_all(
        self, declarations: Iterable[DocumentDeclaration], publish: bool = False
    ) -> List[TrackingResult]:
        """
        Track every declared document concurrently.

        Args:
            declarations: Documents to track
            publish: Push snapshots and versions once every document is done

        Returns:
            One result per declaration, in declaration order
        """
        declarations = list(declarations)
        log.info(f"Start tracking {len(declarations)} documents")

        outcomes = await asyncio.gather(
            *(self.track(declaration) for declaration in declarations),
            return_exceptions=True,
        )

        results: List[TrackingResult] = []
        for declaration, outcome in zip(declarations, outcomes):
            if isinstance(outcome, (RecordingFailure, ValueError)):
                log.error(f"{declaration.label} {outcome}")
                results.append(
                    TrackingResult(declaration, TrackingStatus.RECORDING_FAILED, error=outcome)
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)

        if publish:
            await self.archive.publish()
            log.info("Pushed changes to the remote repositories")

        return results

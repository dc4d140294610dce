"""
Two-level document archive.

Every fetch is kept as a raw snapshot; the text extracted from a snapshot is
kept as a version whose changelog points back at the snapshot it came from.
Snapshots and versions live in separate repositories, each with its own
recorder and commit queue.
"""

import asyncio
from pathlib import Path
from typing import Optional, Union

from chronicle.config import HistoryConfig
from chronicle.logging import get_chronicle_logger

from .memory import InMemoryBackend
from .recorder import Content, Recorder
from .schemas import LatestRecord, Record

log = get_chronicle_logger("history")


class DocumentArchive:
    """Snapshot and version recorders managed together."""

    def __init__(self, snapshots: Recorder, versions: Recorder):
        self.snapshots = snapshots
        self.versions = versions

    @classmethod
    def from_config(cls, history_config: HistoryConfig) -> "DocumentArchive":
        """Git-backed archive at the configured snapshot and version paths."""
        return cls(
            snapshots=Recorder.from_config(
                history_config.snapshots_dir,
                history_config,
                default_extension=history_config.snapshot_extension,
            ),
            versions=Recorder.from_config(history_config.versions_dir, history_config),
        )

    @classmethod
    def in_memory(
        cls,
        root: Union[str, Path],
        snapshot_extension: str = "html",
        default_extension: str = "md",
    ) -> "DocumentArchive":
        """Archive writing files under ``root`` but keeping history in memory."""
        root = Path(root)
        return cls(
            snapshots=Recorder(
                root / "snapshots",
                backend=InMemoryBackend(root / "snapshots"),
                default_extension=snapshot_extension,
            ),
            versions=Recorder(
                root / "versions",
                backend=InMemoryBackend(root / "versions"),
                default_extension=default_extension,
            ),
        )

    def check_identity(self, collection_id: Optional[str], document_kind: str) -> None:
        """
        Check that a document identity can be addressed.

        Raises:
            ValueError: If the collection id or document kind is malformed
        """
        self.versions.paths.resolve(collection_id, document_kind)
        self.snapshots.paths.resolve(collection_id, document_kind)

    async def record_snapshot(
        self,
        collection_id: Optional[str],
        document_kind: str,
        content: Content,
        mime_type: Optional[str] = None,
        url: Optional[str] = None,
    ) -> Record:
        """Record raw fetched content."""
        changelog = f"Fetched from {url}" if url else None
        return await self.snapshots.record(
            collection_id, document_kind, content, changelog=changelog, mime_type=mime_type
        )

    async def record_version(
        self,
        collection_id: Optional[str],
        document_kind: str,
        content: str,
        snapshot_id: Optional[str] = None,
    ) -> Record:
        """Record text extracted from the snapshot ``snapshot_id``."""
        changelog = (
            f"This version was recorded after filtering snapshot {snapshot_id}"
            if snapshot_id
            else None
        )
        return await self.versions.record(
            collection_id, document_kind, content, changelog=changelog
        )

    async def get_latest_snapshot(
        self, collection_id: Optional[str], document_kind: str
    ) -> Optional[LatestRecord]:
        return await self.snapshots.get_latest_record(collection_id, document_kind)

    async def get_latest_version(
        self, collection_id: Optional[str], document_kind: str
    ) -> Optional[LatestRecord]:
        return await self.versions.get_latest_record(collection_id, document_kind)

    async def is_tracked(self, collection_id: Optional[str], document_kind: str) -> bool:
        """Whether any version of the document was ever recorded."""
        return await self.versions.is_tracked(collection_id, document_kind)

    async def publish(self) -> None:
        """
        Wait for pending commits, then push snapshots and versions.

        Raises:
            PublishFailure: If either remote rejects the push
        """
        await asyncio.gather(self.snapshots.drain(), self.versions.drain())
        await self.snapshots.publish()
        await self.versions.publish()
        log.info("Published snapshots and versions")

    async def close(self) -> None:
        await asyncio.gather(self.snapshots.close(), self.versions.close())

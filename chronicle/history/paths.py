"""
Deterministic addressing of tracked documents.

Layout under the storage root:
    <root>/<collection_id>/<document_kind>.<extension>
    <root>/<document_kind>.<extension>          (collection_id is None)
"""

import re
from pathlib import Path
from typing import Optional, Union

WILDCARD_EXTENSION = "*"

# Identifiers are single path segments without dots or glob characters.
_SEGMENT = re.compile(r"[A-Za-z0-9][A-Za-z0-9 _@+,&'()-]*")
_EXTENSION = re.compile(r"[A-Za-z0-9][A-Za-z0-9+_-]*")


def _check_segment(value: str, label: str) -> str:
    if not isinstance(value, str) or not _SEGMENT.fullmatch(value):
        raise ValueError(f"Invalid {label}: {value!r}")
    return value


class PathResolver:
    """
    Maps a (collection, document kind, extension) identity to a path.

    Pure: no filesystem access.
    """

    def __init__(self, root: Union[str, Path], default_extension: str = "md"):
        self.root = Path(root)
        self.default_extension = self._check_extension(default_extension)

    def resolve(
        self,
        collection_id: Optional[str],
        document_kind: str,
        extension: Optional[str] = None,
    ) -> Path:
        """
        Resolve the concrete path a document is written to.

        Args:
            collection_id: Collection the document belongs to, None for
                collection-wide documents
            document_kind: Kind of document (e.g. "privacy-policy")
            extension: Extension override, default extension when omitted

        Raises:
            ValueError: If an identifier or the extension is malformed
        """
        extension = self._check_extension(extension or self.default_extension)
        return self._build(collection_id, document_kind, extension)

    def pattern(self, collection_id: Optional[str], document_kind: str) -> Path:
        """Resolve a lookup pattern matching the document under any extension."""
        return self._build(collection_id, document_kind, WILDCARD_EXTENSION)

    def _build(self, collection_id: Optional[str], document_kind: str, extension: str) -> Path:
        file_name = f"{_check_segment(document_kind, 'document kind')}.{extension}"
        if collection_id is None:
            return self.root / file_name
        return self.root / _check_segment(collection_id, "collection id") / file_name

    @staticmethod
    def _check_extension(extension: str) -> str:
        extension = extension.lstrip(".")
        if not _EXTENSION.fullmatch(extension):
            raise ValueError(f"Invalid extension: {extension!r}")
        return extension

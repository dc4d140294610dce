"""
Registry of tracked document kinds.

Each kind has a human display name used in commit subjects. Kinds missing from
the registry are displayed by their id.
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class DocumentType:
    """A kind of tracked document."""

    kind: str
    name: str


DOCUMENT_TYPES: Dict[str, DocumentType] = {
    document_type.kind: document_type
    for document_type in (
        DocumentType("terms-of-service", "Terms of Service"),
        DocumentType("privacy-policy", "Privacy Policy"),
        DocumentType("cookies-policy", "Cookies Policy"),
        DocumentType("community-guidelines", "Community Guidelines"),
        DocumentType("acceptable-use-policy", "Acceptable Use Policy"),
        DocumentType("developer-terms", "Developer Terms"),
        DocumentType("data-processing-agreement", "Data Processing Agreement"),
        DocumentType("copyright-claims-policy", "Copyright Claims Policy"),
        DocumentType("law-enforcement-guidelines", "Law Enforcement Guidelines"),
        DocumentType("imprint", "Imprint"),
    )
}


def get_document_type(kind: str) -> DocumentType:
    """Return the registered type for ``kind``, or a fallback named after it."""
    return DOCUMENT_TYPES.get(kind) or DocumentType(kind=kind, name=kind)


def display_name(kind: str) -> str:
    return get_document_type(kind).name

"""Interfaces for the object store and metadata store collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, runtime_checkable


@dataclass(slots=True)
class Listing:
    """Direct children of an object-store prefix.

    Attributes:
        prefixes: Full prefixes (no trailing slash) of the direct sub-"folders".
        keys: Full object keys stored directly under the prefix.
    """

    prefixes: List[str] = field(default_factory=list)
    keys: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ObjectMetadata:
    """Metadata reported for a stored object."""

    key: str
    size: int
    content_type: str = "application/octet-stream"
    custom_metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class Document:
    """A metadata document and its identifier."""

    id: str
    data: Dict[str, Any]


SnapshotCallback = Callable[[List[Document]], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class ObjectStore(Protocol):
    """Flat key/object store with prefix listing and no native folders."""

    def list_children(self, prefix: str) -> Listing:
        """Return the direct sub-prefixes and object keys below ``prefix``."""

    def get_bytes(self, key: str) -> bytes:
        """Return the full contents of ``key``; raises NotFoundError when absent."""

    def put_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        custom_metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Write ``data`` at ``key``, replacing any previous object."""

    def delete_object(self, key: str) -> None:
        """Delete ``key``; deleting a missing key is not an error."""

    def get_metadata(self, key: str) -> ObjectMetadata:
        """Return metadata for ``key``; raises NotFoundError when absent."""

    def get_download_url(self, key: str) -> str:
        """Return a URL that serves the object's bytes."""


@runtime_checkable
class MetadataStore(Protocol):
    """Document database with named collections and snapshot listeners."""

    def create_document(self, collection: str, data: Mapping[str, Any]) -> str:
        """Insert ``data`` under a generated identifier and return it."""

    def get_document(self, collection: str, doc_id: str) -> Dict[str, Any]:
        """Return the document body; raises NotFoundError when absent."""

    def set_document(
        self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False
    ) -> None:
        """Write a document under ``doc_id``, merging fields when requested."""

    def update_document(self, collection: str, doc_id: str, partial: Mapping[str, Any]) -> None:
        """Merge ``partial`` into an existing document; raises NotFoundError when absent."""

    def delete_document(self, collection: str, doc_id: str) -> None:
        """Remove a document; deleting a missing document is not an error."""

    def query_equals(
        self, collection: str, filters: Mapping[str, Any], limit: Optional[int] = None
    ) -> List[Document]:
        """Return documents whose (dotted) fields equal every filter value."""

    def list_documents(self, collection: str, limit: Optional[int] = None) -> List[Document]:
        """Return up to ``limit`` documents of ``collection`` in store order."""

    def subscribe_collection(self, collection: str, on_change: SnapshotCallback) -> Unsubscribe:
        """Deliver the full collection now and after every change."""


__all__ = [
    "Listing",
    "ObjectMetadata",
    "Document",
    "SnapshotCallback",
    "Unsubscribe",
    "ObjectStore",
    "MetadataStore",
]

"""File metadata persistence on top of the metadata store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from rman import paths
from rman.stores import FILES_COLLECTION, Document, MetadataStore

from .models import FileEntry, OcrStatus

LOGGER = logging.getLogger(__name__)


class FileCatalog:
    """Manage the ``files`` collection of metadata documents.

    Documents cross-reference objects through their ``fullPath`` field; the
    lookup is a query on that field, not an indexed join, and documents may
    outlive (or be missing for) the objects they describe.
    """

    def __init__(
        self,
        store: MetadataStore,
        *,
        collection: str = FILES_COLLECTION,
        root: str = paths.ROOT_PATH,
    ) -> None:
        """Initialize the catalog.

        Args:
            store: Metadata store holding the documents.
            collection: Name of the collection storing file documents.
            root: Root folder path used to derive parent paths.
        """
        self._store = store
        self._collection = collection
        self._root = root

    @property
    def collection(self) -> str:
        """Return the collection name used for file documents."""
        return self._collection

    def create(self, entry: FileEntry) -> str:
        """Persist a new document for ``entry`` and return its identifier.

        Args:
            entry: File metadata to store.

        Returns:
            str: Identifier assigned by the metadata store.
        """
        return self._store.create_document(self._collection, entry.to_document())

    def get(self, doc_id: str) -> FileEntry:
        """Load the entry stored under ``doc_id``.

        Raises:
            NotFoundError: If the document does not exist.
        """
        data = self._store.get_document(self._collection, doc_id)
        return FileEntry.from_document(doc_id, data, root=self._root)

    def find_by_key(self, object_key: str) -> List[FileEntry]:
        """Return every document whose ``fullPath`` equals ``object_key``."""
        documents = self._store.query_equals(self._collection, {"fullPath": object_key})
        return [self._entry(document) for document in documents]

    def list(self, limit: Optional[int] = None) -> List[FileEntry]:
        """Return up to ``limit`` entries in store order."""
        documents = self._store.list_documents(self._collection, limit)
        return [self._entry(document) for document in documents]

    def delete(self, doc_id: str) -> None:
        """Delete one document; missing documents are ignored."""
        self._store.delete_document(self._collection, doc_id)

    def delete_for_key(self, object_key: str) -> int:
        """Delete every document referencing ``object_key``.

        Returns:
            int: Number of documents removed.
        """
        entries = self.find_by_key(object_key)
        for entry in entries:
            self._store.delete_document(self._collection, entry.id)
        return len(entries)

    def rename(self, doc_id: str, new_name: str) -> None:
        """Change the display name only; the object key is left untouched."""
        self._store.update_document(
            self._collection,
            doc_id,
            {"name": new_name, "updatedAt": datetime.now(timezone.utc).isoformat()},
        )

    def set_tags(self, doc_id: str, tags: Dict[str, str]) -> None:
        """Replace the tag map of a document."""
        self._store.update_document(self._collection, doc_id, {"tags": dict(tags)})

    def set_ocr_status(self, doc_id: str, status: OcrStatus) -> None:
        """Record text-recognition progress for a document."""
        self._store.update_document(self._collection, doc_id, {"ocrStatus": status})

    def repoint(self, old_key: str, new_key: str) -> int:
        """Point documents for ``old_key`` at ``new_key`` after a move.

        Returns:
            int: Number of documents updated.
        """
        parent, name = paths.split_object_key(new_key, self._root)
        entries = self.find_by_key(old_key)
        for entry in entries:
            self._store.update_document(
                self._collection,
                entry.id,
                {"fullPath": new_key, "path": parent, "name": name},
            )
        if entries:
            LOGGER.debug("Re-pointed %d document(s) from %s to %s", len(entries), old_key, new_key)
        return len(entries)

    def subscribe(self, callback: Callable[[List[FileEntry]], None]) -> Callable[[], None]:
        """Deliver the full entry list now and on every change."""

        def _on_change(documents: List[Document]) -> None:
            callback([self._entry(document) for document in documents])

        return self._store.subscribe_collection(self._collection, _on_change)

    def _entry(self, document: Document) -> FileEntry:
        return FileEntry.from_document(document.id, document.data, root=self._root)


__all__ = ["FileCatalog", "FileEntry", "OcrStatus"]

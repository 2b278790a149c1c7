"""In-process store backends used for embedding and tests."""

from __future__ import annotations

import logging
import threading
import uuid
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from rman.errors import NotFoundError

from .base import Document, Listing, ObjectMetadata, SnapshotCallback, Unsubscribe

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _StoredObject:
    data: bytes
    content_type: str
    custom_metadata: Dict[str, str] = field(default_factory=dict)


class MemoryObjectStore:
    """Dictionary-backed object store.

    Every mutating call is appended to :attr:`operations` as ``(verb, key)`` so
    callers can audit what a higher-level operation actually wrote.
    """

    def __init__(self) -> None:
        self._objects: Dict[str, _StoredObject] = {}
        self._lock = threading.Lock()
        self.operations: List[Tuple[str, str]] = []

    def list_children(self, prefix: str) -> Listing:
        base = prefix.strip("/")
        lead = f"{base}/" if base else ""
        listing = Listing()
        seen: set[str] = set()
        with self._lock:
            keys = list(self._objects)
        for key in keys:
            if not key.startswith(lead):
                continue
            remainder = key[len(lead) :]
            if "/" in remainder:
                child = lead + remainder.split("/", 1)[0]
                if child not in seen:
                    seen.add(child)
                    listing.prefixes.append(child)
            else:
                listing.keys.append(key)
        return listing

    def get_bytes(self, key: str) -> bytes:
        with self._lock:
            stored = self._objects.get(key)
        if stored is None:
            raise NotFoundError(f"Object not found: {key}")
        return stored.data

    def put_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        custom_metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        with self._lock:
            self._objects[key] = _StoredObject(
                data=bytes(data),
                content_type=content_type,
                custom_metadata=dict(custom_metadata or {}),
            )
            self.operations.append(("put", key))

    def delete_object(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)
            self.operations.append(("delete", key))

    def get_metadata(self, key: str) -> ObjectMetadata:
        with self._lock:
            stored = self._objects.get(key)
        if stored is None:
            raise NotFoundError(f"Object not found: {key}")
        return ObjectMetadata(
            key=key,
            size=len(stored.data),
            content_type=stored.content_type,
            custom_metadata=dict(stored.custom_metadata),
        )

    def get_download_url(self, key: str) -> str:
        if key not in self._objects:
            raise NotFoundError(f"Object not found: {key}")
        return f"memory://{key}"

    def keys(self) -> List[str]:
        """Return every stored key."""
        with self._lock:
            return list(self._objects)

    @property
    def write_count(self) -> int:
        """Return the number of put/delete calls issued so far."""
        return len(self.operations)


class MemoryMetadataStore:
    """Dictionary-backed document store with synchronous snapshot listeners."""

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: Dict[str, List[SnapshotCallback]] = {}
        self._lock = threading.RLock()

    def create_document(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = deepcopy(dict(data))
            self._commit()
        self._notify(collection)
        return doc_id

    def get_document(self, collection: str, doc_id: str) -> Dict[str, Any]:
        with self._lock:
            body = self._collections.get(collection, {}).get(doc_id)
            if body is None:
                raise NotFoundError(f"Document not found: {collection}/{doc_id}")
            return deepcopy(body)

    def set_document(
        self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False
    ) -> None:
        with self._lock:
            documents = self._collections.setdefault(collection, {})
            if merge and doc_id in documents:
                documents[doc_id].update(deepcopy(dict(data)))
            else:
                documents[doc_id] = deepcopy(dict(data))
            self._commit()
        self._notify(collection)

    def update_document(self, collection: str, doc_id: str, partial: Mapping[str, Any]) -> None:
        with self._lock:
            body = self._collections.get(collection, {}).get(doc_id)
            if body is None:
                raise NotFoundError(f"Document not found: {collection}/{doc_id}")
            body.update(deepcopy(dict(partial)))
            self._commit()
        self._notify(collection)

    def delete_document(self, collection: str, doc_id: str) -> None:
        with self._lock:
            removed = self._collections.get(collection, {}).pop(doc_id, None)
            if removed is not None:
                self._commit()
        if removed is not None:
            self._notify(collection)

    def query_equals(
        self, collection: str, filters: Mapping[str, Any], limit: Optional[int] = None
    ) -> List[Document]:
        matches: List[Document] = []
        for document in self.list_documents(collection):
            if all(_lookup(document.data, field) == value for field, value in filters.items()):
                matches.append(document)
                if limit is not None and len(matches) >= limit:
                    break
        return matches

    def list_documents(self, collection: str, limit: Optional[int] = None) -> List[Document]:
        with self._lock:
            items = list(self._collections.get(collection, {}).items())
        if limit is not None:
            items = items[:limit]
        return [Document(id=doc_id, data=deepcopy(body)) for doc_id, body in items]

    def subscribe_collection(self, collection: str, on_change: SnapshotCallback) -> Unsubscribe:
        with self._lock:
            self._listeners.setdefault(collection, []).append(on_change)
        on_change(self.list_documents(collection))

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(collection, [])
                if on_change in listeners:
                    listeners.remove(on_change)

        return _unsubscribe

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _commit(self) -> None:
        """Hook invoked under the lock after every mutation."""

    def _notify(self, collection: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(collection, []))
        if not listeners:
            return
        snapshot = self.list_documents(collection)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                LOGGER.exception("Snapshot listener for %s failed", collection)


_MISSING = object()


def _lookup(data: Mapping[str, Any], dotted: str) -> Any:
    current: Any = data
    for segment in dotted.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return _MISSING
        current = current[segment]
    return current


__all__ = ["MemoryObjectStore", "MemoryMetadataStore"]

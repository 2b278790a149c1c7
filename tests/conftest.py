"""Shared fixtures for rman tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

import pytest

from rman import paths
from rman.actors import Actor
from rman.manager import FileManager
from rman.operations import BulkOperationEngine
from rman.state import FileCatalog, FileEntry
from rman.stores import MemoryMetadataStore, MemoryObjectStore


@pytest.fixture()
def objects() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture()
def metadata() -> MemoryMetadataStore:
    return MemoryMetadataStore()


@pytest.fixture()
def catalog(metadata: MemoryMetadataStore) -> FileCatalog:
    return FileCatalog(metadata)


@pytest.fixture()
def engine(objects: MemoryObjectStore, catalog: FileCatalog) -> BulkOperationEngine:
    return BulkOperationEngine(objects, catalog)


@pytest.fixture()
def manager(objects: MemoryObjectStore, metadata: MemoryMetadataStore) -> FileManager:
    return FileManager(objects, metadata)


@pytest.fixture()
def admin() -> Actor:
    return Actor(id="root-admin", role="admin")


@pytest.fixture()
def member() -> Actor:
    return Actor(id="member", role="user")


@pytest.fixture()
def viewer() -> Actor:
    return Actor(id="guest", role="viewer")


def put_file(
    objects: MemoryObjectStore,
    catalog: Optional[FileCatalog],
    key: str,
    data: bytes = b"content",
    *,
    tags: Optional[Dict[str, str]] = None,
    content_type: str = "text/plain",
) -> Optional[str]:
    """Store an object and, when a catalog is given, its metadata document.

    Returns:
        Optional[str]: The metadata document id, if one was written.
    """
    objects.put_bytes(key, data, content_type)
    if catalog is None:
        return None
    parent, name = paths.split_object_key(key)
    entry = FileEntry(
        id=key,
        name=name,
        parent_path=parent,
        object_key=key,
        size=len(data),
        content_type=content_type,
        uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        uploaded_by="seed",
        tags=dict(tags or {}),
    )
    return catalog.create(entry)

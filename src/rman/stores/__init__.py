"""Object store and metadata store collaborators."""

from .base import Document, Listing, MetadataStore, ObjectMetadata, ObjectStore
from .local import JsonMetadataStore, LocalObjectStore, open_local_stores
from .memory import MemoryMetadataStore, MemoryObjectStore

FILES_COLLECTION = "files"
REQUESTS_COLLECTION = "requests"
USERS_COLLECTION = "users"
FOLDER_LABELS_COLLECTION = "folders_meta"


def user_collection(user_id: str, name: str) -> str:
    """Return the path of a per-user sub-collection such as favorites."""
    return f"{USERS_COLLECTION}/{user_id}/{name}"


__all__ = [
    "Document",
    "Listing",
    "MetadataStore",
    "ObjectMetadata",
    "ObjectStore",
    "JsonMetadataStore",
    "LocalObjectStore",
    "open_local_stores",
    "MemoryMetadataStore",
    "MemoryObjectStore",
    "FILES_COLLECTION",
    "REQUESTS_COLLECTION",
    "USERS_COLLECTION",
    "FOLDER_LABELS_COLLECTION",
    "user_collection",
]

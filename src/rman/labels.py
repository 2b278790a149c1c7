"""Folder labels (tags and a color) and per-user favorite folders."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Set, Union
from urllib.parse import quote

from pydantic import BaseModel, Field

from rman import paths
from rman.stores import FOLDER_LABELS_COLLECTION, Document, MetadataStore, user_collection

LOGGER = logging.getLogger(__name__)

DEFAULT_COLOR = "#4b5563"
FAVORITES = "favorites"


def encode_path_id(path: str) -> str:
    """Return a document id for ``path`` that contains no slashes."""
    return quote(path, safe="!*'()")


class FolderLabel(BaseModel):
    """Tags and a display color attached to one folder."""

    path: str
    tags: List[str] = Field(default_factory=list)
    color: str = DEFAULT_COLOR

    @property
    def empty(self) -> bool:
        """Return True once the label was cleared."""
        return not self.tags and not self.color


class LabelStore:
    """Read and write folder labels and favorites.

    Call :meth:`start` to keep :attr:`label_map` and :attr:`favorite_map`
    current from store subscriptions; without it every read queries the
    store.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        *,
        collection: str = FOLDER_LABELS_COLLECTION,
        root: str = paths.ROOT_PATH,
    ) -> None:
        self._metadata = metadata
        self._collection = collection
        self._root = paths.normalize("", root)
        self._lock = threading.Lock()
        self.label_map: Dict[str, FolderLabel] = {}
        self.favorite_map: Dict[str, Set[str]] = {}
        self._subscriptions: List[Callable[[], None]] = []

    # ------------------------------------------------------------------ #
    # Labels                                                             #
    # ------------------------------------------------------------------ #

    def set_label(
        self, path: str, tags: Union[str, Iterable[str]], color: Optional[str] = None
    ) -> FolderLabel:
        """Attach tags and a color to a folder.

        ``tags`` may be a comma separated string.
        """

        folder = paths.normalize(path, self._root)
        raw = tags.split(",") if isinstance(tags, str) else list(tags)
        label = FolderLabel(
            path=folder,
            tags=[tag.strip() for tag in raw if tag and tag.strip()],
            color=color or DEFAULT_COLOR,
        )
        self._metadata.set_document(
            self._collection, encode_path_id(folder), label.model_dump(), merge=True
        )
        LOGGER.debug("Labeled %s with %s", folder, label.tags)
        return label

    def clear_label(self, path: str) -> None:
        """Remove the tags and color of a folder."""
        folder = paths.normalize(path, self._root)
        self._metadata.set_document(
            self._collection,
            encode_path_id(folder),
            {"path": folder, "tags": [], "color": ""},
            merge=True,
        )

    def labels(self) -> Dict[str, FolderLabel]:
        """Return non-empty labels keyed by folder path."""
        if self._subscriptions:
            with self._lock:
                return dict(self.label_map)
        return _labels_from(self._metadata.list_documents(self._collection))

    def label_for(self, path: str) -> Optional[FolderLabel]:
        """Return the label of one folder, if any."""
        return self.labels().get(paths.normalize(path, self._root))

    # ------------------------------------------------------------------ #
    # Favorites                                                          #
    # ------------------------------------------------------------------ #

    def toggle_favorite(self, user_id: str, path: str) -> bool:
        """Flip the favorite flag of a folder.

        Returns:
            bool: True when the folder is now a favorite.
        """

        folder = paths.normalize(path, self._root)
        collection = user_collection(user_id, FAVORITES)
        if folder in self.favorites(user_id):
            self._metadata.delete_document(collection, encode_path_id(folder))
            return False
        self._metadata.set_document(
            collection,
            encode_path_id(folder),
            {"kind": "folder", "path": folder, "addedAt": int(time.time() * 1000)},
        )
        return True

    def favorites(self, user_id: str) -> Set[str]:
        """Return the favorite folder paths of ``user_id``."""
        with self._lock:
            cached = self.favorite_map.get(user_id)
        if cached is not None:
            return set(cached)
        documents = self._metadata.list_documents(user_collection(user_id, FAVORITES))
        return _favorites_from(documents)

    # ------------------------------------------------------------------ #
    # Live maps                                                          #
    # ------------------------------------------------------------------ #

    def start(self, user_id: Optional[str] = None) -> None:
        """Subscribe to label changes and, when given, a user's favorites."""

        def _on_labels(documents: List[Document]) -> None:
            with self._lock:
                self.label_map = _labels_from(documents)

        self._subscriptions.append(
            self._metadata.subscribe_collection(self._collection, _on_labels)
        )
        if user_id is not None:

            def _on_favorites(documents: List[Document]) -> None:
                with self._lock:
                    self.favorite_map[user_id] = _favorites_from(documents)

            self._subscriptions.append(
                self._metadata.subscribe_collection(
                    user_collection(user_id, FAVORITES), _on_favorites
                )
            )

    def stop(self) -> None:
        """Drop every subscription and the cached maps."""
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []
        with self._lock:
            self.label_map = {}
            self.favorite_map = {}


def _labels_from(documents: Iterable[Document]) -> Dict[str, FolderLabel]:
    labels: Dict[str, FolderLabel] = {}
    for document in documents:
        path = document.data.get("path")
        if not path:
            continue
        raw_tags = document.data.get("tags")
        label = FolderLabel(
            path=str(path),
            tags=[str(tag) for tag in raw_tags] if isinstance(raw_tags, list) else [],
            color=str(document.data.get("color") or ""),
        )
        if not label.empty:
            labels[label.path] = label
    return labels


def _favorites_from(documents: Iterable[Document]) -> Set[str]:
    return {str(document.data["path"]) for document in documents if document.data.get("path")}


__all__ = ["DEFAULT_COLOR", "FAVORITES", "FolderLabel", "LabelStore", "encode_path_id"]

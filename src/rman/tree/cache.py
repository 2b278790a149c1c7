"""Lazily materialized folder tree built from flat prefix listings."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, Optional

from rman import paths
from rman.errors import ListingError
from rman.state.models import FileEntry
from rman.stores import Listing, ObjectStore

from .models import DeepListing, NodeState, TreeNode

LOGGER = logging.getLogger(__name__)

PLACEHOLDER_NAMES = frozenset({".keep", ".folder-placeholder"})


class TreeCache:
    """In-memory folder hierarchy sourced from an object store.

    Each node starts Unmaterialized (path known, children unknown). A single
    prefix listing materializes it: direct subfolders become Unmaterialized
    child nodes and, when ``include_files`` is set, direct objects become
    file stubs. The store never announces folder creation or deletion, so the
    cache only changes through explicit loads, refreshes, and invalidations.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        root: str = paths.ROOT_PATH,
        include_files: bool = True,
        placeholder_names: Iterable[str] = PLACEHOLDER_NAMES,
    ) -> None:
        self._store = store
        self._root = paths.normalize("", root)
        self._include_files = include_files
        self._placeholders = frozenset(placeholder_names)
        self._nodes: Dict[str, TreeNode] = {self._root: TreeNode(path=self._root)}

    @property
    def root(self) -> TreeNode:
        """Return the root node."""
        return self._nodes[self._root]

    def get(self, path: str) -> Optional[TreeNode]:
        """Return the cached node for ``path`` without touching the store."""
        return self._nodes.get(self._normalize(path))

    def load_children(self, path: str) -> TreeNode:
        """Materialize ``path`` with one listing; never recurses.

        Children that were already cached and still exist keep their own
        materialization, so repeated loads refresh incrementally.

        Args:
            path: Folder path to list.

        Returns:
            TreeNode: The materialized node.

        Raises:
            ListingError: If the store listing fails; the node stays Unmaterialized.
        """

        node = self._ensure_node(self._normalize(path))
        try:
            listing = self._store.list_children(paths.to_object_key_prefix(node.path))
        except Exception as exc:
            self.invalidate(node.path)
            node.error = str(exc) or type(exc).__name__
            LOGGER.warning("Listing %s failed: %s", node.path, node.error)
            raise ListingError(f"Unable to list {node.path}: {node.error}") from exc

        self._apply_listing(node, listing)
        return node

    def expand(self, path: str) -> TreeNode:
        """Materialize every ancestor from the root down, then ``path`` itself.

        Args:
            path: Folder path to expand.

        Returns:
            TreeNode: The materialized node for ``path``.
        """

        target = self._normalize(path)
        current = self._root
        for segment in target[len(self._root) :].strip("/").split("/"):
            node = self._ensure_node(current)
            if not node.materialized:
                self.load_children(current)
            if not segment:
                break
            current = f"{current}{segment}/"
        node = self._ensure_node(target)
        if not node.materialized:
            self.load_children(target)
        return node

    def refresh(self, path: str) -> TreeNode:
        """Discard the cached children of ``path`` and list it again."""
        self.invalidate(path)
        return self.load_children(path)

    def invalidate(self, path: str) -> None:
        """Return ``path`` to Unmaterialized and forget everything below it."""
        normalized = self._normalize(path)
        node = self._nodes.get(normalized)
        if node is None:
            return
        self._forget_descendants(normalized)
        node.children = {}
        node.files = []
        node.direct_file_count = 0
        node.direct_folder_count = 0
        node.has_placeholder = False
        node.state = NodeState.UNMATERIALIZED

    def refresh_if_cached(self, path: str) -> None:
        """Refresh ``path`` only when it is currently materialized."""
        node = self.get(path)
        if node is not None and node.materialized:
            self.refresh(path)

    def forget(self, path: str) -> None:
        """Drop ``path`` and its subtree, e.g. after the folder was deleted."""
        normalized = self._normalize(path)
        if normalized == self._root:
            self.invalidate(normalized)
            return
        self._forget_descendants(normalized)
        self._nodes.pop(normalized, None)
        parent = self._nodes.get(paths.parent_of(normalized, self._root))
        if parent is not None:
            parent.children.pop(paths.folder_name(normalized), None)

    def walk_materialized(self) -> Iterator[TreeNode]:
        """Yield materialized nodes depth-first from the root."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            if not node.materialized:
                continue
            yield node
            stack.extend(reversed(list(node.children.values())))

    def deep_listing(self, path: str) -> DeepListing:
        """Materialize the whole subtree under ``path`` and collect its files.

        Args:
            path: Folder to walk.

        Returns:
            DeepListing: Files with their parent paths and direct counts per folder.
        """

        start = self._normalize(path)
        result = DeepListing(root=start)
        pending = [start]
        while pending:
            current = pending.pop(0)
            node = self.load_children(current)
            result.folders.append(current)
            result.counts[current] = (node.direct_file_count, node.direct_folder_count)
            if self._include_files:
                result.files.extend(node.files)
            else:
                listing = self._store.list_children(paths.to_object_key_prefix(current))
                result.files.extend(self._file_stubs(listing))
            pending.extend(child.path for child in node.children.values())
        return result

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _normalize(self, path: str) -> str:
        return paths.normalize(path, self._root)

    def _ensure_node(self, path: str) -> TreeNode:
        node = self._nodes.get(path)
        if node is not None:
            return node
        node = TreeNode(path=path)
        self._nodes[path] = node
        parent = self._nodes.get(paths.parent_of(path, self._root))
        if parent is not None and parent is not node:
            parent.children.setdefault(node.name, node)
        return node

    def _apply_listing(self, node: TreeNode, listing: Listing) -> None:
        previous = node.children
        children: Dict[str, TreeNode] = {}
        for prefix in listing.prefixes:
            child_path = paths.from_object_key_prefix(prefix, self._root)
            name = paths.folder_name(child_path)
            child = previous.get(name) or self._nodes.get(child_path) or TreeNode(path=child_path)
            children[name] = child
            self._nodes[child_path] = child

        for name, stale in previous.items():
            if name not in children:
                self._forget_descendants(stale.path)
                self._nodes.pop(stale.path, None)

        node.children = children
        node.has_placeholder = any(
            key.rsplit("/", 1)[-1] in self._placeholders for key in listing.keys
        )
        stubs = self._file_stubs(listing)
        node.files = stubs if self._include_files else []
        node.direct_file_count = len(stubs)
        node.direct_folder_count = len(children)
        node.error = None
        node.state = NodeState.MATERIALIZED

    def _file_stubs(self, listing: Listing) -> list[FileEntry]:
        return [
            FileEntry.from_object_key(key, root=self._root)
            for key in listing.keys
            if key.rsplit("/", 1)[-1] not in self._placeholders
        ]

    def _forget_descendants(self, path: str) -> None:
        for cached in [candidate for candidate in self._nodes if candidate.startswith(path)]:
            if cached != path:
                del self._nodes[cached]


__all__ = ["TreeCache", "PLACEHOLDER_NAMES"]

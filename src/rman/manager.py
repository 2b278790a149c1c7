"""Facade wiring the stores, tree, operations, uploads, requests, and search."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from rman import paths
from rman.actors import Actor
from rman.config.models import RmanConfig
from rman.errors import NotFoundError, PermissionDeniedError
from rman.events import Notifier
from rman.labels import LabelStore
from rman.operations import (
    BulkOperationEngine,
    BulkResult,
    FolderDetails,
    OverwritePolicy,
    Selection,
)
from rman.requests import ActionResult, RequestWorkflow, TargetType
from rman.search import SearchQuery, SearchResult, TagSearchEngine
from rman.state import FileCatalog, FileEntry
from rman.stores import MetadataStore, ObjectStore, open_local_stores
from rman.tree import PLACEHOLDER_NAMES, DeepListing, TreeCache, TreeNode
from rman.uploads import (
    BatchResult,
    OptimizationMode,
    ProgressCallback,
    UploadSession,
    UploadSource,
)

LOGGER = logging.getLogger(__name__)


class FileManager:
    """Role-aware entry point used by the CLI and by embedding code.

    Every mutation refreshes the affected folders in the tree cache, bumps
    the notifier's refresh trigger, and posts a notice describing the result.
    """

    def __init__(
        self,
        objects: ObjectStore,
        metadata: MetadataStore,
        *,
        config: Optional[RmanConfig] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.config = config or RmanConfig()
        storage = self.config.storage
        self.root = paths.normalize("", storage.root_path)
        self.objects = objects
        self.metadata = metadata
        self.notifier = notifier or Notifier()
        self.catalog = FileCatalog(metadata, root=self.root)
        self.tree = TreeCache(
            objects,
            root=self.root,
            include_files=storage.include_files,
            placeholder_names=PLACEHOLDER_NAMES | {storage.placeholder_name},
        )
        self.engine = BulkOperationEngine(
            objects,
            self.catalog,
            root=self.root,
            placeholder_name=storage.placeholder_name,
            placeholder_names=tuple(PLACEHOLDER_NAMES),
        )
        self.requests = RequestWorkflow(metadata, self.engine, self.catalog, root=self.root)
        self.search_engine = TagSearchEngine(metadata, settings=self.config.search, root=self.root)
        self.labels = LabelStore(metadata, root=self.root)

    @classmethod
    def open_local(
        cls, config: RmanConfig, *, notifier: Optional[Notifier] = None
    ) -> "FileManager":
        """Open the on-disk backends under ``config.storage.data_dir``."""
        data_dir = Path(config.storage.data_dir).expanduser()
        objects, metadata = open_local_stores(data_dir)
        LOGGER.debug("Opened local stores under %s", data_dir)
        return cls(objects, metadata, config=config, notifier=notifier)

    def normalize(self, path: object) -> str:
        """Return the canonical folder path for user input."""
        return paths.normalize(path, self.root)

    # ------------------------------------------------------------------ #
    # Browsing                                                           #
    # ------------------------------------------------------------------ #

    def expand(self, path: str) -> TreeNode:
        """Materialize ``path`` and its ancestors."""
        return self.tree.expand(path)

    def refresh(self, path: str) -> TreeNode:
        """Reload ``path`` from the store."""
        return self.tree.refresh(path)

    def deep_listing(self, path: str) -> DeepListing:
        """Return every file below ``path``."""
        return self.tree.deep_listing(path)

    def folder_details(self, path: str) -> FolderDetails:
        """Return direct counts for ``path``."""
        return self.engine.folder_details(path)

    def entries(self, path: str) -> List[FileEntry]:
        """Return the direct files of ``path`` enriched with their metadata documents."""
        node = self.tree.refresh(path)
        documents: Dict[str, FileEntry] = {}
        for entry in node.files:
            matches = self.catalog.find_by_key(entry.object_key)
            documents[entry.object_key] = matches[0] if matches else entry
        return [documents[entry.object_key] for entry in node.files]

    # ------------------------------------------------------------------ #
    # Mutations                                                          #
    # ------------------------------------------------------------------ #

    def create_folder(self, actor: Actor, parent: str, name: str) -> str:
        """Create a folder below ``parent``."""
        self._require_writer(actor)
        folder = self.engine.create_folder(parent, name)
        self._changed(paths.parent_of(folder, self.root))
        self.notifier.notify("success", f"Created folder {folder}")
        return folder

    def upload(
        self,
        actor: Actor,
        sources: Iterable[UploadSource],
        target: str,
        *,
        mode: Optional[OptimizationMode] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Upload ``sources`` into ``target`` and wait for the batch."""
        with self.upload_session(progress_callback) as session:
            result = session.upload(sources, target, actor, mode=mode)
        self._changed(target)
        self.notifier.notify("success" if result.errors == 0 else "warning", result.message)
        return result

    def upload_session(self, progress_callback: Optional[ProgressCallback] = None) -> UploadSession:
        """Return a new session for callers that control tasks individually."""
        return UploadSession(
            self.objects,
            self.catalog,
            self.engine,
            settings=self.config.uploads,
            root=self.root,
            progress_callback=progress_callback,
        )

    def copy(
        self,
        actor: Actor,
        selection: Selection,
        destination: str,
        *,
        policy: Optional[OverwritePolicy] = None,
        nest_folders: bool = False,
    ) -> BulkResult:
        """Copy a selection into ``destination``."""
        self._require_writer(actor)
        result = self.engine.copy(
            selection,
            destination,
            policy=policy or self.config.operations.overwrite_policy,
            nest_folders=nest_folders,
        )
        self._changed(destination)
        self._report(result)
        return result

    def move(
        self,
        actor: Actor,
        selection: Selection,
        destination: str,
        *,
        policy: Optional[OverwritePolicy] = None,
        nest_folders: bool = False,
    ) -> BulkResult:
        """Move a selection into ``destination``."""
        self._require_writer(actor)
        result = self.engine.move(
            selection,
            destination,
            policy=policy or self.config.operations.overwrite_policy,
            nest_folders=nest_folders,
        )
        self._changed(destination)
        for key in selection.files:
            self._changed(paths.split_object_key(key, self.root)[0])
        for folder in selection.folders:
            self._changed(folder)
        self._report(result)
        return result

    def delete(self, actor: Actor, selection: Selection) -> ActionResult:
        """Delete a selection, or request deletion for non-admins."""
        self._require_writer(actor)
        if not actor.privileged:
            targets: List[tuple[Union[str, FileEntry], TargetType]] = [
                (key, "file") for key in selection.files
            ]
            targets.extend((folder, "folder") for folder in selection.folders)
            submitted = [self.requests.submit_delete(actor, item, kind) for item, kind in targets]
            message = f"{len(submitted)} delete request(s) submitted for admin review."
            self.notifier.notify("info", message)
            return ActionResult(executed=False, message=message, requests=submitted)

        result = self.engine.delete(selection)
        for key in selection.files:
            self._changed(paths.split_object_key(key, self.root)[0])
        for folder in selection.folders:
            self.tree.forget(folder)
            self._changed(paths.parent_of(folder, self.root))
        self._report(result)
        return ActionResult(executed=True, message=result.summary(), result=result)

    def rename(self, actor: Actor, target: Union[str, FileEntry], new_name: str) -> ActionResult:
        """Rename a file, or request the rename for non-admins."""
        self._require_writer(actor)
        outcome = self.requests.rename(actor, target, new_name)
        if outcome.executed and outcome.object_key:
            self._changed(paths.split_object_key(outcome.object_key, self.root)[0])
        self.notifier.notify("success" if outcome.executed else "info", outcome.message)
        return outcome

    def rename_folder(self, actor: Actor, path: str, new_name: str) -> str:
        """Rename a folder and return its new path."""
        self._require_writer(actor)
        new_path, result = self.engine.rename_folder(path, new_name)
        self.tree.forget(path)
        self._changed(paths.parent_of(new_path, self.root))
        self._report(result)
        return new_path

    def set_tags(
        self, actor: Actor, key: str, tags: Dict[str, str], *, merge: bool = True
    ) -> FileEntry:
        """Update the tags of the file stored at ``key``.

        Raises:
            NotFoundError: If no metadata document references ``key``.
        """

        self._require_writer(actor)
        matches = self.catalog.find_by_key(key)
        if not matches:
            raise NotFoundError(f"No metadata document found for {key}")
        entry = matches[0]
        updated = {**entry.tags, **tags} if merge else dict(tags)
        self.catalog.set_tags(entry.id, {name: value for name, value in updated.items() if value})
        self.notifier.bump(entry.parent_path)
        return self.catalog.get(entry.id)

    def run_search(self, query: SearchQuery) -> SearchResult:
        """Run a tag search, posting the index hint as a notice when present."""
        result = self.search_engine.search(query)
        if result.hint:
            self.notifier.notify("info", result.hint)
        return result

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _require_writer(self, actor: Actor) -> None:
        if not actor.can_upload:
            raise PermissionDeniedError(f"{actor.id} has read-only access.")

    def _changed(self, path: str) -> None:
        folder = paths.normalize(path, self.root)
        self.tree.refresh_if_cached(folder)
        self.notifier.bump(folder)

    def _report(self, result: BulkResult) -> None:
        level = "warning" if result.partial_failure else "success"
        self.notifier.notify(level, result.summary())


__all__ = ["FileManager"]

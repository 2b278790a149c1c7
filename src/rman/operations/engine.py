"""Copy, move, delete, and rename on a store without native folders."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from rman import paths
from rman.errors import ConflictError, InvalidDestinationError, NotFoundError
from rman.state import FileCatalog
from rman.stores import ObjectStore

from .models import (
    BulkResult,
    FolderDetails,
    OperationKind,
    OperationOutcome,
    OutcomeStatus,
    OverwritePolicy,
    Selection,
)

LOGGER = logging.getLogger(__name__)

PLACEHOLDER_CONTENT_TYPE = "application/x-empty"


class BulkOperationEngine:
    """Apply file and folder operations object by object.

    Folder operations expand into one step per object found by walking the
    source prefix. Steps run sequentially and a failed step is recorded
    without stopping the rest of the batch.
    """

    def __init__(
        self,
        store: ObjectStore,
        catalog: FileCatalog,
        *,
        root: str = paths.ROOT_PATH,
        placeholder_name: str = ".keep",
        placeholder_names: Tuple[str, ...] = (".keep", ".folder-placeholder"),
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._root = paths.normalize("", root)
        self._placeholder_name = placeholder_name
        self._placeholders = frozenset(placeholder_names) | {placeholder_name}

    @property
    def root(self) -> str:
        """Return the root folder path."""
        return self._root

    # ------------------------------------------------------------------ #
    # Bulk entry points                                                  #
    # ------------------------------------------------------------------ #

    def copy(
        self,
        selection: Selection,
        destination: str,
        *,
        policy: OverwritePolicy = "skip",
        nest_folders: bool = False,
    ) -> BulkResult:
        """Copy every selected file and folder into ``destination``.

        Args:
            selection: Files (object keys) and folders to copy.
            destination: Target folder path.
            policy: Whether existing destination objects are skipped or replaced.
            nest_folders: Place each folder under ``destination/<name>/``
                instead of merging its contents into ``destination``.

        Returns:
            BulkResult: Per-object outcomes.

        Raises:
            InvalidDestinationError: If a selected folder contains ``destination``.
        """

        return self._transfer(selection, destination, policy, nest_folders, remove_source=False)

    def move(
        self,
        selection: Selection,
        destination: str,
        *,
        policy: OverwritePolicy = "skip",
        nest_folders: bool = False,
    ) -> BulkResult:
        """Move every selected file and folder into ``destination``.

        Sources are deleted only after their destination write succeeded;
        skipped objects stay where they are.
        """

        return self._transfer(selection, destination, policy, nest_folders, remove_source=True)

    def delete(self, selection: Selection) -> BulkResult:
        """Delete every selected file and folder, recording each object."""

        result = BulkResult(operation="delete")
        for folder in selection.folders:
            self._guard_not_root(folder, "delete")
        for key in selection.files:
            result.record(self._delete_step(key))
        for folder in selection.folders:
            result.extend(self.delete_folder(folder))
        LOGGER.info(result.summary())
        return result

    # ------------------------------------------------------------------ #
    # Single item operations                                             #
    # ------------------------------------------------------------------ #

    def copy_file(
        self, key: str, destination: str, *, policy: OverwritePolicy = "skip"
    ) -> OperationOutcome:
        """Copy one object into ``destination`` keeping its name."""
        _, name = paths.split_object_key(key, self._root)
        target = paths.object_key_for(destination, name, self._root)
        return self._transfer_step("copy", key, target, policy, remove_source=False)

    def move_file(
        self, key: str, destination: str, *, policy: OverwritePolicy = "skip"
    ) -> OperationOutcome:
        """Move one object into ``destination`` keeping its name."""
        _, name = paths.split_object_key(key, self._root)
        target = paths.object_key_for(destination, name, self._root)
        return self._transfer_step("move", key, target, policy, remove_source=True)

    def copy_folder(
        self, source: str, destination: str, *, policy: OverwritePolicy = "skip"
    ) -> BulkResult:
        """Copy the contents of ``source`` into ``destination`` recursively.

        Raises:
            InvalidDestinationError: If ``destination`` equals or sits inside ``source``.
        """

        result = BulkResult(operation="copy")
        self._walk_transfer(source, destination, policy, False, result)
        return result

    def move_folder(
        self, source: str, destination: str, *, policy: OverwritePolicy = "skip"
    ) -> BulkResult:
        """Move the contents of ``source`` into ``destination`` recursively."""

        self._guard_not_root(source, "move")
        result = BulkResult(operation="move")
        self._walk_transfer(source, destination, policy, True, result)
        return result

    def delete_file(self, key: str) -> None:
        """Delete an object and every metadata document referencing it.

        A missing object counts as deleted. Other failures propagate.
        """

        try:
            self._store.delete_object(key)
        except NotFoundError:
            LOGGER.debug("Object %s already absent", key)
        removed = self._catalog.delete_for_key(key)
        LOGGER.debug("Deleted %s and %d metadata document(s)", key, removed)

    def delete_folder(self, path: str) -> BulkResult:
        """Delete every object below ``path``, placeholders included.

        Raises:
            InvalidDestinationError: If ``path`` is the root folder.
        """

        folder = self._guard_not_root(path, "delete")
        result = BulkResult(operation="delete")
        pending = [folder]
        while pending:
            current = pending.pop(0)
            try:
                listing = self._store.list_children(paths.to_object_key_prefix(current))
            except Exception as exc:
                LOGGER.warning("Listing %s failed during delete: %s", current, exc)
                result.record(_failed("delete", current, None, exc))
                continue
            for key in listing.keys:
                result.record(self._delete_step(key))
            pending.extend(
                paths.from_object_key_prefix(prefix, self._root) for prefix in listing.prefixes
            )
        return result

    def folder_details(self, path: str) -> FolderDetails:
        """Return the direct file and subfolder counts of ``path``."""
        folder = paths.normalize(path, self._root)
        listing = self._store.list_children(paths.to_object_key_prefix(folder))
        placeholders = [key for key in listing.keys if self._is_placeholder(key)]
        return FolderDetails(
            path=folder,
            files=len(listing.keys) - len(placeholders),
            folders=len(listing.prefixes),
            has_placeholder=bool(placeholders),
        )

    def ensure_unique_path(self, folder: str, name: str) -> str:
        """Return ``name`` or the first ``stem (n).ext`` variant free in ``folder``.

        The check and the later write are not atomic; two concurrent writers
        may still pick the same name.
        """

        directory, _, base = name.replace("\\", "/").rpartition("/")
        stem, extension = _split_extension(base)
        candidate = base
        counter = 0
        while self._exists(paths.object_key_for(folder, _join(directory, candidate), self._root)):
            counter += 1
            candidate = f"{stem} ({counter}){extension}"
        return _join(directory, candidate)

    def create_folder(self, parent: str, name: str) -> str:
        """Create ``parent/name/`` by writing its placeholder object.

        Returns:
            str: Normalized path of the new folder.

        Raises:
            InvalidDestinationError: If ``name`` is empty after normalization.
        """

        cleaned = paths.folder_name(name)
        if not cleaned:
            raise InvalidDestinationError("Folder name must not be empty.")
        folder = paths.join(parent, cleaned, self._root)
        self._write_placeholder(folder)
        LOGGER.info("Created folder %s", folder)
        return folder

    def create_file(self, folder: str, name: str, data: bytes = b"") -> str:
        """Create a file in ``folder`` and return its object key.

        Raises:
            ConflictError: If an object with that name already exists.
        """

        key = paths.object_key_for(folder, name, self._root)
        if self._exists(key):
            raise ConflictError(f"{key} already exists.")
        self._store.put_bytes(key, data, "text/plain")
        LOGGER.info("Created file %s", key)
        return key

    def rename_file(self, key: str, new_name: str, *, overwrite: bool = False) -> str:
        """Rename an object within its folder by copying then deleting it.

        Returns:
            str: The new object key.

        Raises:
            ConflictError: If the target name is taken and ``overwrite`` is False.
            InvalidDestinationError: If ``new_name`` is empty.
        """

        cleaned = paths.folder_name(new_name)
        if not cleaned:
            raise InvalidDestinationError("File name must not be empty.")
        parent, _ = paths.split_object_key(key, self._root)
        target = paths.object_key_for(parent, cleaned, self._root)
        if target == key:
            return key
        if self._exists(target) and not overwrite:
            raise ConflictError(f"{target} already exists.")
        self._copy_object(key, target)
        self._store.delete_object(key)
        self._catalog.repoint(key, target)
        LOGGER.info("Renamed %s to %s", key, target)
        return target

    def rename_folder(self, path: str, new_name: str) -> Tuple[str, BulkResult]:
        """Rename a folder by moving its contents to a sibling path.

        Returns:
            Tuple[str, BulkResult]: The new folder path and the move outcomes.

        Raises:
            ConflictError: If a non-empty sibling with ``new_name`` exists.
            InvalidDestinationError: For the root folder or an empty name.
        """

        source = self._guard_not_root(path, "rename")
        cleaned = paths.folder_name(new_name)
        if not cleaned:
            raise InvalidDestinationError("Folder name must not be empty.")
        target = paths.join(paths.parent_of(source, self._root), cleaned, self._root)
        if target == source:
            return source, BulkResult(operation="rename")
        existing = self._store.list_children(paths.to_object_key_prefix(target))
        if existing.keys or existing.prefixes:
            raise ConflictError(f"{target} already exists.")

        result = BulkResult(operation="rename")
        self._walk_transfer(source, target, "skip", True, result, kind="rename")
        self._write_placeholder(target)
        LOGGER.info("Renamed folder %s to %s", source, target)
        return target, result

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _transfer(
        self,
        selection: Selection,
        destination: str,
        policy: OverwritePolicy,
        nest_folders: bool,
        remove_source: bool,
    ) -> BulkResult:
        kind: OperationKind = "move" if remove_source else "copy"
        target_root = paths.normalize(destination, self._root)
        plans = []
        for folder in selection.folders:
            source = paths.normalize(folder, self._root)
            if remove_source:
                self._guard_not_root(source, kind)
            target = (
                paths.join(target_root, paths.folder_name(source), self._root)
                if nest_folders
                else target_root
            )
            self._guard_containment(source, target, kind)
            plans.append((source, target))

        result = BulkResult(operation=kind)
        for key in selection.files:
            _, name = paths.split_object_key(key, self._root)
            target_key = paths.object_key_for(target_root, name, self._root)
            result.record(self._transfer_step(kind, key, target_key, policy, remove_source))
        for source, target in plans:
            self._walk_transfer(source, target, policy, remove_source, result)
        LOGGER.info(result.summary())
        return result

    def _walk_transfer(
        self,
        source: str,
        destination: str,
        policy: OverwritePolicy,
        remove_source: bool,
        result: BulkResult,
        *,
        kind: Optional[OperationKind] = None,
    ) -> None:
        operation: OperationKind = kind or ("move" if remove_source else "copy")
        start = paths.normalize(source, self._root)
        target_root = paths.normalize(destination, self._root)
        self._guard_containment(start, target_root, operation)

        pending = [(start, target_root)]
        while pending:
            current, target = pending.pop(0)
            prefix = paths.to_object_key_prefix(current)
            try:
                listing = self._store.list_children(prefix)
            except Exception as exc:
                LOGGER.warning("Listing %s failed during %s: %s", current, operation, exc)
                result.record(_failed(operation, current, target, exc))
                continue
            for key in listing.keys:
                relative = paths.relative_to(key, prefix)
                target_key = paths.object_key_for(target, relative, self._root)
                result.record(
                    self._transfer_step(operation, key, target_key, policy, remove_source)
                )
            for child in listing.prefixes:
                name = paths.relative_to(child, prefix)
                pending.append(
                    (
                        paths.from_object_key_prefix(child, self._root),
                        paths.join(target, name, self._root),
                    )
                )

    def _transfer_step(
        self,
        operation: OperationKind,
        key: str,
        target_key: str,
        policy: OverwritePolicy,
        remove_source: bool,
    ) -> OperationOutcome:
        placeholder = self._is_placeholder(key)
        status: OutcomeStatus
        try:
            if target_key == key:
                status = "skipped"
            elif policy == "skip" and self._exists(target_key):
                LOGGER.debug("Skipping %s; %s exists", key, target_key)
                status = "skipped"
            else:
                self._copy_object(key, target_key)
                if remove_source:
                    self._store.delete_object(key)
                    if not placeholder:
                        self._repoint(key, target_key)
                status = "succeeded"
        except Exception as exc:
            LOGGER.warning("%s of %s failed: %s", operation.capitalize(), key, exc)
            return _failed(operation, key, target_key, exc, placeholder=placeholder)
        return OperationOutcome(
            operation=operation,
            source=key,
            destination=target_key,
            status=status,
            placeholder=placeholder,
        )

    def _delete_step(self, key: str) -> OperationOutcome:
        placeholder = self._is_placeholder(key)
        try:
            if placeholder:
                self._store.delete_object(key)
            else:
                self.delete_file(key)
        except Exception as exc:
            LOGGER.warning("Delete of %s failed: %s", key, exc)
            return _failed("delete", key, None, exc, placeholder=placeholder)
        return OperationOutcome(
            operation="delete", source=key, status="succeeded", placeholder=placeholder
        )

    def _copy_object(self, key: str, target_key: str) -> None:
        metadata = self._store.get_metadata(key)
        data = self._store.get_bytes(key)
        self._store.put_bytes(
            target_key, data, metadata.content_type, metadata.custom_metadata or None
        )

    def _repoint(self, key: str, target_key: str) -> None:
        try:
            replaced = self._catalog.delete_for_key(target_key)
            if replaced:
                LOGGER.debug("Dropped %d document(s) of overwritten %s", replaced, target_key)
            self._catalog.repoint(key, target_key)
        except Exception as exc:
            LOGGER.warning("Metadata for %s was not updated after move: %s", key, exc)

    def _write_placeholder(self, folder: str) -> None:
        key = paths.object_key_for(folder, self._placeholder_name, self._root)
        self._store.put_bytes(key, b"", PLACEHOLDER_CONTENT_TYPE)

    def _exists(self, key: str) -> bool:
        try:
            self._store.get_metadata(key)
        except NotFoundError:
            return False
        return True

    def _is_placeholder(self, key: str) -> bool:
        return key.rsplit("/", 1)[-1] in self._placeholders

    def _guard_not_root(self, path: str, operation: str) -> str:
        normalized = paths.normalize(path, self._root)
        if normalized == self._root:
            raise InvalidDestinationError(f"Cannot {operation} the root folder.")
        return normalized

    def _guard_containment(self, source: str, destination: str, operation: str) -> None:
        if paths.is_within(destination, source, self._root):
            raise InvalidDestinationError(
                f"Cannot {operation} {source} into itself or a subfolder ({destination})."
            )


def _failed(
    operation: OperationKind,
    source: str,
    destination: Optional[str],
    exc: Exception,
    *,
    placeholder: bool = False,
) -> OperationOutcome:
    return OperationOutcome(
        operation=operation,
        source=source,
        destination=destination,
        status="failed",
        error=str(exc) or type(exc).__name__,
        placeholder=placeholder,
    )


def _split_extension(name: str) -> Tuple[str, str]:
    stem, dot, extension = name.rpartition(".")
    if not dot or not stem:
        return name, ""
    return stem, f".{extension}"


def _join(directory: str, name: str) -> str:
    return f"{directory}/{name}" if directory else name


__all__ = ["BulkOperationEngine", "PLACEHOLDER_CONTENT_TYPE"]

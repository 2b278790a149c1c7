"""Disk-backed store backends for single-user, command line usage."""

from __future__ import annotations

import json
import mimetypes
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from rman.errors import ConflictError, NotFoundError, StoreError

from .base import Listing, ObjectMetadata
from .memory import MemoryMetadataStore

OBJECTS_DIRNAME = "objects"
SIDECAR_DIRNAME = "meta"
METADATA_FILENAME = "metadata.json"


class LocalObjectStore:
    """Object store that keeps each object as a file below a base directory.

    Keys map to relative paths under ``<base>/objects``. Content types and
    custom metadata live in JSON sidecars under ``<base>/meta`` so listings
    only ever see user objects. Directories left empty by a delete are pruned,
    keeping the store's notion of a "folder" tied to the objects inside it.
    """

    def __init__(self, base_dir: Path) -> None:
        self._base = base_dir.expanduser()
        self._objects = self._base / OBJECTS_DIRNAME
        self._sidecars = self._base / SIDECAR_DIRNAME
        self._objects.mkdir(parents=True, exist_ok=True)
        self._sidecars.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        """Return the directory that holds objects and sidecars."""
        return self._base

    def list_children(self, prefix: str) -> Listing:
        base = prefix.strip("/")
        directory = self._objects / base if base else self._objects
        listing = Listing()
        if not directory.is_dir():
            return listing
        for entry in sorted(directory.iterdir()):
            key = f"{base}/{entry.name}" if base else entry.name
            if entry.is_dir():
                listing.prefixes.append(key)
            elif entry.is_file():
                listing.keys.append(key)
        return listing

    def get_bytes(self, key: str) -> bytes:
        path = self._object_path(key)
        if not path.is_file():
            raise NotFoundError(f"Object not found: {key}")
        return path.read_bytes()

    def put_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        custom_metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        path = self._object_path(key)
        sidecar = self._sidecar_path(key)
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(bytes(data))
                sidecar.parent.mkdir(parents=True, exist_ok=True)
                sidecar.write_text(
                    json.dumps(
                        {
                            "content_type": content_type,
                            "custom_metadata": dict(custom_metadata or {}),
                        }
                    ),
                    encoding="utf-8",
                )
            except (FileExistsError, NotADirectoryError, IsADirectoryError) as exc:
                raise ConflictError(
                    f"Cannot write {key}: an object and a folder would share the same path"
                ) from exc
            except OSError as exc:
                raise StoreError(f"Unable to write {key}: {exc}") from exc

    def delete_object(self, key: str) -> None:
        path = self._object_path(key)
        with self._lock:
            path.unlink(missing_ok=True)
            self._sidecar_path(key).unlink(missing_ok=True)
            self._prune(path.parent, self._objects)
            self._prune(self._sidecar_path(key).parent, self._sidecars)

    def get_metadata(self, key: str) -> ObjectMetadata:
        path = self._object_path(key)
        if not path.is_file():
            raise NotFoundError(f"Object not found: {key}")
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        custom: Dict[str, str] = {}
        sidecar = self._sidecar_path(key)
        if sidecar.is_file():
            try:
                payload = json.loads(sidecar.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                payload = {}
            content_type = payload.get("content_type") or content_type
            custom = dict(payload.get("custom_metadata") or {})
        return ObjectMetadata(
            key=key,
            size=path.stat().st_size,
            content_type=content_type,
            custom_metadata=custom,
        )

    def get_download_url(self, key: str) -> str:
        path = self._object_path(key)
        if not path.is_file():
            raise NotFoundError(f"Object not found: {key}")
        return path.resolve().as_uri()

    def _object_path(self, key: str) -> Path:
        return self._resolve_under(self._objects, key)

    def _sidecar_path(self, key: str) -> Path:
        return self._resolve_under(self._sidecars, key + ".json")

    @staticmethod
    def _resolve_under(base: Path, key: str) -> Path:
        parts = [part for part in key.strip("/").split("/") if part not in ("", ".", "..")]
        if not parts:
            raise NotFoundError(f"Invalid object key: {key!r}")
        return base.joinpath(*parts)

    @staticmethod
    def _prune(directory: Path, stop: Path) -> None:
        current = directory
        while current != stop and stop in current.parents:
            try:
                current.rmdir()
            except OSError:
                return
            current = current.parent


class JsonMetadataStore(MemoryMetadataStore):
    """Metadata store persisted to a single JSON file after every write."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = path.expanduser()
        self._collections = self._read()

    @property
    def path(self) -> Path:
        """Return the JSON file backing the store."""
        return self._path

    def _read(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid metadata store file {self._path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StoreError(f"Metadata store file {self._path} must contain a mapping.")
        return payload

    def _commit(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(self._collections, indent=2, sort_keys=False, default=str),
            encoding="utf-8",
        )


def open_local_stores(data_dir: Path) -> tuple[LocalObjectStore, JsonMetadataStore]:
    """Return the object and metadata stores rooted at ``data_dir``."""

    data_dir = data_dir.expanduser()
    return LocalObjectStore(data_dir), JsonMetadataStore(data_dir / METADATA_FILENAME)


__all__ = ["LocalObjectStore", "JsonMetadataStore", "open_local_stores"]

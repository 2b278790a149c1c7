"""Folder path normalization between user-facing paths and object keys.

Folder paths are strings such as ``/files/A/B/``: rooted at a fixed prefix and
always terminated by a slash. Object keys drop the leading slash, so the same
folder is listed through the ``files/A/B`` prefix.
"""

from __future__ import annotations

from typing import Tuple

ROOT_PATH = "/files/"

_SKIPPED_SEGMENTS = {"", ".", ".."}


def _segments(value: str) -> list[str]:
    parts = value.replace("\\", "/").split("/")
    return [part for part in parts if part.strip() not in _SKIPPED_SEGMENTS]


def normalize(value: object, root: str = ROOT_PATH) -> str:
    """Return the canonical folder path for ``value``.

    The function never fails: empty or malformed input degrades to ``root``.
    Backslashes become forward slashes, repeated slashes collapse, ``.`` and
    ``..`` segments are dropped, and the root prefix is prepended when missing.

    Args:
        value: Raw user input, usually a string.
        root: Root folder that every path is anchored to.

    Returns:
        str: Normalized folder path ending with a slash.
    """

    text = "" if value is None else str(value).strip()
    segments = _segments(text)
    root_segments = _segments(root)
    if segments[: len(root_segments)] != root_segments:
        segments = root_segments + segments
    if not segments:
        return "/"
    return "/" + "/".join(segments) + "/"


def to_object_key_prefix(path: str) -> str:
    """Return the object-store listing prefix for a folder path."""
    return path.strip("/")


def from_object_key_prefix(prefix: str, root: str = ROOT_PATH) -> str:
    """Return the folder path addressed by an object-store prefix."""
    return normalize("/" + prefix, root)


def object_key_for(folder: str, name: str, root: str = ROOT_PATH) -> str:
    """Return the object key of ``name`` inside ``folder``.

    ``name`` may contain a relative directory part (``sub/a.jpg``), which is
    preserved beneath the folder.
    """

    base = to_object_key_prefix(normalize(folder, root))
    relative = "/".join(_segments(name))
    if not base:
        return relative
    return f"{base}/{relative}"


def join(folder: str, name: str, root: str = ROOT_PATH) -> str:
    """Return the path of subfolder ``name`` inside ``folder``."""
    return normalize(normalize(folder, root) + name, root)


def split_object_key(key: str, root: str = ROOT_PATH) -> Tuple[str, str]:
    """Split an object key into its parent folder path and file name."""
    key = key.strip("/")
    if "/" not in key:
        return normalize("", root), key
    parent, name = key.rsplit("/", 1)
    return normalize("/" + parent, root), name


def parent_of(path: str, root: str = ROOT_PATH) -> str:
    """Return the parent folder of ``path``; the root is its own parent."""
    normalized = normalize(path, root)
    root_path = normalize("", root)
    if normalized == root_path:
        return root_path
    return normalize(normalized.rstrip("/").rsplit("/", 1)[0], root)


def folder_name(path: str) -> str:
    """Return the last segment of a folder path."""
    segments = _segments(path)
    return segments[-1] if segments else ""


def is_within(path: str, ancestor: str, root: str = ROOT_PATH) -> bool:
    """Return True when ``path`` equals or is nested inside ``ancestor``."""
    return normalize(path, root).startswith(normalize(ancestor, root))


def relative_to(key: str, prefix: str) -> str:
    """Return ``key`` relative to an object-store prefix."""
    base = prefix.strip("/")
    trimmed = key.strip("/")
    if base and trimmed.startswith(base + "/"):
        return trimmed[len(base) + 1 :]
    return trimmed


__all__ = [
    "ROOT_PATH",
    "normalize",
    "to_object_key_prefix",
    "from_object_key_prefix",
    "object_key_for",
    "join",
    "split_object_key",
    "parent_of",
    "folder_name",
    "is_within",
    "relative_to",
]

"""Display ordering helpers.

Sorting is applied when rendering and never mutates the cache's order.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Literal, Sequence, Tuple, Union

from rman.state.models import FileEntry

_DIGITS = re.compile(r"(\d+)")

SortKey = Literal["name", "size", "type"]


def natural_key(value: str) -> Tuple[Tuple[int, int, str], ...]:
    """Return a case-insensitive, numeric-aware sort key.

    ``"file 2"`` sorts before ``"File 10"``.
    """

    parts: List[Tuple[int, int, str]] = []
    for chunk in _DIGITS.split(value or ""):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk.casefold()))
    return tuple(parts)


def sort_names(names: Iterable[str], *, descending: bool = False) -> List[str]:
    """Return ``names`` in natural order."""
    return sorted(names, key=natural_key, reverse=descending)


def sort_entries(
    entries: Sequence[FileEntry],
    *,
    key: SortKey = "name",
    descending: bool = False,
) -> List[FileEntry]:
    """Return file entries ordered for display.

    Args:
        entries: Entries in cache order.
        key: Attribute to order by.
        descending: Reverse the ordering when True.

    Returns:
        List[FileEntry]: A new, sorted list.
    """

    if key == "size":
        return sorted(entries, key=lambda entry: entry.size or 0, reverse=descending)
    if key == "type":
        return sorted(
            entries, key=lambda entry: natural_key(entry.content_type or ""), reverse=descending
        )
    return sorted(entries, key=lambda entry: natural_key(entry.name), reverse=descending)


def sort_for_display(
    items: Sequence[Union[str, FileEntry]],
    *,
    key: SortKey = "name",
    descending: bool = False,
) -> List[Union[str, FileEntry]]:
    """Sort folder names or file entries, whichever ``items`` holds."""
    entries = [item for item in items if isinstance(item, FileEntry)]
    if items and len(entries) == len(items):
        return list(sort_entries(entries, key=key, descending=descending))
    return list(sort_names((str(item) for item in items), descending=descending))


__all__ = ["natural_key", "sort_names", "sort_entries", "sort_for_display", "SortKey"]

"""Tree node data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from rman.state.models import FileEntry


class NodeState(str, Enum):
    """Materialization state of a folder node."""

    UNMATERIALIZED = "unmaterialized"
    MATERIALIZED = "materialized"


@dataclass(slots=True)
class TreeNode:
    """A folder in the virtual hierarchy.

    Attributes:
        path: Normalized folder path.
        state: Whether the direct children have been listed.
        children: Direct subfolders keyed by name; empty until materialized.
        files: Direct files, populated when the cache records files.
        direct_file_count: Number of direct files from the last listing.
        direct_folder_count: Number of direct subfolders from the last listing.
        has_placeholder: Whether a placeholder object keeps the folder alive.
        error: Message of the last failed listing, if any.
    """

    path: str
    state: NodeState = NodeState.UNMATERIALIZED
    children: Dict[str, "TreeNode"] = field(default_factory=dict)
    files: List[FileEntry] = field(default_factory=list)
    direct_file_count: int = 0
    direct_folder_count: int = 0
    has_placeholder: bool = False
    error: Optional[str] = None

    @property
    def materialized(self) -> bool:
        """Return True once the node's direct children are known."""
        return self.state is NodeState.MATERIALIZED

    @property
    def name(self) -> str:
        """Return the last path segment."""
        return self.path.rstrip("/").rsplit("/", 1)[-1]


@dataclass(slots=True)
class DeepListing:
    """Every file below a folder together with per-folder direct counts."""

    root: str
    files: List[FileEntry] = field(default_factory=list)
    folders: List[str] = field(default_factory=list)
    counts: Dict[str, tuple[int, int]] = field(default_factory=dict)


__all__ = ["NodeState", "TreeNode", "DeepListing"]

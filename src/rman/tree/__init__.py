"""Virtual folder tree derived from object-store listings."""

from .cache import PLACEHOLDER_NAMES, TreeCache
from .models import DeepListing, NodeState, TreeNode
from .sorting import SortKey, natural_key, sort_entries, sort_for_display, sort_names

__all__ = [
    "PLACEHOLDER_NAMES",
    "TreeCache",
    "DeepListing",
    "NodeState",
    "TreeNode",
    "natural_key",
    "SortKey",
    "sort_entries",
    "sort_for_display",
    "sort_names",
]

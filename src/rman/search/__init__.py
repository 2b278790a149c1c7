"""Tag search over file metadata documents."""

from .engine import INDEX_HINT, SAVED_SEARCHES, TagSearchEngine
from .models import Combine, Operator, SavedSearch, SearchQuery, SearchResult, TagCondition
from .strategies import IndexedEqualsStrategy, ScanStrategy, SearchStrategy

__all__ = [
    "INDEX_HINT",
    "SAVED_SEARCHES",
    "TagSearchEngine",
    "Combine",
    "Operator",
    "SavedSearch",
    "SearchQuery",
    "SearchResult",
    "TagCondition",
    "IndexedEqualsStrategy",
    "ScanStrategy",
    "SearchStrategy",
]

"""Tag search with indexed fast path, scan fallback, and saved searches."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from rman import paths
from rman.config.models import SearchSettings
from rman.stores import FILES_COLLECTION, MetadataStore, user_collection

from .models import SavedSearch, SearchQuery, SearchResult
from .strategies import IndexedEqualsStrategy, ScanStrategy, SearchStrategy

LOGGER = logging.getLogger(__name__)

INDEX_HINT = "Tip: Add a composite index for these tag filters to speed up this search."

SAVED_SEARCHES = "saved_searches"


class TagSearchEngine:
    """Search file metadata by tag conditions.

    AND-combined equality queries go to the indexed strategy first; if the
    store rejects that query the scan strategy answers instead and the
    result carries :data:`INDEX_HINT`. Every other query is scanned.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        *,
        settings: Optional[SearchSettings] = None,
        collection: str = FILES_COLLECTION,
        root: str = paths.ROOT_PATH,
    ) -> None:
        self._metadata = metadata
        self._settings = settings or SearchSettings()
        self.indexed: SearchStrategy = IndexedEqualsStrategy(
            metadata, limit=self._settings.server_limit, collection=collection, root=root
        )
        self.scan: SearchStrategy = ScanStrategy(
            metadata, limit=self._settings.scan_limit, collection=collection, root=root
        )

    def search(self, query: SearchQuery) -> SearchResult:
        """Run ``query`` and report which strategy answered it."""

        if query.indexable:
            try:
                entries = self.indexed.run(query)
            except Exception as exc:
                LOGGER.warning("Indexed tag query failed, scanning instead: %s", exc)
                return SearchResult(
                    entries=self.scan.run(query), strategy=self.scan.name, hint=INDEX_HINT
                )
            return SearchResult(entries=entries, strategy=self.indexed.name)
        return SearchResult(entries=self.scan.run(query), strategy=self.scan.name)

    # ------------------------------------------------------------------ #
    # Saved searches                                                     #
    # ------------------------------------------------------------------ #

    def save(self, user_id: str, name: str, query: SearchQuery) -> SavedSearch:
        """Store ``query`` under ``name`` for ``user_id``.

        Raises:
            ValueError: If ``name`` is blank.
        """

        cleaned = name.strip()
        if not cleaned:
            raise ValueError("Enter a name for the saved search.")
        saved = SavedSearch(name=cleaned, query=query)
        collection = self._saved_collection(user_id)
        doc_id = self._metadata.create_document(collection, saved.to_document())
        return saved.model_copy(update={"id": doc_id})

    def list_saved(self, user_id: str) -> List[SavedSearch]:
        """Return a user's saved searches, oldest first."""
        documents = self._metadata.list_documents(self._saved_collection(user_id))
        saved = [SavedSearch.from_document(doc.id, doc.data) for doc in documents]
        return sorted(saved, key=lambda item: item.created_at)

    def delete_saved(self, user_id: str, saved_id: str) -> None:
        """Remove a saved search; missing entries are ignored."""
        self._metadata.delete_document(self._saved_collection(user_id), saved_id)

    def run_saved(self, user_id: str, saved_id: str) -> SearchResult:
        """Load a saved search and run it.

        Raises:
            NotFoundError: If the saved search does not exist.
        """
        data = self._metadata.get_document(self._saved_collection(user_id), saved_id)
        return self.search(SavedSearch.from_document(saved_id, data).query)

    def suggest_keys(
        self,
        user_id: Optional[str] = None,
        *,
        results: Optional[SearchResult] = None,
        query: Optional[SearchQuery] = None,
        extra: Iterable[str] = (),
    ) -> List[str]:
        """Return distinct tag keys for autocompletion, sorted case-insensitively.

        Keys come from the configured defaults, the user's saved searches,
        the tags of the current results, and the keys in the current query.
        """

        keys: List[str] = list(self._settings.default_keys)
        if user_id:
            for saved in self.list_saved(user_id):
                keys.extend(condition.key for condition in saved.query.conditions)
        if results is not None:
            for entry in results.entries:
                keys.extend(entry.tags)
        if query is not None:
            keys.extend(condition.key for condition in query.conditions)
        keys.extend(extra)

        unique = {key.strip() for key in keys if key and key.strip()}
        return sorted(unique, key=str.casefold)

    @staticmethod
    def _saved_collection(user_id: str) -> str:
        return user_collection(user_id, SAVED_SEARCHES)


__all__ = ["TagSearchEngine", "INDEX_HINT", "SAVED_SEARCHES"]

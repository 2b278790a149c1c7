"""Ways of finding documents that match a tag query."""

from __future__ import annotations

from typing import List, Protocol

from rman import paths
from rman.state.models import FileEntry
from rman.stores import FILES_COLLECTION, Document, MetadataStore

from .models import SearchQuery


class SearchStrategy(Protocol):
    """Produce the entries matching a query."""

    name: str

    def run(self, query: SearchQuery) -> List[FileEntry]:
        """Return matching entries."""


class _StrategyBase:
    name = "base"

    def __init__(
        self,
        metadata: MetadataStore,
        *,
        limit: int,
        collection: str = FILES_COLLECTION,
        root: str = paths.ROOT_PATH,
    ) -> None:
        self._metadata = metadata
        self._limit = limit
        self._collection = collection
        self._root = root

    def _matching(self, documents: List[Document], query: SearchQuery) -> List[FileEntry]:
        entries = [
            FileEntry.from_document(document.id, document.data, root=self._root)
            for document in documents
        ]
        return [entry for entry in entries if query.matches(entry.tags)]


class IndexedEqualsStrategy(_StrategyBase):
    """Ask the metadata store for exact ``tags.<key>`` matches.

    Only AND-combined equality queries are eligible. Results are filtered
    again client-side so both strategies agree on case handling.
    """

    name = "indexed"

    def run(self, query: SearchQuery) -> List[FileEntry]:
        filters = {f"tags.{condition.key}": condition.value for condition in query.effective}
        documents = self._metadata.query_equals(self._collection, filters, self._limit)
        return self._matching(documents, query)


class ScanStrategy(_StrategyBase):
    """Fetch a bounded page of documents and evaluate the query locally."""

    name = "scan"

    def run(self, query: SearchQuery) -> List[FileEntry]:
        documents = self._metadata.list_documents(self._collection, self._limit)
        return self._matching(documents, query)


__all__ = ["SearchStrategy", "IndexedEqualsStrategy", "ScanStrategy"]

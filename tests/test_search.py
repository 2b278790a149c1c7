"""Tag search tests."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

import pytest
from pydantic import ValidationError

from rman.config.models import SearchSettings
from rman.search import (
    INDEX_HINT,
    SavedSearch,
    SearchQuery,
    TagCondition,
    TagSearchEngine,
)
from rman.state import FileCatalog
from rman.stores import Document, MemoryMetadataStore, MemoryObjectStore

from conftest import put_file


@pytest.fixture()
def seeded(objects: MemoryObjectStore, catalog: FileCatalog) -> None:
    put_file(objects, catalog, "files/alpha.pdf", tags={"Project": "Alpha", "Value": "12"})
    put_file(objects, catalog, "files/beta.pdf", tags={"Project": "Beta"})
    put_file(objects, catalog, "files/untagged.pdf")


def _names(entries: List[Any]) -> List[str]:
    return sorted(entry.name for entry in entries)


def test_equals_and_returns_exact_match(metadata: MemoryMetadataStore, seeded: None) -> None:
    engine = TagSearchEngine(metadata)
    query = SearchQuery(conditions=[TagCondition(key="Project", operator="equals", value="Alpha")])

    result = engine.search(query)

    assert _names(result.entries) == ["alpha.pdf"]
    assert result.strategy == "indexed"
    assert result.hint is None


def test_contains_or_is_case_insensitive(metadata: MemoryMetadataStore, seeded: None) -> None:
    engine = TagSearchEngine(metadata)
    query = SearchQuery(
        conditions=[TagCondition(key="Project", operator="contains", value="a")], combine="OR"
    )

    result = engine.search(query)

    assert _names(result.entries) == ["alpha.pdf", "beta.pdf"]
    assert result.strategy == "scan"


def test_not_contains_treats_missing_tags_as_empty(
    metadata: MemoryMetadataStore, seeded: None
) -> None:
    engine = TagSearchEngine(metadata)
    query = SearchQuery(
        conditions=[TagCondition(key="Project", operator="notcontains", value="alp")]
    )

    assert _names(engine.search(query).entries) == ["beta.pdf", "untagged.pdf"]


@pytest.mark.parametrize("operator", ["equls", "startswith"])
def test_unknown_operator_is_rejected(operator: str) -> None:
    with pytest.raises(ValidationError, match="Unknown operator"):
        TagCondition(key="Project", operator=operator, value="x")


def test_missing_operator_defaults_to_equals() -> None:
    assert TagCondition(key="Project", operator=None, value="x").operator == "equals"


def test_blank_conditions_are_ignored(metadata: MemoryMetadataStore, seeded: None) -> None:
    engine = TagSearchEngine(metadata)
    query = SearchQuery(
        conditions=[TagCondition(key=" ", value="x"), TagCondition(key="Value", value="")]
    )

    assert not query.indexable
    assert len(engine.search(query).entries) == 3


def test_and_requires_every_condition() -> None:
    query = SearchQuery(
        conditions=[
            TagCondition(key="Project", value="alpha"),
            TagCondition(key="Value", operator="contains", value="1"),
        ]
    )

    assert query.matches({"Project": "ALPHA", "Value": "12"})
    assert not query.matches({"Project": "Alpha", "Value": "9"})


class _NoIndexStore(MemoryMetadataStore):
    def query_equals(
        self, collection: str, filters: Mapping[str, Any], limit: Optional[int] = None
    ) -> List[Document]:
        raise RuntimeError("The query requires an index")


def test_failed_indexed_query_falls_back_to_scan() -> None:
    metadata = _NoIndexStore()
    objects = MemoryObjectStore()
    put_file(objects, FileCatalog(metadata), "files/alpha.pdf", tags={"Project": "Alpha"})
    engine = TagSearchEngine(metadata)

    result = engine.search(SearchQuery(conditions=[TagCondition(key="Project", value="Alpha")]))

    assert _names(result.entries) == ["alpha.pdf"]
    assert result.strategy == "scan"
    assert result.hint == INDEX_HINT


def test_scan_respects_limit(metadata: MemoryMetadataStore, seeded: None) -> None:
    engine = TagSearchEngine(metadata, settings=SearchSettings(scan_limit=1))

    result = engine.search(SearchQuery())

    assert len(result.entries) == 1


def test_saved_searches(metadata: MemoryMetadataStore, seeded: None) -> None:
    engine = TagSearchEngine(metadata)
    query = SearchQuery(conditions=[TagCondition(key="Project", value="Beta")])

    saved = engine.save("member", "  Beta files ", query)
    listed = engine.list_saved("member")

    assert saved.name == "Beta files"
    assert [item.id for item in listed] == [saved.id]
    assert listed[0].query == query
    assert _names(engine.run_saved("member", saved.id).entries) == ["beta.pdf"]
    with pytest.raises(ValueError):
        engine.save("member", "   ", query)

    engine.delete_saved("member", saved.id)
    assert engine.list_saved("member") == []


def test_saved_search_reads_millisecond_timestamps() -> None:
    saved = SavedSearch.from_document(
        "s1",
        {
            "name": "old",
            "rows": [{"key": "Project", "value": "A", "op": "eq"}],
            "combine": "or",
            "createdAt": 1_700_000_000_000,
        },
    )

    assert saved.created_at.year == 2023
    assert saved.query.combine == "OR"
    assert saved.query.conditions[0].operator == "equals"


def test_suggest_keys_merges_sources(metadata: MemoryMetadataStore, seeded: None) -> None:
    engine = TagSearchEngine(metadata, settings=SearchSettings(default_keys=["Date"]))
    engine.save("member", "mine", SearchQuery(conditions=[TagCondition(key="Vendor", value="x")]))
    results = engine.search(SearchQuery(conditions=[TagCondition(key="Project", value="Alpha")]))

    keys = engine.suggest_keys("member", results=results, extra=["notes"])

    assert keys == ["Date", "notes", "Project", "Value", "Vendor"]

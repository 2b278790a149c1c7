"""Tree cache materialization tests."""

from __future__ import annotations

import pytest

from rman.errors import ListingError
from rman.state import FileEntry
from rman.stores import Listing, MemoryObjectStore
from rman.tree import NodeState, TreeCache, natural_key, sort_entries, sort_for_display, sort_names


def _seeded() -> MemoryObjectStore:
    store = MemoryObjectStore()
    for key in (
        "files/A/.keep",
        "files/A/one.txt",
        "files/A/B/two.txt",
        "files/A/B/C/three.txt",
        "files/D/.folder-placeholder",
        "files/root.txt",
    ):
        store.put_bytes(key, b"x")
    return store


def test_load_children_materializes_one_level() -> None:
    cache = TreeCache(_seeded())

    root = cache.load_children("/files/")

    assert root.state is NodeState.MATERIALIZED
    assert sorted(root.children) == ["A", "D"]
    assert [entry.name for entry in root.files] == ["root.txt"]
    assert all(not child.materialized for child in root.children.values())


def test_placeholders_are_hidden_from_files() -> None:
    cache = TreeCache(_seeded())

    node = cache.expand("/files/A/")
    empty = cache.load_children("/files/D/")

    assert [entry.name for entry in node.files] == ["one.txt"]
    assert node.has_placeholder
    assert empty.direct_file_count == 0
    assert empty.has_placeholder


def test_expand_materializes_ancestors() -> None:
    cache = TreeCache(_seeded())

    node = cache.expand("/files/A/B/C/")

    assert node.materialized
    assert cache.get("/files/").materialized
    assert cache.get("/files/A/").materialized
    assert cache.get("/files/A/B/").materialized
    assert cache.get("/files/D/") is not None
    assert not cache.get("/files/D/").materialized


def test_refresh_picks_up_new_objects() -> None:
    store = _seeded()
    cache = TreeCache(store)
    cache.expand("/files/A/")

    store.put_bytes("files/A/E/.keep", b"")
    cache.refresh_if_cached("/files/A/")

    assert "E" in cache.get("/files/A/").children


def test_forget_drops_subtree() -> None:
    cache = TreeCache(_seeded())
    cache.expand("/files/A/B/")

    cache.forget("/files/A/")

    assert cache.get("/files/A/") is None
    assert cache.get("/files/A/B/") is None
    assert "A" not in cache.root.children


def test_deep_listing_walks_everything() -> None:
    cache = TreeCache(_seeded())

    listing = cache.deep_listing("/files/A/")

    assert sorted(entry.object_key for entry in listing.files) == [
        "files/A/B/C/three.txt",
        "files/A/B/two.txt",
        "files/A/one.txt",
    ]
    assert listing.counts["/files/A/"] == (1, 1)


class _BrokenStore(MemoryObjectStore):
    def list_children(self, prefix: str) -> Listing:
        raise RuntimeError("listing unavailable")


def test_listing_failure_keeps_node_unmaterialized() -> None:
    cache = TreeCache(_BrokenStore())

    with pytest.raises(ListingError):
        cache.load_children("/files/")

    assert not cache.root.materialized
    assert cache.root.error == "listing unavailable"


class _FlakyStore(MemoryObjectStore):
    def __init__(self) -> None:
        super().__init__()
        self.down = False

    def list_children(self, prefix: str) -> Listing:
        if self.down:
            raise RuntimeError("network down")
        return super().list_children(prefix)


def test_failed_reload_drops_stale_children() -> None:
    store = _FlakyStore()
    store.put_bytes("files/a/x.txt", b"x")
    cache = TreeCache(store)
    cache.expand("/files/a/")

    store.down = True
    with pytest.raises(ListingError):
        cache.load_children("/files/")

    assert cache.root.state is NodeState.UNMATERIALIZED
    assert cache.root.children == {}
    assert cache.root.files == []
    assert cache.root.error == "network down"
    assert cache.get("/files/a/") is None

    store.down = False
    assert "a" in cache.load_children("/files/").children
    assert cache.root.error is None


def test_natural_sorting() -> None:
    assert sort_names(["file10", "file2", "File1"]) == ["File1", "file2", "file10"]
    assert natural_key("a2") < natural_key("a10")


def test_sort_entries_by_size_and_display_dispatch() -> None:
    small = FileEntry(id="s", name="b.txt", object_key="files/b.txt", size=1)
    large = FileEntry(id="l", name="a.txt", object_key="files/a.txt", size=10)

    assert sort_entries([small, large], key="size", descending=True) == [large, small]
    assert sort_for_display([small, large]) == [large, small]
    assert sort_for_display(["x10", "x9"]) == ["x9", "x10"]


def test_invalidate_and_walk_materialized() -> None:
    cache = TreeCache(_seeded())
    cache.expand("/files/A/B/")

    walked = [node.path for node in cache.walk_materialized()]
    cache.invalidate("/files/A/")

    assert walked == ["/files/", "/files/A/", "/files/A/B/"]
    assert cache.get("/files/A/").state is NodeState.UNMATERIALIZED
    assert cache.get("/files/A/B/") is None
    assert [node.path for node in cache.walk_materialized()] == ["/files/"]

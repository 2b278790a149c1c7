"""FileManager facade and notifier tests."""

from __future__ import annotations

from typing import List, Optional, Tuple

import pytest

from rman.actors import Actor
from rman.config.models import RmanConfig
from rman.errors import NotFoundError, PermissionDeniedError
from rman.events import Notice, Notifier
from rman.manager import FileManager
from rman.operations import Selection
from rman.search import INDEX_HINT, SearchQuery, TagCondition
from rman.stores import MemoryMetadataStore, MemoryObjectStore
from rman.uploads import UploadSource

from conftest import put_file


def test_notifier_tracks_notices_and_refresh_trigger() -> None:
    notifier = Notifier(history=2)
    seen: List[Notice] = []
    bumps: List[Tuple[int, Optional[str]]] = []
    remove = notifier.add_handler(seen.append)
    notifier.subscribe(lambda value, prefix: bumps.append((value, prefix)))

    notifier.notify("info", "one")
    notifier.notify("warning", "two")
    notifier.notify("success", "three")
    remove()
    notifier.notify("error", "four")
    notifier.bump("/files/A/")

    assert [notice.message for notice in notifier.notices] == ["three", "four"]
    assert [notice.message for notice in seen] == ["one", "two", "three"]
    assert bumps == [(1, "/files/A/")]
    assert notifier.refresh_trigger == 1
    notifier.clear()
    assert notifier.notices == []


def test_create_folder_refreshes_cached_parent(manager: FileManager, member: Actor) -> None:
    manager.expand("/files/")
    before = manager.notifier.refresh_trigger

    folder = manager.create_folder(member, "/files/", "2024")

    assert folder == "/files/2024/"
    assert "2024" in manager.tree.root.children
    assert manager.notifier.refresh_trigger > before
    assert manager.notifier.notices[-1].message == "Created folder /files/2024/"


def test_viewer_is_read_only(manager: FileManager, viewer: Actor) -> None:
    with pytest.raises(PermissionDeniedError):
        manager.create_folder(viewer, "/files/", "x")
    with pytest.raises(PermissionDeniedError):
        manager.copy(viewer, Selection(), "/files/")
    with pytest.raises(PermissionDeniedError):
        manager.upload(viewer, [UploadSource(name="a.txt", data=b"a")], "/files/")
    with pytest.raises(PermissionDeniedError):
        manager.delete(viewer, Selection(folders=["/files/A/"]))
    with pytest.raises(PermissionDeniedError):
        manager.rename(viewer, "files/a.txt", "b.txt")
    assert manager.requests.pending() == []


def test_upload_then_list_entries(manager: FileManager, member: Actor) -> None:
    result = manager.upload(
        member, [UploadSource(name="r.txt", data=b"r", content_type="text/plain")], "/files/in/"
    )

    entries = manager.entries("/files/in/")

    assert result.done == 1
    assert [entry.name for entry in entries] == ["r.txt"]
    assert entries[0].uploaded_by == member.id
    assert manager.folder_details("/files/in/").files == 1


def test_member_delete_submits_requests_per_item(
    manager: FileManager, objects: MemoryObjectStore, member: Actor
) -> None:
    put_file(objects, manager.catalog, "files/A/a.txt")
    objects.put_bytes("files/B/.keep", b"")

    outcome = manager.delete(member, Selection(files=["files/A/a.txt"], folders=["/files/B/"]))

    assert not outcome.executed
    assert len(outcome.requests) == 2
    assert {request.target_type for request in outcome.requests} == {"file", "folder"}
    assert "files/A/a.txt" in objects.keys()


def test_admin_delete_forgets_folders(
    manager: FileManager, objects: MemoryObjectStore, admin: Actor
) -> None:
    objects.put_bytes("files/B/.keep", b"")
    objects.put_bytes("files/B/x.txt", b"x")
    manager.expand("/files/B/")

    outcome = manager.delete(admin, Selection(folders=["/files/B/"]))

    assert outcome.executed
    assert outcome.result is not None and outcome.result.succeeded == 1
    assert manager.tree.get("/files/B/") is None
    assert objects.keys() == []


def test_move_refreshes_source_and_destination(
    manager: FileManager, objects: MemoryObjectStore, member: Actor
) -> None:
    objects.put_bytes("files/src/a.txt", b"a")
    objects.put_bytes("files/dst/.keep", b"")
    manager.expand("/files/src/")
    manager.expand("/files/dst/")

    result = manager.move(member, Selection(files=["files/src/a.txt"]), "/files/dst/")

    assert result.succeeded == 1
    assert [entry.name for entry in manager.tree.get("/files/dst/").files] == ["a.txt"]
    assert manager.tree.get("/files/src/").files == []


def test_rename_folder_through_manager(
    manager: FileManager, objects: MemoryObjectStore, member: Actor
) -> None:
    objects.put_bytes("files/old/a.txt", b"a")

    new_path = manager.rename_folder(member, "/files/old/", "new")

    assert new_path == "/files/new/"
    assert sorted(objects.keys()) == ["files/new/.keep", "files/new/a.txt"]


def test_set_tags_merges_and_drops_empty_values(
    manager: FileManager, objects: MemoryObjectStore, member: Actor
) -> None:
    put_file(objects, manager.catalog, "files/a.txt", tags={"Project": "Alpha", "Value": "3"})

    entry = manager.set_tags(member, "files/a.txt", {"Value": "", "Date": "2024-01-02"})

    assert entry.tags == {"Project": "Alpha", "Date": "2024-01-02"}
    with pytest.raises(NotFoundError):
        manager.set_tags(member, "files/missing.txt", {"a": "b"})


def test_run_search_posts_index_hint(manager: FileManager, monkeypatch) -> None:
    def _fail(*_args, **_kwargs):
        raise RuntimeError("index missing")

    monkeypatch.setattr(manager.metadata, "query_equals", _fail)

    result = manager.run_search(SearchQuery(conditions=[TagCondition(key="a", value="b")]))

    assert result.hint == INDEX_HINT
    assert manager.notifier.notices[-1].message == INDEX_HINT


def test_configured_placeholder_name(
    objects: MemoryObjectStore, metadata: MemoryMetadataStore, admin: Actor
) -> None:
    config = RmanConfig.model_validate({"storage": {"placeholder_name": ".dir"}})
    manager = FileManager(objects, metadata, config=config)

    manager.create_folder(admin, "/files/", "x")

    assert objects.keys() == ["files/x/.dir"]
    assert manager.expand("/files/x/").files == []

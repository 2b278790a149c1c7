"""Bulk copy, move, delete, and rename tests."""

from __future__ import annotations

import pytest

from rman.errors import ConflictError, InvalidDestinationError, NotFoundError
from rman.operations import BulkOperationEngine, Selection
from rman.state import FileCatalog
from rman.stores import MemoryMetadataStore, MemoryObjectStore

from conftest import put_file


def _folder(objects: MemoryObjectStore, prefix: str, names: list[str]) -> None:
    objects.put_bytes(f"{prefix}/.keep", b"", "application/x-empty")
    for name in names:
        objects.put_bytes(f"{prefix}/{name}", f"{prefix}/{name}".encode(), "text/plain")


def test_copy_into_own_subfolder_is_rejected_without_writes(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    _folder(objects, "files/A", ["a.txt"])
    _folder(objects, "files/A/B", ["b.txt"])
    writes = objects.write_count

    with pytest.raises(InvalidDestinationError):
        engine.copy(Selection(folders=["/files/A/"]), "/files/A/B/")
    with pytest.raises(InvalidDestinationError):
        engine.move(Selection(folders=["/files/A/"]), "/files/A/")
    with pytest.raises(InvalidDestinationError):
        engine.copy(
            Selection(files=["files/A/a.txt"], folders=["/files/A/"]),
            "/files/A/B/",
            nest_folders=True,
        )

    assert objects.write_count == writes


def test_root_cannot_be_deleted_or_moved(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    _folder(objects, "files/A", ["a.txt"])

    with pytest.raises(InvalidDestinationError):
        engine.delete(Selection(folders=["/files/"]))
    with pytest.raises(InvalidDestinationError):
        engine.move(Selection(folders=["/files/"]), "/files/A/")
    with pytest.raises(InvalidDestinationError):
        engine.rename_folder("/files/", "other")


def test_ensure_unique_path_counts_upwards(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    objects.put_bytes("files/docs/report.pdf", b"1")

    first = engine.ensure_unique_path("/files/docs/", "report.pdf")
    objects.put_bytes(f"files/docs/{first}", b"2")
    second = engine.ensure_unique_path("/files/docs/", "report.pdf")

    assert first == "report (1).pdf"
    assert second == "report (2).pdf"
    assert engine.ensure_unique_path("/files/docs/", "fresh.pdf") == "fresh.pdf"


def test_ensure_unique_path_keeps_relative_directory(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    objects.put_bytes("files/docs/sub/scan", b"1")

    assert engine.ensure_unique_path("/files/docs/", "sub/scan") == "sub/scan (1)"


def test_folder_copy_with_skip_policy_keeps_existing_bytes(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    _folder(objects, "files/src", ["a.txt", "b.txt", "c.txt"])
    objects.put_bytes("files/dst/b.txt", b"original", "text/plain")

    result = engine.copy(Selection(folders=["/files/src/"]), "/files/dst/", policy="skip")

    assert result.succeeded == 2
    assert result.skipped == 1
    assert result.failed == 0
    assert objects.get_bytes("files/dst/b.txt") == b"original"
    assert objects.get_bytes("files/dst/a.txt") == b"files/src/a.txt"
    assert result.summary() == "Copy completed: 2 succeeded, 1 skipped."


def test_folder_copy_with_overwrite_policy_replaces(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    _folder(objects, "files/src", ["b.txt"])
    objects.put_bytes("files/dst/b.txt", b"original")

    result = engine.copy(Selection(folders=["/files/src/"]), "/files/dst/", policy="overwrite")

    assert result.succeeded == 1
    assert objects.get_bytes("files/dst/b.txt") == b"files/src/b.txt"


def test_copy_preserves_content_type_and_nested_layout(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    objects.put_bytes("files/src/deep/er/x.jpg", b"jpg", "image/jpeg", {"origin": "scan"})

    engine.copy(Selection(folders=["/files/src/"]), "/files/dst/", nest_folders=True)

    metadata = objects.get_metadata("files/dst/src/deep/er/x.jpg")
    assert metadata.content_type == "image/jpeg"
    assert metadata.custom_metadata == {"origin": "scan"}


def test_folder_move_empties_source(
    objects: MemoryObjectStore, catalog: FileCatalog, engine: BulkOperationEngine
) -> None:
    _folder(objects, "files/src", ["a.txt"])
    _folder(objects, "files/src/inner", ["b.txt"])
    doc_id = put_file(objects, catalog, "files/src/c.txt")

    result = engine.move(Selection(folders=["/files/src/"]), "/files/dst/")

    listing = objects.list_children("files/src")
    assert listing.keys == []
    assert listing.prefixes == []
    assert sorted(key for key in objects.keys() if key.startswith("files/dst/")) == [
        "files/dst/.keep",
        "files/dst/a.txt",
        "files/dst/c.txt",
        "files/dst/inner/.keep",
        "files/dst/inner/b.txt",
    ]
    assert result.succeeded == 3
    assert catalog.get(doc_id).object_key == "files/dst/c.txt"
    assert catalog.get(doc_id).parent_path == "/files/dst/"


def test_move_with_skip_leaves_conflicting_source(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    objects.put_bytes("files/src/a.txt", b"new")
    objects.put_bytes("files/dst/a.txt", b"old")

    result = engine.move(Selection(files=["files/src/a.txt"]), "/files/dst/")

    assert result.skipped == 1
    assert objects.get_bytes("files/src/a.txt") == b"new"
    assert objects.get_bytes("files/dst/a.txt") == b"old"


def test_move_with_overwrite_replaces_target_metadata(
    objects: MemoryObjectStore, catalog: FileCatalog, engine: BulkOperationEngine
) -> None:
    moved_id = put_file(objects, catalog, "files/a/r.pdf", b"new", tags={"v": "new"})
    put_file(objects, catalog, "files/b/r.pdf", b"old", tags={"v": "old"})

    result = engine.move(Selection(files=["files/a/r.pdf"]), "/files/b/", policy="overwrite")

    assert result.succeeded == 1
    assert objects.get_bytes("files/b/r.pdf") == b"new"
    [entry] = catalog.find_by_key("files/b/r.pdf")
    assert entry.id == moved_id
    assert entry.tags == {"v": "new"}
    assert catalog.find_by_key("files/a/r.pdf") == []


def test_moving_file_onto_itself_is_skipped(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    objects.put_bytes("files/a.txt", b"x")

    result = engine.move(Selection(files=["files/a.txt"]), "/files/", policy="overwrite")

    assert result.skipped == 1
    assert objects.get_bytes("files/a.txt") == b"x"


def test_delete_is_idempotent(
    objects: MemoryObjectStore, catalog: FileCatalog, engine: BulkOperationEngine
) -> None:
    put_file(objects, catalog, "files/a.txt")

    engine.delete_file("files/a.txt")
    engine.delete_file("files/a.txt")
    again = engine.delete(Selection(files=["files/a.txt"]))

    assert "files/a.txt" not in objects.keys()
    assert catalog.find_by_key("files/a.txt") == []
    assert again.failed == 0


def test_folder_delete_removes_everything_below(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    _folder(objects, "files/A", ["a.txt"])
    _folder(objects, "files/A/B", ["b.txt", "c.txt"])
    objects.put_bytes("files/keep.txt", b"x")

    result = engine.delete(Selection(folders=["/files/A/"]))

    assert result.succeeded == 3
    assert objects.keys() == ["files/keep.txt"]


class _FailingStore(MemoryObjectStore):
    def __init__(self, failing_key: str) -> None:
        super().__init__()
        self.failing_key = failing_key

    def get_bytes(self, key: str) -> bytes:
        if key == self.failing_key:
            raise OSError("simulated read failure")
        return super().get_bytes(key)


@pytest.mark.parametrize("failing_index", [0, 2, 4])
def test_partial_failure_is_counted_per_item(failing_index: int) -> None:
    keys = [f"files/in/f{index}.txt" for index in range(5)]
    objects = _FailingStore(keys[failing_index])
    for key in keys:
        objects.put_bytes(key, key.encode())
    engine = BulkOperationEngine(objects, FileCatalog(MemoryMetadataStore()))

    result = engine.copy(Selection(files=keys), "/files/out/")

    assert result.succeeded == 4
    assert result.failed == 1
    assert result.partial_failure
    assert result.errors == [f"{keys[failing_index]}: simulated read failure"]
    assert result.summary() == "Copy completed with 1 error(s): 4 succeeded, 0 skipped."
    for index, key in enumerate(keys):
        copied = key.replace("files/in/", "files/out/")
        assert (copied in objects.keys()) is (index != failing_index)


def test_folder_details_excludes_placeholders(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    _folder(objects, "files/A", ["a.txt", "b.txt"])
    _folder(objects, "files/A/B", [])

    details = engine.folder_details("/files/A/")

    assert details.files == 2
    assert details.folders == 1
    assert details.has_placeholder


def test_create_folder_and_file(objects: MemoryObjectStore, engine: BulkOperationEngine) -> None:
    folder = engine.create_folder("/files/", "2024")
    key = engine.create_file(folder, "notes.txt", b"hello")

    assert folder == "/files/2024/"
    assert "files/2024/.keep" in objects.keys()
    assert objects.get_bytes(key) == b"hello"
    with pytest.raises(ConflictError):
        engine.create_file(folder, "notes.txt")
    with pytest.raises(InvalidDestinationError):
        engine.create_folder("/files/", "  ")


def test_rename_file_moves_object_and_metadata(
    objects: MemoryObjectStore, catalog: FileCatalog, engine: BulkOperationEngine
) -> None:
    doc_id = put_file(objects, catalog, "files/A/old.txt")
    objects.put_bytes("files/A/taken.txt", b"x")

    new_key = engine.rename_file("files/A/old.txt", "new.txt")

    assert new_key == "files/A/new.txt"
    assert "files/A/old.txt" not in objects.keys()
    assert catalog.get(doc_id).name == "new.txt"
    with pytest.raises(ConflictError):
        engine.rename_file(new_key, "taken.txt")
    with pytest.raises(NotFoundError):
        engine.rename_file("files/A/missing.txt", "other.txt")


def test_rename_folder_moves_contents(
    objects: MemoryObjectStore, engine: BulkOperationEngine
) -> None:
    _folder(objects, "files/A", ["a.txt"])
    _folder(objects, "files/A/B", ["b.txt"])
    objects.put_bytes("files/Busy/x.txt", b"x")

    new_path, result = engine.rename_folder("/files/A/", "Z")

    assert new_path == "/files/Z/"
    assert result.failed == 0
    assert sorted(key for key in objects.keys() if key.startswith("files/Z/")) == [
        "files/Z/.keep",
        "files/Z/B/.keep",
        "files/Z/B/b.txt",
        "files/Z/a.txt",
    ]
    assert not [key for key in objects.keys() if key.startswith("files/A/")]
    with pytest.raises(ConflictError):
        engine.rename_folder("/files/Z/", "Busy")

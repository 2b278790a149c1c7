"""Upload session tests."""

from __future__ import annotations

import threading
from typing import List, Mapping, Optional

import pytest

from rman.actors import Actor
from rman.config.models import UploadSettings
from rman.errors import PermissionDeniedError
from rman.operations import BulkOperationEngine
from rman.state import FileCatalog
from rman.stores import MemoryObjectStore
from rman.uploads import BatchResult, UploadSession, UploadSource, UploadStatus, UploadTask


class _GatedStore(MemoryObjectStore):
    """Holds every write until the test opens the gate."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.gate = threading.Event()

    def put_bytes(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        custom_metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.entered.set()
        assert self.gate.wait(timeout=5)
        super().put_bytes(key, data, content_type, custom_metadata)


def _session(
    store: MemoryObjectStore,
    catalog: FileCatalog,
    *,
    progress: Optional[List[UploadTask]] = None,
    **overrides: object,
) -> UploadSession:
    settings = UploadSettings(**{"max_concurrent": 2, "chunk_size_kb": 1, **overrides})
    return UploadSession(
        store,
        catalog,
        BulkOperationEngine(store, catalog),
        settings=settings,
        progress_callback=progress.append if progress is not None else None,
    )


def test_upload_writes_objects_and_metadata(
    objects: MemoryObjectStore, catalog: FileCatalog, member: Actor
) -> None:
    updates: List[UploadTask] = []
    sources = [
        UploadSource(name="a.txt", data=b"a" * 3000, content_type="text/plain"),
        UploadSource(name="b.png", data=b"png", content_type="image/png"),
    ]

    with _session(objects, catalog, progress=updates) as session:
        result = session.upload(sources, "/files/inbox/", member)

    assert result.is_complete
    assert result.done == 2
    assert result.message == "Successfully uploaded 2 file(s)!"
    assert sorted(result.object_keys) == ["files/inbox/a.txt", "files/inbox/b.png"]
    assert objects.get_bytes("files/inbox/a.txt") == b"a" * 3000
    assert "uploadedAt" in objects.get_metadata("files/inbox/a.txt").custom_metadata
    image = catalog.find_by_key("files/inbox/b.png")[0]
    assert image.uploaded_by == "member"
    assert image.ocr_status == "pending"
    assert catalog.find_by_key("files/inbox/a.txt")[0].ocr_status is None
    assert any(task.status is UploadStatus.RUNNING for task in updates)


def test_upload_renames_on_collision_and_keeps_relative_paths(
    objects: MemoryObjectStore, catalog: FileCatalog, member: Actor
) -> None:
    objects.put_bytes("files/inbox/scan.pdf", b"old")
    sources = [
        UploadSource(name="scan.pdf", data=b"new"),
        UploadSource(name="page.txt", data=b"p", relative_path="batch/day1"),
    ]

    with _session(objects, catalog, max_concurrent=1) as session:
        result = session.upload(sources, "/files/inbox/", member)

    assert objects.get_bytes("files/inbox/scan.pdf") == b"old"
    assert objects.get_bytes("files/inbox/scan (1).pdf") == b"new"
    assert objects.get_bytes("files/inbox/batch/day1/page.txt") == b"p"
    assert result.done == 2


def test_oversized_files_fail_without_transfer(
    objects: MemoryObjectStore, catalog: FileCatalog, member: Actor
) -> None:
    big = UploadSource(name="huge.bin", data=b"x" * (1024 * 1024 + 1))

    with _session(objects, catalog, max_file_size_mb=1) as session:
        result = session.upload([big], "/files/", member)

    assert result.errors == 1
    assert result.failures == {"huge.bin": "huge.bin exceeds the 1 MB limit"}
    assert result.is_complete
    assert objects.keys() == []


def test_viewers_cannot_upload(
    objects: MemoryObjectStore, catalog: FileCatalog, viewer: Actor
) -> None:
    with _session(objects, catalog) as session:
        with pytest.raises(PermissionDeniedError):
            session.start([UploadSource(name="a", data=b"a")], "/files/", viewer)


def test_cancel_queued_task_and_completion_tracking(catalog: FileCatalog, member: Actor) -> None:
    store = _GatedStore()
    session = _session(store, catalog, max_concurrent=1)
    first, second = session.start(
        [UploadSource(name="one.txt", data=b"1"), UploadSource(name="two.txt", data=b"2")],
        "/files/",
        member,
    )
    assert store.entered.wait(timeout=5)

    assert session.cancel(second.key)
    assert session.get(second.key).status is UploadStatus.CANCELED
    assert not session.is_complete

    store.gate.set()
    result = session.wait(timeout=5)
    session.close()

    assert session.get(first.key).status is UploadStatus.DONE
    assert session.is_complete
    assert result.done == 1
    assert result.canceled == 1
    assert result.message == "Upload finished: 1 uploaded, 1 canceled."
    assert "files/two.txt" not in store.keys()
    assert not session.cancel(first.key)


def test_pause_and_resume_queued_task(catalog: FileCatalog, member: Actor) -> None:
    store = _GatedStore()
    session = _session(store, catalog, max_concurrent=1)
    first, second = session.start(
        [UploadSource(name="one.txt", data=b"1"), UploadSource(name="two.txt", data=b"2")],
        "/files/",
        member,
    )
    assert store.entered.wait(timeout=5)

    assert session.pause(second.key)
    store.gate.set()
    session.wait(timeout=1.0)

    assert session.get(first.key).status is UploadStatus.DONE
    assert session.get(second.key).status is UploadStatus.PAUSED
    assert not session.is_complete

    assert session.resume(second.key)
    result = session.wait(timeout=5)
    session.close()

    assert result.done == 2
    assert store.get_bytes("files/two.txt") == b"2"


def test_progress_updates_are_ordered_snapshots(
    objects: MemoryObjectStore, catalog: FileCatalog, member: Actor
) -> None:
    updates: List[UploadTask] = []
    source = UploadSource(name="a.txt", data=b"a" * 3000, content_type="text/plain")

    with _session(objects, catalog, progress=updates) as session:
        session.upload([source], "/files/", member)

    statuses = [task.status for task in updates]
    transferred = [task.bytes_transferred for task in updates]
    assert statuses[0] is UploadStatus.RUNNING
    assert statuses[-1] is UploadStatus.DONE
    assert statuses.count(UploadStatus.DONE) == 1
    assert transferred == sorted(transferred)
    assert transferred[1:4] == [1024, 2048, 3000]
    assert updates[0] is not updates[-1]


def _chunk_hook(
    store: MemoryObjectStore,
    catalog: FileCatalog,
    on_first_chunk,
) -> UploadSession:
    """Return a session that calls ``on_first_chunk`` once a running task staged 1 KiB."""
    fired = threading.Event()
    holder: List[UploadSession] = []

    def _progress(task: UploadTask) -> None:
        if (
            not fired.is_set()
            and task.status is UploadStatus.RUNNING
            and task.bytes_transferred == 1024
        ):
            fired.set()
            on_first_chunk(holder[0], task)

    session = UploadSession(
        store,
        catalog,
        BulkOperationEngine(store, catalog),
        settings=UploadSettings(max_concurrent=1, chunk_size_kb=1),
        progress_callback=_progress,
    )
    holder.append(session)
    return session


def test_cancel_running_task_at_chunk_boundary(
    objects: MemoryObjectStore, catalog: FileCatalog, member: Actor
) -> None:
    session = _chunk_hook(objects, catalog, lambda owner, task: owner.cancel(task.key))

    [task] = session.start([UploadSource(name="big.bin", data=b"x" * 4096)], "/files/", member)
    result = session.wait(timeout=5)
    session.close()

    final = session.get(task.key)
    assert final.status is UploadStatus.CANCELED
    assert final.error is None
    assert final.bytes_transferred == 1024
    assert objects.keys() == []
    assert catalog.list() == []
    assert result.canceled == 1
    assert result.errors == 0
    assert result.message == "Upload finished: 0 uploaded, 1 canceled."


def test_pause_and_resume_running_task(
    objects: MemoryObjectStore, catalog: FileCatalog, member: Actor
) -> None:
    paused = threading.Event()

    def _pause(owner: UploadSession, task: UploadTask) -> None:
        owner.pause(task.key)
        paused.set()

    session = _chunk_hook(objects, catalog, _pause)
    [task] = session.start([UploadSource(name="big.bin", data=b"x" * 4096)], "/files/", member)
    assert paused.wait(timeout=5)
    session.wait(timeout=0.5)

    assert session.get(task.key).status is UploadStatus.PAUSED
    assert session.get(task.key).bytes_transferred == 1024
    assert objects.keys() == []

    assert session.resume(task.key)
    assert session.get(task.key).status in (UploadStatus.RUNNING, UploadStatus.DONE)
    result = session.wait(timeout=5)
    session.close()

    assert result.done == 1
    assert objects.get_bytes("files/big.bin") == b"x" * 4096


def test_batch_result_completion_matches_terminal_states() -> None:
    statuses = list(UploadStatus)
    for status in statuses:
        tasks = [
            UploadTask(key="1", name="a", bytes_total=1, status=UploadStatus.DONE),
            UploadTask(key="2", name="b", bytes_total=1, status=status),
        ]
        assert BatchResult.from_tasks(tasks).is_complete is status.terminal


def test_task_progress() -> None:
    task = UploadTask(key="1", name="a", bytes_total=10, bytes_transferred=5)

    assert task.progress == pytest.approx(0.5)
    assert not task.terminal


def test_upload_source_from_path(tmp_path) -> None:
    path = tmp_path / "receipt.jpg"
    path.write_bytes(b"\xff\xd8")

    source = UploadSource.from_path(path, relative_path="2024")

    assert source.content_type == "image/jpeg"
    assert source.display_name == "2024/receipt.jpg"

"""Multi-file upload sessions with pause, resume, and cancel."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from datetime import datetime, timezone
from itertools import count
from typing import Callable, Dict, Iterable, List, Optional

from rman import paths
from rman.actors import Actor
from rman.config.models import UploadSettings
from rman.errors import PermissionDeniedError, UploadCanceled
from rman.operations import BulkOperationEngine
from rman.state import FileCatalog, FileEntry
from rman.stores import ObjectStore

from .models import BatchResult, UploadSource, UploadStatus, UploadTask
from .preprocess import OptimizationMode, preprocess

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadTask], None]


class UploadSession:
    """Run a batch of uploads on a bounded worker pool.

    Each transfer is split into chunks. Between chunks the worker honors the
    task's pause and cancel tokens, so ``pause`` takes effect at the next
    chunk boundary and ``cancel`` raises :class:`UploadCanceled` inside the
    transfer. The object is written once every chunk has been staged.
    """

    def __init__(
        self,
        store: ObjectStore,
        catalog: FileCatalog,
        engine: BulkOperationEngine,
        *,
        settings: Optional[UploadSettings] = None,
        root: str = paths.ROOT_PATH,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._engine = engine
        self._settings = settings or UploadSettings()
        self._root = paths.normalize("", root)
        self._progress_callback = progress_callback
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self._settings.max_concurrent),
            thread_name_prefix="rman-upload",
        )
        self._lock = threading.Lock()
        self._tasks: Dict[str, UploadTask] = {}
        self._futures: List[Future[None]] = []
        self._started: set[str] = set()
        self._counter = count(1)

    def __enter__(self) -> "UploadSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Batch control                                                      #
    # ------------------------------------------------------------------ #

    def start(
        self,
        sources: Iterable[UploadSource],
        target: str,
        actor: Actor,
        *,
        mode: Optional[OptimizationMode] = None,
    ) -> List[UploadTask]:
        """Queue ``sources`` for upload into ``target`` and return their tasks.

        Files above the configured size limit are recorded directly in the
        Error state.

        Raises:
            PermissionDeniedError: If ``actor`` may not upload.
        """

        if not actor.can_upload:
            raise PermissionDeniedError("You do not have permission to upload files")

        folder = paths.normalize(target, self._root)
        optimization: OptimizationMode = mode or self._settings.optimization
        max_bytes = self._settings.max_file_size_mb * 1024 * 1024
        created: List[UploadTask] = []
        for source in sources:
            task = UploadTask(
                key=f"{next(self._counter)}:{source.display_name}",
                name=source.display_name,
                bytes_total=len(source.data),
            )
            with self._lock:
                self._tasks[task.key] = task
            created.append(task)
            if len(source.data) > max_bytes:
                self._finish(
                    task,
                    UploadStatus.ERROR,
                    error=f"{source.name} exceeds the {self._settings.max_file_size_mb} MB limit",
                )
                continue
            future = self._executor.submit(self._run, task, source, folder, optimization, actor)
            with self._lock:
                self._futures.append(future)
        LOGGER.info("Queued %d upload(s) into %s", len(created), folder)
        return created

    def upload(
        self,
        sources: Iterable[UploadSource],
        target: str,
        actor: Actor,
        *,
        mode: Optional[OptimizationMode] = None,
        timeout: Optional[float] = None,
    ) -> BatchResult:
        """Queue ``sources`` and block until the batch settles."""
        self.start(sources, target, actor, mode=mode)
        return self.wait(timeout)

    def wait(self, timeout: Optional[float] = None) -> BatchResult:
        """Block until every queued transfer returned, then summarize."""
        with self._lock:
            futures = list(self._futures)
        wait_futures(futures, timeout=timeout)
        return self.result()

    def result(self) -> BatchResult:
        """Return the current batch summary."""
        return BatchResult.from_tasks(self.tasks())

    def tasks(self) -> List[UploadTask]:
        """Return the tasks in submission order."""
        with self._lock:
            return list(self._tasks.values())

    def get(self, key: str) -> UploadTask:
        """Return one task by key."""
        with self._lock:
            return self._tasks[key]

    @property
    def is_complete(self) -> bool:
        """Return True iff every task is Done, Error, or Canceled."""
        with self._lock:
            return all(task.terminal for task in self._tasks.values())

    def close(self) -> None:
        """Cancel unfinished tasks and shut the worker pool down."""
        for task in self.tasks():
            if not task.terminal:
                self.cancel(task.key)
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------ #
    # Per-task control                                                   #
    # ------------------------------------------------------------------ #

    def pause(self, key: str) -> bool:
        """Pause a queued or running task at its next chunk boundary."""
        with self._lock:
            task = self._tasks[key]
            if task.status not in (UploadStatus.QUEUED, UploadStatus.RUNNING):
                return False
            task.resume_token.clear()
            task.status = UploadStatus.PAUSED
        self._notify(task)
        return True

    def resume(self, key: str) -> bool:
        """Resume a paused task."""
        with self._lock:
            task = self._tasks[key]
            if task.status is not UploadStatus.PAUSED:
                return False
            task.status = UploadStatus.RUNNING if key in self._started else UploadStatus.QUEUED
            task.resume_token.set()
        self._notify(task)
        return True

    def cancel(self, key: str) -> bool:
        """Cancel a task that has not reached a terminal state."""
        with self._lock:
            task = self._tasks[key]
            if task.terminal:
                return False
            task.cancel_token.set()
            task.resume_token.set()
            started = key in self._started
        if not started:
            self._finish(task, UploadStatus.CANCELED)
        return True

    # ------------------------------------------------------------------ #
    # Worker                                                             #
    # ------------------------------------------------------------------ #

    def _run(
        self,
        task: UploadTask,
        source: UploadSource,
        folder: str,
        mode: OptimizationMode,
        actor: Actor,
    ) -> None:
        try:
            self._checkpoint(task)
            with self._lock:
                if task.terminal:
                    return
                self._started.add(task.key)
                if task.status is not UploadStatus.PAUSED:
                    task.status = UploadStatus.RUNNING
            self._notify(task)

            data = preprocess(
                source.data,
                source.content_type,
                mode,
                max_edge=self._settings.max_edge,
                quality=self._settings.quality,
            )
            destination = folder
            if source.relative_path:
                destination = paths.join(folder, source.relative_path, self._root)
            name = self._engine.ensure_unique_path(destination, source.name)
            object_key = paths.object_key_for(destination, name, self._root)
            with self._lock:
                task.bytes_total = len(data)
                task.object_key = object_key

            self._transfer(task, object_key, data, source.content_type)
            entry = FileEntry(
                id=object_key,
                name=name,
                parent_path=destination,
                object_key=object_key,
                size=len(data),
                content_type=source.content_type,
                uploaded_at=datetime.now(timezone.utc),
                uploaded_by=actor.id,
                ocr_status="pending" if source.content_type.startswith("image/") else None,
            )
            document_id = self._catalog.create(entry)
            with self._lock:
                task.document_id = document_id
            self._finish(task, UploadStatus.DONE)
            LOGGER.debug("Uploaded %s to %s", source.display_name, object_key)
        except UploadCanceled:
            LOGGER.info("Upload of %s canceled", source.display_name)
            self._finish(task, UploadStatus.CANCELED)
        except Exception as exc:
            LOGGER.warning("Upload of %s failed: %s", source.display_name, exc)
            self._finish(task, UploadStatus.ERROR, error=str(exc) or type(exc).__name__)

    def _transfer(self, task: UploadTask, key: str, data: bytes, content_type: str) -> None:
        chunk_size = max(1, self._settings.chunk_size_kb * 1024)
        staged = bytearray()
        for offset in range(0, len(data), chunk_size):
            self._checkpoint(task)
            staged += data[offset : offset + chunk_size]
            with self._lock:
                task.bytes_transferred = len(staged)
            self._notify(task)
        self._checkpoint(task)
        self._store.put_bytes(
            key,
            bytes(staged),
            content_type,
            {"uploadedAt": datetime.now(timezone.utc).isoformat()},
        )

    def _checkpoint(self, task: UploadTask) -> None:
        task.resume_token.wait()
        if task.cancel_token.is_set():
            raise UploadCanceled(f"Upload of {task.name} was canceled")

    def _finish(
        self, task: UploadTask, status: UploadStatus, *, error: Optional[str] = None
    ) -> None:
        with self._lock:
            task.status = status
            task.error = error
        self._notify(task)

    def _notify(self, task: UploadTask) -> None:
        if self._progress_callback is None:
            return
        with self._lock:
            snapshot = task.snapshot()
        self._progress_callback(snapshot)


__all__ = ["UploadSession", "ProgressCallback"]

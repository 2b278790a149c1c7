"""Upload task and batch models."""

from __future__ import annotations

import copy
import mimetypes
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadStatus(str, Enum):
    """Lifecycle states of a single upload."""

    QUEUED = "queued"
    RUNNING = "running"
    PAUSED = "paused"
    DONE = "done"
    ERROR = "error"
    CANCELED = "canceled"

    @property
    def terminal(self) -> bool:
        """Return True for states an upload never leaves."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({UploadStatus.DONE, UploadStatus.ERROR, UploadStatus.CANCELED})


class UploadSource(BaseModel):
    """Bytes to upload together with their intended name.

    Attributes:
        name: File name used for the destination object.
        data: File contents.
        content_type: MIME type reported for the file.
        relative_path: Directory part preserved under the target folder
            for folder uploads (``sub/dir``).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    data: bytes
    content_type: str = "application/octet-stream"
    relative_path: Optional[str] = None

    @classmethod
    def from_path(cls, path: Path, relative_path: Optional[str] = None) -> "UploadSource":
        """Read ``path`` from disk and guess its content type."""
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            data=path.read_bytes(),
            content_type=guessed or "application/octet-stream",
            relative_path=relative_path,
        )

    @property
    def display_name(self) -> str:
        """Return the name including its relative directory."""
        if self.relative_path:
            return f"{self.relative_path.strip('/')}/{self.name}"
        return self.name


@dataclass
class UploadTask:
    """Mutable progress record for one upload.

    The session owns the record and updates it under its lock; callers read
    snapshots through :meth:`UploadSession.tasks`.
    """

    key: str
    name: str
    bytes_total: int
    status: UploadStatus = UploadStatus.QUEUED
    bytes_transferred: int = 0
    object_key: Optional[str] = None
    document_id: Optional[str] = None
    error: Optional[str] = None
    cancel_token: threading.Event = field(default_factory=threading.Event, repr=False)
    resume_token: threading.Event = field(default_factory=threading.Event, repr=False)

    def __post_init__(self) -> None:
        self.resume_token.set()

    @property
    def terminal(self) -> bool:
        """Return True once the upload finished, failed, or was canceled."""
        return self.status.terminal

    @property
    def progress(self) -> float:
        """Return completion as a fraction between 0 and 1."""
        if self.bytes_total <= 0:
            return 1.0 if self.status is UploadStatus.DONE else 0.0
        return min(1.0, self.bytes_transferred / self.bytes_total)

    def snapshot(self) -> "UploadTask":
        """Return a copy that later updates to this task leave untouched."""
        return copy.copy(self)


class BatchResult(BaseModel):
    """Summary of a finished or in-flight upload batch."""

    total: int = 0
    done: int = 0
    errors: int = 0
    canceled: int = 0
    object_keys: List[str] = Field(default_factory=list)
    failures: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_tasks(cls, tasks: List[UploadTask]) -> "BatchResult":
        """Aggregate counts from task records."""
        result = cls(total=len(tasks))
        for task in tasks:
            if task.status is UploadStatus.DONE:
                result.done += 1
                if task.object_key:
                    result.object_keys.append(task.object_key)
            elif task.status is UploadStatus.ERROR:
                result.errors += 1
                result.failures[task.name] = task.error or "unknown error"
            elif task.status is UploadStatus.CANCELED:
                result.canceled += 1
        return result

    @property
    def is_complete(self) -> bool:
        """Return True when every task reached a terminal state."""
        return self.done + self.errors + self.canceled == self.total

    @property
    def message(self) -> str:
        """Return the aggregate status line."""
        if self.errors == 0 and self.canceled == 0:
            return f"Successfully uploaded {self.done} file(s)!"
        parts = [f"{self.done} uploaded"]
        if self.errors:
            parts.append(f"{self.errors} failed")
        if self.canceled:
            parts.append(f"{self.canceled} canceled")
        return "Upload finished: " + ", ".join(parts) + "."


__all__ = [
    "UploadStatus",
    "TERMINAL_STATUSES",
    "UploadSource",
    "UploadTask",
    "BatchResult",
]

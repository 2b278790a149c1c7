"""Bulk operation data models."""

from __future__ import annotations

from typing import Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from rman.state.models import FileEntry

OverwritePolicy = Literal["skip", "overwrite"]
OperationKind = Literal["copy", "move", "delete", "rename"]
OutcomeStatus = Literal["succeeded", "skipped", "failed"]


class Selection(BaseModel):
    """A mixed selection of files (object keys) and folders (folder paths).

    Attributes:
        files: Object keys of the selected files.
        folders: Folder paths of the selected folders.
    """

    files: List[str] = Field(default_factory=list)
    folders: List[str] = Field(default_factory=list)

    @classmethod
    def of(
        cls,
        files: Iterable[Union[str, FileEntry]] = (),
        folders: Iterable[str] = (),
    ) -> "Selection":
        """Build a selection from keys or entries and folder paths."""
        keys = [item.object_key if isinstance(item, FileEntry) else str(item) for item in files]
        return cls(files=keys, folders=list(folders))

    @property
    def empty(self) -> bool:
        """Return True when nothing is selected."""
        return not self.files and not self.folders


class OperationOutcome(BaseModel):
    """Result of one per-object step of a bulk operation.

    Attributes:
        operation: Kind of operation performed.
        source: Source object key or folder path.
        destination: Destination key, when the operation has one.
        status: Whether the step succeeded, was skipped, or failed.
        error: Failure message for failed steps.
        placeholder: Whether the step touched a folder placeholder object.
    """

    operation: OperationKind
    source: str
    destination: Optional[str] = None
    status: OutcomeStatus
    error: Optional[str] = None
    placeholder: bool = False


class FolderDetails(BaseModel):
    """Direct contents of a folder.

    Attributes:
        path: Folder path.
        files: Number of direct files, placeholders excluded.
        folders: Number of direct subfolders.
        has_placeholder: Whether a placeholder object keeps the folder alive.
    """

    path: str
    files: int = 0
    folders: int = 0
    has_placeholder: bool = False


class BulkResult(BaseModel):
    """Aggregated outcomes of a bulk operation.

    Placeholder objects are carried along with their folders but only show up
    in the counts when handling them fails.
    """

    operation: OperationKind
    outcomes: List[OperationOutcome] = Field(default_factory=list)

    def record(self, outcome: OperationOutcome) -> OperationOutcome:
        """Append an outcome and return it."""
        self.outcomes.append(outcome)
        return outcome

    def extend(self, other: "BulkResult") -> None:
        """Absorb the outcomes of another result."""
        self.outcomes.extend(other.outcomes)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if outcome.status == status and (status == "failed" or not outcome.placeholder)
        )

    @property
    def succeeded(self) -> int:
        """Return the number of objects processed successfully."""
        return self._count("succeeded")

    @property
    def skipped(self) -> int:
        """Return the number of objects skipped because of a conflict."""
        return self._count("skipped")

    @property
    def failed(self) -> int:
        """Return the number of failed steps."""
        return self._count("failed")

    @property
    def partial_failure(self) -> bool:
        """Return True when at least one step failed."""
        return self.failed > 0

    @property
    def errors(self) -> List[str]:
        """Return ``source: message`` strings for failed steps."""
        return [
            f"{outcome.source}: {outcome.error}"
            for outcome in self.outcomes
            if outcome.status == "failed"
        ]

    def summary(self) -> str:
        """Return a human-readable summary line."""
        label = self.operation.capitalize()
        counts = f"{self.succeeded} succeeded, {self.skipped} skipped"
        if self.failed:
            return f"{label} completed with {self.failed} error(s): {counts}."
        return f"{label} completed: {counts}."


__all__ = [
    "OverwritePolicy",
    "OperationKind",
    "OutcomeStatus",
    "Selection",
    "OperationOutcome",
    "FolderDetails",
    "BulkResult",
]

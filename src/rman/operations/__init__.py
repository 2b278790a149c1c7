"""Bulk file and folder operations."""

from .engine import PLACEHOLDER_CONTENT_TYPE, BulkOperationEngine
from .models import (
    BulkResult,
    FolderDetails,
    OperationKind,
    OperationOutcome,
    OutcomeStatus,
    OverwritePolicy,
    Selection,
)

__all__ = [
    "BulkOperationEngine",
    "PLACEHOLDER_CONTENT_TYPE",
    "BulkResult",
    "FolderDetails",
    "OperationKind",
    "OperationOutcome",
    "OutcomeStatus",
    "OverwritePolicy",
    "Selection",
]

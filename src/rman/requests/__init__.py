"""Approval workflow for deletes, renames, and role upgrades."""

from .models import ActionResult, PendingRequest, RequestStatus, RequestType, TargetType
from .workflow import ApprovalListener, RequestsCallback, RequestWorkflow

__all__ = [
    "ActionResult",
    "PendingRequest",
    "RequestStatus",
    "RequestType",
    "TargetType",
    "ApprovalListener",
    "RequestsCallback",
    "RequestWorkflow",
]

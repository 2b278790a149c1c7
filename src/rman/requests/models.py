"""Pending request records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from rman.operations import BulkResult

RequestType = Literal["delete", "rename", "role-upgrade"]
RequestStatus = Literal["pending", "approved", "rejected", "error"]
TargetType = Literal["file", "folder"]

_FIELD_NAMES = {
    "type": "type",
    "target_type": "targetType",
    "target_file_id": "fileId",
    "target_folder_path": "folderPath",
    "path": "path",
    "file_name": "fileName",
    "new_file_name": "newFileName",
    "requested_role": "requestedRole",
    "requested_by": "requestedBy",
    "requested_at": "requestedAt",
    "status": "status",
    "admin_response": "adminResponse",
    "processed_by": "processedBy",
    "processed_at": "processedAt",
    "applied_at": "appliedAt",
}


class PendingRequest(BaseModel):
    """A mutation requested by a non-privileged user, awaiting review.

    Attributes:
        id: Metadata document identifier.
        type: Requested mutation.
        target_type: Whether a file or a folder is targeted.
        target_file_id: Metadata document id of the targeted file.
        target_folder_path: Folder path for folder deletes.
        path: Object key (files) or folder path (folders) of the target.
        file_name: Display name of the target at request time.
        new_file_name: Requested name for renames.
        requested_role: Requested role for role upgrades.
        requested_by: Identifier of the requesting user.
        requested_at: Submission time.
        status: Review state.
        admin_response: Reviewer's free-text reason or error message.
        processed_by: Identifier of the reviewer.
        processed_at: Time of the review decision.
        applied_at: Time the approved mutation was carried out.
    """

    id: str = ""
    type: RequestType
    target_type: TargetType = "file"
    target_file_id: Optional[str] = None
    target_folder_path: Optional[str] = None
    path: Optional[str] = None
    file_name: Optional[str] = None
    new_file_name: Optional[str] = None
    requested_role: Optional[str] = None
    requested_by: str
    requested_at: datetime = datetime.min.replace(tzinfo=timezone.utc)
    status: RequestStatus = "pending"
    admin_response: str = ""
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> "PendingRequest":
        """Build a request from its stored document."""
        values: Dict[str, Any] = {"id": doc_id}
        for attribute, key in _FIELD_NAMES.items():
            if data.get(key) is not None:
                values[attribute] = data[key]
        values.setdefault("requested_by", "")
        return cls.model_validate(values)

    def to_document(self) -> Dict[str, Any]:
        """Return the document body, omitting unset optional fields."""
        document: Dict[str, Any] = {}
        for attribute, key in _FIELD_NAMES.items():
            value = getattr(self, attribute)
            if value is None:
                continue
            document[key] = value.isoformat() if isinstance(value, datetime) else value
        return document

    @property
    def describe(self) -> str:
        """Return a one-line description of the requested change."""
        if self.type == "role-upgrade":
            return f"role upgrade to {self.requested_role}"
        if self.type == "rename":
            return f"rename {self.file_name} to {self.new_file_name}"
        return f"delete {self.target_type} {self.path or self.file_name}"


class ActionResult(BaseModel):
    """What a role-aware delete or rename ended up doing.

    Privileged actors execute directly and get ``executed`` set; everyone
    else gets the submitted request back.
    """

    executed: bool
    message: str
    requests: List[PendingRequest] = Field(default_factory=list)
    result: Optional[BulkResult] = None
    object_key: Optional[str] = None


__all__ = [
    "RequestType",
    "RequestStatus",
    "TargetType",
    "PendingRequest",
    "ActionResult",
]

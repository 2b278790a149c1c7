"""Metadata records describing stored files."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from rman import paths

OcrStatus = Literal["pending", "done", "error"]


class FileEntry(BaseModel):
    """Metadata describing one stored file.

    Attributes:
        id: Metadata document identifier, or the object key for listing stubs.
        name: Display name of the file.
        parent_path: Folder path that contains the object.
        object_key: Full object-store key.
        size: Size in bytes when known.
        content_type: MIME type when known.
        uploaded_at: Upload timestamp when known.
        uploaded_by: Identifier of the uploading user.
        tags: Free-form key/value annotations.
        ocr_status: Text-recognition progress for image uploads.
    """

    id: str
    name: str
    parent_path: str = paths.ROOT_PATH
    object_key: str
    size: Optional[int] = None
    content_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    uploaded_by: Optional[str] = None
    tags: Dict[str, str] = Field(default_factory=dict)
    ocr_status: Optional[OcrStatus] = None

    @classmethod
    def from_object_key(cls, key: str, *, root: str = paths.ROOT_PATH) -> "FileEntry":
        """Return a listing stub for ``key`` without any metadata document."""
        parent, name = paths.split_object_key(key, root)
        return cls(id=key, name=name, parent_path=parent, object_key=key)

    @classmethod
    def from_document(
        cls, doc_id: str, data: Mapping[str, Any], *, root: str = paths.ROOT_PATH
    ) -> "FileEntry":
        """Build an entry from a ``files`` collection document.

        Documents written by older clients may lack ``path`` or ``name``; both
        are derived from ``fullPath`` in that case.
        """

        full_path = str(data.get("fullPath") or "")
        derived_parent, derived_name = paths.split_object_key(full_path, root)
        stored_parent = str(data.get("path") or "").strip()
        raw_tags = data.get("tags")
        tags = (
            {str(key): str(value) for key, value in raw_tags.items()}
            if isinstance(raw_tags, Mapping)
            else {}
        )
        ocr = data.get("ocrStatus")
        return cls(
            id=doc_id,
            name=str(data.get("name") or derived_name or doc_id),
            parent_path=paths.normalize(stored_parent, root) if stored_parent else derived_parent,
            object_key=full_path or doc_id,
            size=data.get("size") if isinstance(data.get("size"), int) else None,
            content_type=data.get("type") or None,
            uploaded_at=data.get("uploadedAt") or None,
            uploaded_by=data.get("uploadedBy") or None,
            tags=tags,
            ocr_status=ocr if ocr in ("pending", "done", "error") else None,
        )

    def to_document(self) -> Dict[str, Any]:
        """Return the ``files`` collection document body for this entry."""
        uploaded_at = self.uploaded_at or datetime.now(timezone.utc)
        document: Dict[str, Any] = {
            "name": self.name,
            "path": self.parent_path,
            "fullPath": self.object_key,
            "size": self.size,
            "type": self.content_type,
            "uploadedAt": uploaded_at.isoformat(),
            "uploadedBy": self.uploaded_by,
            "tags": dict(self.tags),
        }
        if self.ocr_status is not None:
            document["ocrStatus"] = self.ocr_status
        return document


__all__ = ["FileEntry", "OcrStatus"]

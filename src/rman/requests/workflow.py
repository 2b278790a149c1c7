"""Request submission, review, and application."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union

from rman import paths
from rman.actors import Actor, Role
from rman.errors import NotFoundError, PermissionDeniedError, RequestStateError, RmanError
from rman.operations import BulkOperationEngine
from rman.state import FileCatalog, FileEntry
from rman.stores import REQUESTS_COLLECTION, USERS_COLLECTION, Document, MetadataStore

from .models import ActionResult, PendingRequest, TargetType

LOGGER = logging.getLogger(__name__)

RequestsCallback = Callable[[List[PendingRequest]], None]
FileTarget = Union[FileEntry, str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RequestWorkflow:
    """Gate destructive operations behind admin approval.

    Admins execute deletes and renames directly; other users submit a
    :class:`PendingRequest` that an admin later approves or rejects.
    Approving marks the request approved and then applies it; a failed
    application moves the request to the ``error`` state.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        engine: BulkOperationEngine,
        catalog: FileCatalog,
        *,
        collection: str = REQUESTS_COLLECTION,
        users_collection: str = USERS_COLLECTION,
        root: str = paths.ROOT_PATH,
    ) -> None:
        self._metadata = metadata
        self._engine = engine
        self._catalog = catalog
        self._collection = collection
        self._users_collection = users_collection
        self._root = paths.normalize("", root)

    # ------------------------------------------------------------------ #
    # Submission                                                         #
    # ------------------------------------------------------------------ #

    def submit_delete(
        self, actor: Actor, target: FileTarget, target_type: TargetType = "file"
    ) -> PendingRequest:
        """Record a request to delete a file or a folder.

        Args:
            actor: Requesting user.
            target: A file entry, an object key, or a folder path.
            target_type: Whether ``target`` names a file or a folder.

        Returns:
            PendingRequest: The stored request.
        """

        if target_type == "folder":
            folder = paths.normalize(str(target), self._root)
            request = PendingRequest(
                type="delete",
                target_type="folder",
                target_folder_path=folder,
                path=folder,
                file_name=paths.folder_name(folder),
                requested_by=actor.id,
                requested_at=_now(),
            )
        else:
            key, file_id, name = self._file_target(target)
            request = PendingRequest(
                type="delete",
                target_type="file",
                target_file_id=file_id,
                path=key,
                file_name=name,
                requested_by=actor.id,
                requested_at=_now(),
            )
        return self._submit(request)

    def submit_rename(self, actor: Actor, target: FileTarget, new_name: str) -> PendingRequest:
        """Record a request to change a file's display name."""
        key, file_id, name = self._file_target(target)
        if file_id is None:
            raise NotFoundError(f"No metadata document found for {key}")
        request = PendingRequest(
            type="rename",
            target_file_id=file_id,
            path=key,
            file_name=name,
            new_file_name=new_name,
            requested_by=actor.id,
            requested_at=_now(),
        )
        return self._submit(request)

    def submit_role_upgrade(self, actor: Actor, requested_role: Role) -> PendingRequest:
        """Record a request for a different role."""
        request = PendingRequest(
            type="role-upgrade",
            target_type="file",
            requested_role=requested_role,
            requested_by=actor.id,
            requested_at=_now(),
        )
        return self._submit(request)

    # ------------------------------------------------------------------ #
    # Role-aware entry points                                            #
    # ------------------------------------------------------------------ #

    def delete(
        self, actor: Actor, target: FileTarget, target_type: TargetType = "file"
    ) -> ActionResult:
        """Delete directly for admins, otherwise submit a delete request."""

        if not actor.privileged:
            request = self.submit_delete(actor, target, target_type)
            return ActionResult(
                executed=False,
                message="Delete request submitted for admin review.",
                requests=[request],
            )
        if target_type == "folder":
            result = self._engine.delete_folder(str(target))
            return ActionResult(executed=True, message=result.summary(), result=result)
        key, _, name = self._file_target(target)
        self._engine.delete_file(key)
        return ActionResult(executed=True, message=f"Deleted {name}.", object_key=key)

    def rename(self, actor: Actor, target: FileTarget, new_name: str) -> ActionResult:
        """Rename directly for admins, otherwise submit a rename request.

        A direct rename moves the object to its new key; an approved request
        only changes the display name stored in the metadata document.
        """

        if not actor.privileged:
            request = self.submit_rename(actor, target, new_name)
            return ActionResult(
                executed=False,
                message="Rename request submitted for admin review.",
                requests=[request],
            )
        key, _, name = self._file_target(target)
        new_key = self._engine.rename_file(key, new_name)
        return ActionResult(
            executed=True, message=f"Renamed {name} to {new_name}.", object_key=new_key
        )

    # ------------------------------------------------------------------ #
    # Review                                                             #
    # ------------------------------------------------------------------ #

    def get(self, request_id: str) -> PendingRequest:
        """Load one request.

        Raises:
            NotFoundError: If the request does not exist.
        """
        data = self._metadata.get_document(self._collection, request_id)
        return PendingRequest.from_document(request_id, data)

    def approve(self, actor: Actor, request_id: str, response: str = "") -> PendingRequest:
        """Apply a request and mark it approved.

        Approving an already approved request changes nothing. A failure
        while applying records the ``error`` status and the message.

        Raises:
            PermissionDeniedError: If ``actor`` is not an admin.
            RequestStateError: If the request was rejected.
        """

        self._require_privileged(actor)
        request = self.get(request_id)
        if request.status == "approved":
            LOGGER.debug("Request %s already approved", request_id)
            return request if request.applied_at is not None else self.apply(request_id)
        if request.status == "rejected":
            raise RequestStateError(f"Request {request_id} was already rejected.")

        self._update(
            request_id,
            {
                "status": "approved",
                "adminResponse": response,
                "processedBy": actor.id,
                "processedAt": _now().isoformat(),
            },
        )
        return self.apply(request_id)

    def mark_approved(self, actor: Actor, request_id: str, response: str = "") -> PendingRequest:
        """Flip a request to approved without applying it.

        An :class:`ApprovalListener` watching the collection applies it.
        """

        self._require_privileged(actor)
        request = self.get(request_id)
        if request.status == "approved":
            return request
        if request.status == "rejected":
            raise RequestStateError(f"Request {request_id} was already rejected.")
        self._update(
            request_id,
            {
                "status": "approved",
                "adminResponse": response,
                "processedBy": actor.id,
                "processedAt": _now().isoformat(),
            },
        )
        return self.get(request_id)

    def apply(self, request_id: str) -> PendingRequest:
        """Carry out an approved request that has not been applied yet."""

        request = self.get(request_id)
        if request.status != "approved":
            raise RequestStateError(f"Request {request_id} is {request.status}, not approved.")
        if request.applied_at is not None:
            return request
        try:
            self._execute(request)
        except Exception as exc:
            LOGGER.warning("Applying request %s failed: %s", request_id, exc)
            self._update(
                request_id,
                {
                    "status": "error",
                    "adminResponse": f"Error: {exc}",
                    "processedAt": _now().isoformat(),
                },
            )
            return self.get(request_id)
        self._update(request_id, {"appliedAt": _now().isoformat()})
        LOGGER.info("Applied request %s (%s)", request_id, request.describe)
        return self.get(request_id)

    def reject(self, actor: Actor, request_id: str, reason: str = "") -> PendingRequest:
        """Mark a pending request rejected with an optional reason.

        Raises:
            PermissionDeniedError: If ``actor`` is not an admin.
            RequestStateError: If the request was already approved.
        """

        self._require_privileged(actor)
        request = self.get(request_id)
        if request.status == "rejected":
            return request
        if request.status == "approved":
            raise RequestStateError(f"Request {request_id} was already approved.")
        self._update(
            request_id,
            {
                "status": "rejected",
                "adminResponse": reason,
                "processedBy": actor.id,
                "processedAt": _now().isoformat(),
            },
        )
        return self.get(request_id)

    # ------------------------------------------------------------------ #
    # Queries                                                            #
    # ------------------------------------------------------------------ #

    def requests_for(self, user_id: str) -> List[PendingRequest]:
        """Return a user's requests, newest first."""
        documents = self._metadata.query_equals(self._collection, {"requestedBy": user_id})
        requests = [PendingRequest.from_document(doc.id, doc.data) for doc in documents]
        return sorted(requests, key=lambda request: request.requested_at, reverse=True)

    def pending(self) -> List[PendingRequest]:
        """Return every pending request, oldest first."""
        documents = self._metadata.query_equals(self._collection, {"status": "pending"})
        requests = [PendingRequest.from_document(doc.id, doc.data) for doc in documents]
        return sorted(requests, key=lambda request: request.requested_at)

    def all(self) -> List[PendingRequest]:
        """Return every request, newest first."""
        documents = self._metadata.list_documents(self._collection)
        requests = [PendingRequest.from_document(doc.id, doc.data) for doc in documents]
        return sorted(requests, key=lambda request: request.requested_at, reverse=True)

    def listen(self, callback: RequestsCallback) -> Callable[[], None]:
        """Deliver all requests now and after every change."""

        def _on_change(documents: List[Document]) -> None:
            callback([PendingRequest.from_document(doc.id, doc.data) for doc in documents])

        return self._metadata.subscribe_collection(self._collection, _on_change)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _submit(self, request: PendingRequest) -> PendingRequest:
        request_id = self._metadata.create_document(self._collection, request.to_document())
        LOGGER.info("Submitted request %s: %s", request_id, request.describe)
        return request.model_copy(update={"id": request_id})

    def _update(self, request_id: str, changes: Dict[str, object]) -> None:
        self._metadata.update_document(self._collection, request_id, changes)

    def _execute(self, request: PendingRequest) -> None:
        if request.type == "role-upgrade":
            self._metadata.set_document(
                self._users_collection,
                request.requested_by,
                {"role": request.requested_role, "updatedAt": _now().isoformat()},
                merge=True,
            )
            return

        if request.type == "rename":
            if not request.target_file_id or not request.new_file_name:
                raise RequestStateError("Rename request is missing its file or new name.")
            self._catalog.rename(request.target_file_id, request.new_file_name)
            return

        if request.target_type == "folder":
            result = self._engine.delete_folder(request.target_folder_path or request.path or "")
            if result.partial_failure:
                raise RmanError(result.summary())
            return

        key = request.path
        if not key and request.target_file_id:
            try:
                key = self._catalog.get(request.target_file_id).object_key
            except NotFoundError:
                LOGGER.debug("Request %s targets a file that is already gone", request.id)
                return
        if key:
            self._engine.delete_file(key)
        if request.target_file_id:
            self._catalog.delete(request.target_file_id)

    def _file_target(self, target: FileTarget) -> tuple[str, Optional[str], str]:
        if isinstance(target, FileEntry):
            file_id = target.id if target.id != target.object_key else None
            if file_id is None:
                file_id = self._document_id_for(target.object_key)
            return target.object_key, file_id, target.name
        key = str(target).strip("/")
        _, name = paths.split_object_key(key, self._root)
        return key, self._document_id_for(key), name

    def _document_id_for(self, key: str) -> Optional[str]:
        entries = self._catalog.find_by_key(key)
        return entries[0].id if entries else None

    def _require_privileged(self, actor: Actor) -> None:
        if not actor.privileged:
            raise PermissionDeniedError(f"{actor.id} may not review requests.")


class ApprovalListener:
    """Apply requests as soon as their status flips to approved.

    Mirrors a server-side trigger: only transitions observed while listening
    are acted on, and requests already carrying an application time are left
    alone.
    """

    def __init__(self, workflow: RequestWorkflow) -> None:
        self._workflow = workflow
        self._statuses: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._primed = False

    def start(self) -> None:
        """Begin watching the requests collection."""
        if self._unsubscribe is None:
            self._unsubscribe = self._workflow.listen(self._on_change)

    def stop(self) -> None:
        """Stop watching."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            self._primed = False

    def _on_change(self, requests: List[PendingRequest]) -> None:
        to_apply: List[str] = []
        with self._lock:
            for request in requests:
                before = self._statuses.get(request.id)
                self._statuses[request.id] = request.status
                if not self._primed:
                    continue
                if (
                    before != "approved"
                    and request.status == "approved"
                    and request.applied_at is None
                ):
                    to_apply.append(request.id)
            self._primed = True
        for request_id in to_apply:
            self._workflow.apply(request_id)


__all__ = ["RequestWorkflow", "ApprovalListener", "RequestsCallback"]

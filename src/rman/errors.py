"""Error taxonomy shared by the storage-facing components."""


class RmanError(Exception):
    """Base exception for file manager operations."""


class NotFoundError(RmanError):
    """Raised when an object or metadata document is absent."""


class ConflictError(RmanError):
    """Raised when a destination key is already occupied."""


class InvalidDestinationError(RmanError):
    """Raised when a destination is rejected before any mutation begins."""


class PermissionDeniedError(RmanError):
    """Raised when the acting user's role does not allow the operation."""


class TransientError(RmanError):
    """Raised for network-style failures that callers may choose to retry."""


class ListingError(RmanError):
    """Raised when a prefix listing fails while materializing a tree node."""


class UploadCanceled(RmanError):
    """Raised inside a transfer once its task has been canceled."""


class RequestStateError(RmanError):
    """Raised when a pending request cannot transition to the requested state."""


class StoreError(RmanError):
    """Raised when a backend cannot read or write its persisted data."""


__all__ = [
    "RmanError",
    "NotFoundError",
    "ConflictError",
    "InvalidDestinationError",
    "PermissionDeniedError",
    "TransientError",
    "ListingError",
    "UploadCanceled",
    "RequestStateError",
    "StoreError",
]

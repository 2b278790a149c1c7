"""Upload session management and JPEG preprocessing."""

from .models import BatchResult, TERMINAL_STATUSES, UploadSource, UploadStatus, UploadTask
from .preprocess import (
    OptimizationMode,
    downscale_jpeg,
    is_jpeg,
    preprocess,
    strip_jpeg_metadata,
)
from .session import ProgressCallback, UploadSession

__all__ = [
    "BatchResult",
    "TERMINAL_STATUSES",
    "UploadSource",
    "UploadStatus",
    "UploadTask",
    "OptimizationMode",
    "downscale_jpeg",
    "is_jpeg",
    "preprocess",
    "strip_jpeg_metadata",
    "ProgressCallback",
    "UploadSession",
]

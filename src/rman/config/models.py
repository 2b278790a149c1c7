"""Configuration models describing Receipt Manager settings."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class RmanBaseModel(BaseModel):
    """Shared configuration for rman Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class StorageSettings(RmanBaseModel):
    """Storage layout and backend configuration.

    Attributes:
        root_path: User-facing root folder that every path is anchored to.
        data_dir: Directory holding the local object store and metadata file.
        placeholder_name: Object name used to materialize empty folders.
        include_files: Whether tree listings also record direct files.
    """

    root_path: str = "/files/"
    data_dir: str = "~/.rman/data"
    placeholder_name: str = ".keep"
    include_files: bool = True


class UploadSettings(RmanBaseModel):
    """Options governing the upload session manager.

    Attributes:
        optimization: Default JPEG preprocessing mode for uploads.
        max_edge: Longest edge, in pixels, allowed by the balanced mode.
        quality: JPEG quality used when re-encoding in balanced mode.
        chunk_size_kb: Size of each resumable transfer chunk.
        max_concurrent: Number of transfers allowed to run at once.
        max_file_size_mb: Largest file accepted into an upload batch.
    """

    optimization: Literal["off", "lossless", "balanced"] = "balanced"
    max_edge: int = 2_000
    quality: int = 85
    chunk_size_kb: int = 256
    max_concurrent: int = 4
    max_file_size_mb: int = 10


class OperationSettings(RmanBaseModel):
    """Defaults for copy/move operations.

    Attributes:
        overwrite_policy: Behavior when a destination key is already occupied.
    """

    overwrite_policy: Literal["skip", "overwrite"] = "skip"


class SearchSettings(RmanBaseModel):
    """Tag search limits and suggestions.

    Attributes:
        server_limit: Maximum documents returned by the indexed equality query.
        scan_limit: Maximum documents fetched when scanning client-side.
        default_keys: Tag keys always offered as suggestions.
    """

    server_limit: int = 300
    scan_limit: int = 1_000
    default_keys: List[str] = Field(
        default_factory=lambda: ["ProjectName", "Value", "Reciepent", "Date", "ExpenseName"]
    )


class LoggingSettings(RmanBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
        log_to_file: Whether to also write a rotating log under the data directory.
    """

    level: str = "WARNING"
    max_size_mb: int = 100
    backup_count: int = 5
    log_to_file: bool = False


class CLIOptions(RmanBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        default_user: Actor identifier used when `--user` is not given.
        default_role: Role assumed when `--role` is not given.
    """

    quiet_default: bool = False
    default_user: str = "local"
    default_role: Literal["admin", "user", "viewer"] = "admin"


class RmanConfig(RmanBaseModel):
    """Top-level configuration struct for rman.

    Attributes:
        storage: Storage layout settings.
        uploads: Upload session settings.
        operations: Bulk operation defaults.
        search: Tag search settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    storage: StorageSettings = Field(default_factory=StorageSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)
    operations: OperationSettings = Field(default_factory=OperationSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "RmanBaseModel",
    "StorageSettings",
    "UploadSettings",
    "OperationSettings",
    "SearchSettings",
    "LoggingSettings",
    "CLIOptions",
    "RmanConfig",
]

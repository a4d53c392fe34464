"""Configuration models describing migration settings."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from stashmigrate.state import DEFAULT_STATE_DIRNAME


class StashBaseModel(BaseModel):
    """Shared configuration for stash-migrate Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class LegacySettings(StashBaseModel):
    """Location and access options for the legacy store and file layout.

    Attributes:
        database_path: Path to the legacy SQLite database.
        timeout_seconds: How long to wait for a database lock before giving up.
        read_only: Whether to open the database in read-only mode.
        content_root: Directory the stored locator patterns are matched against.
        thumbnail_dir: Directory holding pre-computed thumbnails.
        thumbnail_extension: Extension shared by every legacy thumbnail.
    """

    database_path: str = "./storage/database/stash.db"
    timeout_seconds: float = Field(default=5.0, gt=0)
    read_only: bool = False
    content_root: str = "."
    thumbnail_dir: str = "../thumbnail"
    thumbnail_extension: str = "webp"


class MetadataStoreSettings(StashBaseModel):
    """Target metadata store selection.

    Attributes:
        backend: Registered metadata store name.
        path: Location of the store document for file-backed stores.
    """

    backend: str = "json"
    path: str = "./storage/metadata/store.json"


class BlobStoreSettings(StashBaseModel):
    """Target blob store selection.

    Attributes:
        backend: Registered blob store name.
        root: Root directory for filesystem-backed stores.
    """

    backend: str = "local"
    root: str = "./storage/files"


class MigrationOptions(StashBaseModel):
    """Options governing how the pipeline reacts to failures and reruns.

    Attributes:
        on_file_error: Whether a failed file aborts the run or is recorded and skipped.
        checkpoint: Whether progress is persisted after every record.
        state_dir: Directory that stores checkpoint state.
    """

    on_file_error: Literal["abort", "continue"] = "abort"
    checkpoint: bool = False
    state_dir: str = f"./{DEFAULT_STATE_DIRNAME}"


class LoggingSettings(StashBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; rotation applies when set.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "INFO"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5


class CLIOptions(StashBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class MigrationConfig(StashBaseModel):
    """Top-level configuration struct for stash-migrate.

    Attributes:
        legacy: Legacy database and layout settings.
        metadata_store: Target metadata store settings.
        blob_store: Target blob store settings.
        migration: Failure and checkpoint options.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    legacy: LegacySettings = Field(default_factory=LegacySettings)
    metadata_store: MetadataStoreSettings = Field(default_factory=MetadataStoreSettings)
    blob_store: BlobStoreSettings = Field(default_factory=BlobStoreSettings)
    migration: MigrationOptions = Field(default_factory=MigrationOptions)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "StashBaseModel",
    "LegacySettings",
    "MetadataStoreSettings",
    "BlobStoreSettings",
    "MigrationOptions",
    "LoggingSettings",
    "CLIOptions",
    "MigrationConfig",
]

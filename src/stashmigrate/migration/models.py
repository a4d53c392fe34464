"""Records written to the target stores and per-record migration outcomes."""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from stashmigrate.legacy.models import LegacyId, Timestamp

NEVER_EXPIRES = "Infinity"

Expiry = Union[int, float, str]


class NewAccount(BaseModel):
    """Account created in the metadata store for one legacy user."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: Optional[str] = None
    password_hash: str
    is_admin: bool = False


class FullFileRecord(BaseModel):
    """File record carrying its own timestamps and visibility.

    Written for standalone files and for the first file of each album.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["full"] = "full"
    id: LegacyId
    name: str
    storage_key: str
    size_bytes: int
    mime_type: str
    uploaded_by: str
    uploaded_at: Timestamp
    expires_at: Expiry
    is_private: bool


class JoinFileRecord(BaseModel):
    """File record joining an album that already exists.

    Timestamps and visibility are inherited from the album and therefore omitted.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["join"] = "join"
    album_id: LegacyId
    id: LegacyId
    name: str
    storage_key: str
    size_bytes: int
    mime_type: str
    uploaded_by: str


FileRecord = Union[FullFileRecord, JoinFileRecord]


class NewAlbum(BaseModel):
    """Album materialized from the first file that references it."""

    model_config = ConfigDict(frozen=True)

    id: LegacyId
    file_ids: List[LegacyId]
    uploaded_by: str
    uploaded_at: Timestamp
    expires_at: Expiry
    is_private: bool


class FileDraft(BaseModel):
    """Everything known about a file once its content has been stored."""

    model_config = ConfigDict(frozen=True)

    id: LegacyId
    album_id: Optional[LegacyId] = None
    name: str
    storage_key: str
    size_bytes: int
    mime_type: str
    uploaded_by: str
    uploaded_at: Timestamp
    expires_at: Expiry
    is_private: bool


class FileWrites(BaseModel):
    """Metadata writes produced for one file, in the order they are issued."""

    model_config = ConfigDict(frozen=True)

    file: FileRecord = Field(discriminator="kind")
    album: Optional[NewAlbum] = None


class Processed(BaseModel):
    """A file that was copied and recorded in the target stores."""

    outcome: Literal["processed"] = "processed"
    legacy_id: LegacyId
    name: str
    size_bytes: int
    album_id: Optional[LegacyId] = None
    created_album: bool = False
    joined_album: bool = False


class SkippedMissingSource(BaseModel):
    """A file whose legacy content could not be found on disk."""

    outcome: Literal["skipped_missing_source"] = "skipped_missing_source"
    legacy_id: LegacyId
    locator_pattern: str


class FailedRecord(BaseModel):
    """A file whose migration failed while failures were set to continue."""

    outcome: Literal["failed"] = "failed"
    legacy_id: LegacyId
    operation: str
    message: str


FileOutcome = Union[Processed, SkippedMissingSource, FailedRecord]


class MigrationReport(BaseModel):
    """Summary of a completed migration run."""

    accounts: List[NewAccount] = Field(default_factory=list)
    files: List[FileOutcome] = Field(default_factory=list)
    albums_created: List[LegacyId] = Field(default_factory=list)
    resumed_users: int = 0
    resumed_files: int = 0
    state_path: Optional[Path] = None

    def counts(self) -> dict[str, int]:
        """Return outcome totals keyed by metric name."""
        totals = {
            "accounts": len(self.accounts),
            "processed": 0,
            "skipped": 0,
            "failed": 0,
            "albums": len(self.albums_created),
        }
        for outcome in self.files:
            if isinstance(outcome, Processed):
                totals["processed"] += 1
            elif isinstance(outcome, SkippedMissingSource):
                totals["skipped"] += 1
            else:
                totals["failed"] += 1
        if self.resumed_users or self.resumed_files:
            totals["resumed"] = self.resumed_users + self.resumed_files
        return totals


__all__ = [
    "NEVER_EXPIRES",
    "Expiry",
    "NewAccount",
    "FullFileRecord",
    "JoinFileRecord",
    "FileRecord",
    "NewAlbum",
    "FileDraft",
    "FileWrites",
    "Processed",
    "SkippedMissingSource",
    "FailedRecord",
    "FileOutcome",
    "MigrationReport",
]

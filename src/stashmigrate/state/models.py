"""Checkpoint data recorded while a migration runs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List

from pydantic import BaseModel, Field

from stashmigrate.legacy.models import LegacyId
from stashmigrate.migration.models import NewAlbum


class PendingAlbum(BaseModel):
    """A founding file whose record was added before its album was created."""

    file_id: LegacyId
    name: str
    size_bytes: int
    album: NewAlbum


class MigrationState(BaseModel):
    """Progress of a migration run.

    Attributes:
        migrated_users: Usernames whose account and container were created.
        accounts_created: Account ids by username for users still missing a container.
        processed_files: Legacy file ids that reached a final outcome.
        pending_albums: Founding files recorded in the metadata store whose album
            has not been created yet.
        albums: Album ids already created in the metadata store.
    """

    migrated_users: List[str] = Field(default_factory=list)
    accounts_created: Dict[str, str] = Field(default_factory=dict)
    processed_files: List[LegacyId] = Field(default_factory=list)
    pending_albums: List[PendingAlbum] = Field(default_factory=list)
    albums: List[LegacyId] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = ["MigrationState", "PendingAlbum"]

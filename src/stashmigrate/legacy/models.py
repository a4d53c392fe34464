"""Row models for the legacy stash database."""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

LegacyId = Union[int, str]
Timestamp = Union[int, float, str]


class LegacyUser(BaseModel):
    """Account row from the legacy `users` table."""

    model_config = ConfigDict(frozen=True)

    username: str
    email: Optional[str] = None
    password_hash: str
    is_admin: bool = False


class LegacyFile(BaseModel):
    """File row from the legacy `files` table.

    Attributes:
        legacy_id: Original `file_id`; reused as the new file id.
        original_filename: Name recorded at upload time, possibly without extension.
        locator_pattern: Glob pattern locating the content under the legacy layout.
        size_bytes: Size recorded by the legacy tool; informational only.
        mime_type: MIME type recorded at upload time.
        uploaded_by: Username of the uploader.
        uploaded_at: Upload timestamp, preserved as stored.
        uploaded_until: Expiry timestamp, or None when the file never expires.
        is_public: Legacy visibility flag.
        album_id: Album the file belongs to, or None.
    """

    model_config = ConfigDict(frozen=True)

    legacy_id: LegacyId
    original_filename: str
    locator_pattern: str
    size_bytes: Optional[int] = None
    mime_type: str
    uploaded_by: str
    uploaded_at: Timestamp
    uploaded_until: Optional[Timestamp] = None
    is_public: bool = True
    album_id: Optional[LegacyId] = None

    @field_validator("album_id", mode="before")
    @classmethod
    def _blank_album_is_none(cls, value: object) -> object:
        # The legacy tool wrote 0 or an empty string for files outside any album.
        if value in (0, "", "0"):
            return None
        return value


__all__ = ["LegacyId", "Timestamp", "LegacyUser", "LegacyFile"]

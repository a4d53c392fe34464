"""Shared fixtures: legacy databases, legacy file layouts, and recording store fakes."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterable, Optional

import pytest

from stashmigrate.legacy.models import LegacyFile, LegacyUser
from stashmigrate.migration.locator import ContentLocator
from stashmigrate.migration.models import FileRecord, NewAccount, NewAlbum
from stashmigrate.stores.base import AllocatedNames, BlobPayload, WriteResult

LEGACY_SCHEMA = """
CREATE TABLE "users" (
    "username" TEXT PRIMARY KEY,
    "email" TEXT,
    "password" TEXT NOT NULL,
    "admin" INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE "files" (
    "file_id" TEXT PRIMARY KEY,
    "original_filename" TEXT NOT NULL,
    "filesize" INTEGER,
    "mimetype" TEXT NOT NULL,
    "uploaded_by" TEXT NOT NULL,
    "uploaded_at" INTEGER NOT NULL,
    "uploaded_until" INTEGER,
    "public" INTEGER NOT NULL DEFAULT 1,
    "in_album" INTEGER
);
"""


def create_legacy_db(
    path: Path,
    users: Iterable[tuple[Any, ...]] = (),
    files: Iterable[tuple[Any, ...]] = (),
) -> Path:
    """Create a legacy stash database.

    Args:
        path: Database file to create.
        users: Rows of (username, email, password, admin).
        files: Rows of (file_id, original_filename, filesize, mimetype, uploaded_by,
            uploaded_at, uploaded_until, public, in_album).

    Returns:
        Path: The database path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(path)
    try:
        connection.executescript(LEGACY_SCHEMA)
        connection.executemany('INSERT INTO "users" VALUES (?, ?, ?, ?)', list(users))
        connection.executemany(
            'INSERT INTO "files" VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)', list(files)
        )
        connection.commit()
    finally:
        connection.close()
    return path


class LegacyLayout:
    """Legacy on-disk layout: `<content_root>/<dir>/<type>/<id>...` plus thumbnails."""

    def __init__(self, root: Path) -> None:
        self.content_root = root / "legacy" / "uploads"
        self.thumbnail_dir = root / "legacy" / "thumbnail"
        self.content_root.mkdir(parents=True)
        self.thumbnail_dir.mkdir(parents=True)

    def add_content(
        self,
        file_id: str,
        mime_type: str,
        data: bytes,
        *,
        folder: str = "2019",
        suffix: str = "",
    ) -> Path:
        type_dir = mime_type.rsplit("/", 1)[0]
        path = self.content_root / folder / type_dir / f"{file_id}{suffix}"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def add_thumbnail(self, file_id: str, data: bytes = b"thumb") -> Path:
        path = self.thumbnail_dir / f"{file_id}.webp"
        path.write_bytes(data)
        return path

    def locator(self) -> ContentLocator:
        return ContentLocator(self.content_root, self.thumbnail_dir, "webp")


@pytest.fixture
def layout(tmp_path: Path) -> LegacyLayout:
    return LegacyLayout(tmp_path)


class FakeReader:
    """Reader returning fixed rows in the given order."""

    def __init__(
        self,
        users: Optional[list[LegacyUser]] = None,
        files: Optional[list[LegacyFile]] = None,
    ) -> None:
        self.users = users or []
        self.files = files or []

    def list_users(self) -> list[LegacyUser]:
        return list(self.users)

    def list_files(self) -> list[LegacyFile]:
        return list(self.files)


class RecordingMetadataStore:
    """Metadata store that appends every call to a shared call log."""

    def __init__(self, calls: list[tuple[Any, ...]], fail_on: Iterable[str] = ()) -> None:
        self.calls = calls
        self.fail_on = set(fail_on)

    def _record(self, operation: str, payload: Any) -> None:
        if operation in self.fail_on:
            raise RuntimeError(f"{operation} rejected")
        self.calls.append((operation, payload))

    def create_account(self, account: NewAccount) -> None:
        self._record("create_account", account)

    def create_album(self, album: NewAlbum) -> None:
        self._record("create_album", album)

    def add_file(self, record: FileRecord) -> None:
        self._record("add_file", record)


class RecordingBlobStore:
    """Blob store that keeps written bytes in memory and logs every call."""

    def __init__(self, calls: list[tuple[Any, ...]], fail_on: Iterable[str] = ()) -> None:
        self.calls = calls
        self.fail_on = set(fail_on)
        self.blobs: dict[str, bytes] = {}

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise RuntimeError(f"{operation} rejected")

    def create_container(self, username: str) -> None:
        self._check("create_container")
        self.calls.append(("create_container", username))

    def allocate_names(self, username: str, filename: str) -> AllocatedNames:
        self._check("allocate_names")
        self.calls.append(("allocate_names", username, filename))
        return AllocatedNames(content_key=f"key-{filename}", thumbnail_key=f"thumb-{filename}")

    def write(self, username: str, content: BlobPayload, thumbnail: BlobPayload) -> WriteResult:
        self._check("write")
        data = content.stream.read()
        self.blobs[content.key] = data
        self.blobs[thumbnail.key] = thumbnail.stream.read()
        self.calls.append(("write", username, content.key, thumbnail.key))
        return WriteResult(size_bytes=len(data))


@pytest.fixture
def calls() -> list[tuple[Any, ...]]:
    return []


def legacy_file(file_id: str, **overrides: Any) -> LegacyFile:
    """Build a LegacyFile whose locator matches `LegacyLayout.add_content` output."""
    mime_type = overrides.pop("mime_type", "image/png")
    values: dict[str, Any] = {
        "legacy_id": file_id,
        "original_filename": f"{file_id}.png",
        "locator_pattern": f"*/{mime_type.rsplit('/', 1)[0]}/{file_id}*",
        "size_bytes": 1,
        "mime_type": mime_type,
        "uploaded_by": "alice",
        "uploaded_at": 1000,
        "uploaded_until": None,
        "is_public": True,
        "album_id": None,
    }
    values.update(overrides)
    return LegacyFile(**values)


def legacy_user(username: str = "alice", **overrides: Any) -> LegacyUser:
    values: dict[str, Any] = {
        "username": username,
        "email": f"{username}@example.com",
        "password_hash": "$2b$10$hash",
        "is_admin": False,
    }
    values.update(overrides)
    return LegacyUser(**values)

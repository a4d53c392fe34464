"""Reconstruct albums from the legacy per-file album marker."""

from __future__ import annotations

from typing import Iterable, Iterator, Optional

from stashmigrate.legacy.models import LegacyId

from .models import FileDraft, FileWrites, FullFileRecord, JoinFileRecord, NewAlbum


class AlbumLedger:
    """Album ids already materialized in the metadata store during this run.

    The ledger only grows. Files must be routed in reader order so that every
    album is created before any file joins it.
    """

    def __init__(self, album_ids: Optional[Iterable[LegacyId]] = None) -> None:
        self._album_ids: set[LegacyId] = set(album_ids or ())

    def __contains__(self, album_id: object) -> bool:
        return album_id in self._album_ids

    def __iter__(self) -> Iterator[LegacyId]:
        return iter(self._album_ids)

    def __len__(self) -> int:
        return len(self._album_ids)

    def add(self, album_id: LegacyId) -> None:
        self._album_ids.add(album_id)

    def discard(self, album_id: LegacyId) -> None:
        """Forget an album whose creation did not complete."""
        self._album_ids.discard(album_id)


def route_file(draft: FileDraft, ledger: AlbumLedger) -> FileWrites:
    """Decide which metadata writes a file produces and update the ledger.

    Args:
        draft: Fully resolved file fields, including its legacy album id.
        ledger: Albums already created; mutated when this file founds an album.

    Returns:
        FileWrites: A join record when the album exists, otherwise a full record
            and, for the first file of an album, the album it founds.
    """
    if draft.album_id is not None and draft.album_id in ledger:
        return FileWrites(
            file=JoinFileRecord(
                album_id=draft.album_id,
                id=draft.id,
                name=draft.name,
                storage_key=draft.storage_key,
                size_bytes=draft.size_bytes,
                mime_type=draft.mime_type,
                uploaded_by=draft.uploaded_by,
            )
        )

    record = FullFileRecord(
        id=draft.id,
        name=draft.name,
        storage_key=draft.storage_key,
        size_bytes=draft.size_bytes,
        mime_type=draft.mime_type,
        uploaded_by=draft.uploaded_by,
        uploaded_at=draft.uploaded_at,
        expires_at=draft.expires_at,
        is_private=draft.is_private,
    )
    if draft.album_id is None:
        return FileWrites(file=record)

    album = NewAlbum(
        id=draft.album_id,
        file_ids=[draft.id],
        uploaded_by=draft.uploaded_by,
        uploaded_at=draft.uploaded_at,
        expires_at=draft.expires_at,
        is_private=draft.is_private,
    )
    ledger.add(draft.album_id)
    return FileWrites(file=record, album=album)


__all__ = ["AlbumLedger", "route_file"]

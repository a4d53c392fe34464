"""Contracts for the target metadata and blob stores."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Protocol, runtime_checkable

from stashmigrate.migration.models import FileRecord, NewAccount, NewAlbum


@dataclass(slots=True, frozen=True)
class AllocatedNames:
    """Storage keys reserved for a file and its thumbnail inside a container."""

    content_key: str
    thumbnail_key: str


@dataclass(slots=True)
class BlobPayload:
    """A storage key paired with the open stream to copy under it."""

    key: str
    stream: BinaryIO


@dataclass(slots=True, frozen=True)
class WriteResult:
    """Outcome of a blob write; ``size_bytes`` is the stored content size."""

    size_bytes: int


@runtime_checkable
class MetadataStore(Protocol):
    """Operations the migration needs from the target metadata store."""

    def create_account(self, account: NewAccount) -> None: ...

    def create_album(self, album: NewAlbum) -> None: ...

    def add_file(self, record: FileRecord) -> None: ...


@runtime_checkable
class BlobStore(Protocol):
    """Operations the migration needs from the target blob store."""

    def create_container(self, username: str) -> None: ...

    def allocate_names(self, username: str, filename: str) -> AllocatedNames: ...

    def write(
        self,
        username: str,
        content: BlobPayload,
        thumbnail: BlobPayload,
    ) -> WriteResult: ...


__all__ = [
    "AllocatedNames",
    "BlobPayload",
    "WriteResult",
    "MetadataStore",
    "BlobStore",
]

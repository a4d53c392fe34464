"""Metadata store persisted as a single JSON document."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from stashmigrate.migration.models import FileRecord, JoinFileRecord, NewAccount, NewAlbum

LOGGER = logging.getLogger(__name__)


class MetadataDocument(BaseModel):
    """On-disk layout of the JSON metadata store."""

    accounts: List[Dict[str, Any]] = Field(default_factory=list)
    files: List[Dict[str, Any]] = Field(default_factory=list)
    albums: List[Dict[str, Any]] = Field(default_factory=list)


class JsonMetadataStore:
    """Append records to a JSON document, replacing it atomically after every write.

    Records are appended as given; running the migration twice against the
    same document produces duplicate accounts and albums.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()
        self._document = self._load()

    @property
    def document(self) -> MetadataDocument:
        return self._document

    def create_account(self, account: NewAccount) -> None:
        self._document.accounts.append(account.model_dump(mode="json"))
        self._save()

    def create_album(self, album: NewAlbum) -> None:
        self._document.albums.append(album.model_dump(mode="json"))
        self._save()

    def add_file(self, record: FileRecord) -> None:
        """Store a file record; join records are also appended to their album."""
        payload = record.model_dump(mode="json")
        if isinstance(record, JoinFileRecord):
            album = self._find_album(payload["album_id"])
            album["file_ids"].append(payload["id"])
        self._document.files.append(payload)
        self._save()

    def _find_album(self, album_id: Any) -> Dict[str, Any]:
        # Duplicated albums from repeated runs: the latest one receives the file.
        for album in reversed(self._document.albums):
            if album["id"] == album_id:
                return album
        raise KeyError(f"Album {album_id!r} does not exist in {self.path}")

    def _load(self) -> MetadataDocument:
        if not self.path.exists():
            return MetadataDocument()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid metadata document at {self.path}: {exc}") from exc
        LOGGER.debug("Loaded existing metadata document %s", self.path)
        return MetadataDocument.model_validate(data)

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp_path.write_text(
                json.dumps(self._document.model_dump(mode="json"), indent=2), encoding="utf-8"
            )
            tmp_path.replace(self.path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            # Drop the unsaved change so a later write cannot persist it.
            self._document = self._load()
            raise


__all__ = ["JsonMetadataStore", "MetadataDocument"]

"""Filesystem blob store with one directory per user."""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path

from .base import AllocatedNames, BlobPayload, WriteResult

LOGGER = logging.getLogger(__name__)


class LocalBlobStore:
    """Store blobs under ``<root>/<username>/<key>``.

    Storage path format: ``<root>/<username>/<uuid hex><ext>`` for content and
    ``<root>/<username>/<uuid hex>.thumb.<thumbnail ext>`` for thumbnails.
    """

    def __init__(self, root: Path, thumbnail_extension: str = "webp") -> None:
        self.root = Path(root).expanduser().resolve()
        self.thumbnail_extension = thumbnail_extension.lstrip(".")

    def create_container(self, username: str) -> None:
        self._container(username).mkdir(parents=True, exist_ok=True)

    def allocate_names(self, username: str, filename: str) -> AllocatedNames:
        """Reserve unique keys for a file and its thumbnail in the user's container."""
        container = self._container(username)
        extension = os.path.splitext(filename)[1].lower()
        while True:
            stem = uuid.uuid4().hex
            names = AllocatedNames(
                content_key=f"{stem}{extension}",
                thumbnail_key=f"{stem}.thumb.{self.thumbnail_extension}",
            )
            if not (container / names.content_key).exists():
                return names

    def write(self, username: str, content: BlobPayload, thumbnail: BlobPayload) -> WriteResult:
        """Copy both streams into the container and report the stored content size.

        Both blobs are written to ``.tmp`` files first and renamed into place only
        once both copies succeeded.

        Raises:
            FileNotFoundError: If the user's container has not been created.
            OSError: If either copy fails.
        """
        container = self._container(username)
        if not container.is_dir():
            raise FileNotFoundError(f"Container for {username!r} does not exist at {container}")

        targets = [container / content.key, container / thumbnail.key]
        temporaries = [target.with_name(target.name + ".tmp") for target in targets]
        try:
            for payload, tmp_path in zip((content, thumbnail), temporaries):
                with tmp_path.open("wb") as handle:
                    shutil.copyfileobj(payload.stream, handle)
            for tmp_path, target in zip(temporaries, targets):
                tmp_path.replace(target)
        except OSError:
            for tmp_path in temporaries:
                tmp_path.unlink(missing_ok=True)
            raise

        size = targets[0].stat().st_size
        LOGGER.debug("Stored %s for %s (%d bytes)", content.key, username, size)
        return WriteResult(size_bytes=size)

    def _container(self, username: str) -> Path:
        if not username or "/" in username or "\\" in username or username in (".", ".."):
            raise ValueError(f"Invalid container name: {username!r}")
        return self.root / username


__all__ = ["LocalBlobStore"]

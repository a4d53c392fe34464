"""Read access to the legacy stash SQLite database."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from types import TracebackType
from typing import Optional, Type, TypeVar

from pydantic import ValidationError

from stashmigrate.errors import LegacyStoreUnavailableError, MalformedLegacyRowError

from .models import LegacyFile, LegacyUser

LOGGER = logging.getLogger(__name__)

RowT = TypeVar("RowT", LegacyUser, LegacyFile)

USERS_QUERY = """
    SELECT
        "username",
        "email",
        "password" AS "password_hash",
        "admin" AS "is_admin"
    FROM
        "users"
"""

# The locator keeps the MIME type up to its last slash ("image/png" -> "image/") and
# matches any top-level directory holding that type folder.
FILES_QUERY = """
    SELECT
        "file_id" AS "legacy_id",
        "original_filename",
        '*/' || rtrim("mimetype", replace("mimetype", '/', '')) || "file_id" || '*'
            AS "locator_pattern",
        "filesize" AS "size_bytes",
        "mimetype" AS "mime_type",
        "uploaded_by",
        "uploaded_at",
        "uploaded_until",
        "public" AS "is_public",
        "in_album" AS "album_id"
    FROM
        "files"
    ORDER BY
        "in_album"
"""


class LegacyReader:
    """Open the legacy database and enumerate its users and files.

    The connection is opened read-write unless ``read_only`` is set; nothing is
    written today. Use as a context manager or call :meth:`open` and
    :meth:`close` explicitly.
    """

    def __init__(
        self,
        path: Path,
        *,
        timeout_seconds: float = 5.0,
        read_only: bool = False,
    ) -> None:
        self.path = Path(path)
        self.timeout_seconds = timeout_seconds
        self.read_only = read_only
        self._connection: Optional[sqlite3.Connection] = None

    def open(self) -> "LegacyReader":
        """Connect to the database and verify that both legacy tables are readable.

        Returns:
            LegacyReader: The reader itself, for chaining.

        Raises:
            LegacyStoreUnavailableError: If the file is missing, locked past the
                timeout, or not a usable stash database.
        """
        if self._connection is not None:
            return self
        if not self.path.is_file():
            raise LegacyStoreUnavailableError(f"Legacy database not found at {self.path}")

        try:
            if self.read_only:
                uri = f"{self.path.resolve().as_uri()}?mode=ro"
                connection = sqlite3.connect(uri, uri=True, timeout=self.timeout_seconds)
            else:
                connection = sqlite3.connect(str(self.path), timeout=self.timeout_seconds)
        except sqlite3.Error as exc:
            raise LegacyStoreUnavailableError(
                f"Unable to open legacy database {self.path}: {exc}"
            ) from exc

        connection.row_factory = sqlite3.Row
        try:
            connection.execute('SELECT 1 FROM "users" LIMIT 1').fetchall()
            connection.execute('SELECT 1 FROM "files" LIMIT 1').fetchall()
        except sqlite3.Error as exc:
            connection.close()
            raise LegacyStoreUnavailableError(
                f"Legacy database {self.path} is locked or malformed: {exc}"
            ) from exc

        LOGGER.debug("Opened legacy database %s (read_only=%s)", self.path, self.read_only)
        self._connection = connection
        return self

    def close(self) -> None:
        """Close the underlying connection if it is open."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "LegacyReader":
        return self.open()

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    def list_users(self) -> list[LegacyUser]:
        """Return every legacy account row."""
        return self._fetch(USERS_QUERY, LegacyUser, "users", "username")

    def list_files(self) -> list[LegacyFile]:
        """Return every legacy file row, ordered so album members are contiguous.

        Files without an album sort first. Within an album the order is whatever
        SQLite yields for equal keys; the first file becomes the album's donor.
        """
        return self._fetch(FILES_QUERY, LegacyFile, "files", "legacy_id")

    def _fetch(self, query: str, model: Type[RowT], table: str, key: str) -> list[RowT]:
        if self._connection is None:
            raise LegacyStoreUnavailableError("Legacy database is not open.")
        try:
            rows = self._connection.execute(query).fetchall()
        except sqlite3.Error as exc:
            raise LegacyStoreUnavailableError(f"Legacy query failed: {exc}") from exc

        records: list[RowT] = []
        for row in rows:
            values = dict(row)
            try:
                records.append(model.model_validate(values))
            except ValidationError as exc:
                fields = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
                raise MalformedLegacyRowError(table, values.get(key), fields) from exc
        return records


__all__ = ["LegacyReader", "USERS_QUERY", "FILES_QUERY"]

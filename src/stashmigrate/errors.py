"""Exceptions raised by stash-migrate."""

from __future__ import annotations


class ConfigError(Exception):
    """Raised when configuration data cannot be loaded or validated."""


class StateError(Exception):
    """Raised when checkpoint state cannot be read or written."""


class MissingStateError(StateError):
    """Raised when no checkpoint exists for a resumed run."""


class MigrationError(Exception):
    """Base exception for migration failures."""


class LegacyStoreUnavailableError(MigrationError):
    """Raised when the legacy database cannot be opened or queried."""


class MalformedLegacyRowError(MigrationError):
    """Raised when a legacy row is missing a value the migration requires.

    Attributes:
        table: Legacy table holding the row.
        row_id: Key of the offending row, if it could be read.
        fields: Names of the columns that failed validation.
    """

    def __init__(self, table: str, row_id: object, fields: list[str]) -> None:
        self.table = table
        self.row_id = row_id
        self.fields = fields
        super().__init__(
            f"Row {row_id!r} in legacy table '{table}' has invalid or missing "
            f"values for: {', '.join(fields)}"
        )


class AdapterError(MigrationError):
    """Raised when a metadata-store or blob-store call fails.

    Attributes:
        operation: Name of the adapter operation that failed.
        record_id: Identifier of the legacy record being migrated, if any.
    """

    def __init__(self, operation: str, record_id: object, message: str) -> None:
        self.operation = operation
        self.record_id = record_id
        subject = f" for {record_id}" if record_id is not None else ""
        super().__init__(f"{operation} failed{subject}: {message}")


__all__ = [
    "ConfigError",
    "StateError",
    "MissingStateError",
    "MigrationError",
    "LegacyStoreUnavailableError",
    "MalformedLegacyRowError",
    "AdapterError",
]

"""Mapping, locating and album reconstruction for the migration pipeline.

The orchestrator lives in :mod:`stashmigrate.migration.pipeline`.
"""

from .albums import AlbumLedger, route_file
from .identity import display_filename, mint_account_id, normalize_expiry
from .locator import ContentLocator
from .models import (
    NEVER_EXPIRES,
    FailedRecord,
    FullFileRecord,
    JoinFileRecord,
    MigrationReport,
    NewAccount,
    NewAlbum,
    Processed,
    SkippedMissingSource,
)

__all__ = [
    "AlbumLedger",
    "ContentLocator",
    "FailedRecord",
    "FullFileRecord",
    "JoinFileRecord",
    "MigrationReport",
    "NEVER_EXPIRES",
    "NewAccount",
    "NewAlbum",
    "Processed",
    "SkippedMissingSource",
    "display_filename",
    "mint_account_id",
    "normalize_expiry",
    "route_file",
]

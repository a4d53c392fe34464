"""Target store adapters and the registry that selects them by name."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

from stashmigrate.config.models import BlobStoreSettings, LegacySettings, MetadataStoreSettings
from stashmigrate.errors import ConfigError

from .base import AllocatedNames, BlobPayload, BlobStore, MetadataStore, WriteResult
from .json_store import JsonMetadataStore
from .local import LocalBlobStore

_METADATA_STORES: Dict[str, Callable[[MetadataStoreSettings], MetadataStore]] = {
    "json": lambda settings: JsonMetadataStore(Path(settings.path)),
}

_BLOB_STORES: Dict[str, Callable[[BlobStoreSettings, LegacySettings], BlobStore]] = {
    "local": lambda settings, legacy: LocalBlobStore(
        Path(settings.root), thumbnail_extension=legacy.thumbnail_extension
    ),
}


def get_metadata_store(settings: MetadataStoreSettings) -> MetadataStore:
    """Instantiate the metadata store named in the settings.

    Raises:
        ConfigError: If no store is registered under that name.
    """
    factory = _METADATA_STORES.get(settings.backend)
    if factory is None:
        known = ", ".join(sorted(_METADATA_STORES))
        raise ConfigError(f"Unknown metadata store '{settings.backend}' (available: {known}).")
    return factory(settings)


def get_blob_store(settings: BlobStoreSettings, legacy: LegacySettings) -> BlobStore:
    """Instantiate the blob store named in the settings.

    Raises:
        ConfigError: If no store is registered under that name.
    """
    factory = _BLOB_STORES.get(settings.backend)
    if factory is None:
        known = ", ".join(sorted(_BLOB_STORES))
        raise ConfigError(f"Unknown blob store '{settings.backend}' (available: {known}).")
    return factory(settings, legacy)


__all__ = [
    "AllocatedNames",
    "BlobPayload",
    "BlobStore",
    "JsonMetadataStore",
    "LocalBlobStore",
    "MetadataStore",
    "WriteResult",
    "get_blob_store",
    "get_metadata_store",
]

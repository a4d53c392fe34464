"""Locate legacy file content and thumbnails on disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from stashmigrate.legacy.models import LegacyId

LOGGER = logging.getLogger(__name__)


class ContentLocator:
    """Resolve legacy locator patterns and thumbnail paths.

    Locator patterns are globbed relative to ``content_root``. Thumbnails are
    found by convention only: ``<thumbnail_dir>/<legacy id>.<extension>``.
    """

    def __init__(
        self,
        content_root: Path,
        thumbnail_dir: Path,
        thumbnail_extension: str = "webp",
    ) -> None:
        self.content_root = Path(content_root).expanduser()
        self.thumbnail_dir = Path(thumbnail_dir).expanduser()
        self.thumbnail_extension = thumbnail_extension.lstrip(".")

    def resolve(self, locator_pattern: str) -> Optional[Path]:
        """Return the absolute path matching the pattern, or None when nothing matches.

        Args:
            locator_pattern: Glob pattern produced by the legacy files query.

        Returns:
            Optional[Path]: Resolved content path; the first sorted match if the
                pattern is ambiguous.
        """
        matches = sorted(path for path in self.content_root.glob(locator_pattern) if path.is_file())
        if not matches:
            return None
        if len(matches) > 1:
            LOGGER.warning(
                "Locator %s matched %d files; using %s", locator_pattern, len(matches), matches[0]
            )
        return matches[0].resolve()

    def thumbnail_path(self, legacy_id: LegacyId) -> Path:
        """Return the conventional thumbnail path for a legacy file; it may not exist."""
        return (self.thumbnail_dir / f"{legacy_id}.{self.thumbnail_extension}").resolve()


__all__ = ["ContentLocator"]

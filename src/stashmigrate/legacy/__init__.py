"""Access to the legacy stash database."""

from .models import LegacyFile, LegacyId, LegacyUser, Timestamp
from .reader import LegacyReader

__all__ = ["LegacyReader", "LegacyUser", "LegacyFile", "LegacyId", "Timestamp"]

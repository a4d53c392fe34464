"""Identifier and field mapping from legacy rows to new records."""

from __future__ import annotations

import mimetypes
import os
import uuid
from typing import Optional

from stashmigrate.legacy.models import LegacyUser, Timestamp

from .models import NEVER_EXPIRES, Expiry, NewAccount

# Preferred extensions for the types the legacy uploader accepted. The platform
# MIME registry is consulted for anything else, and it varies between systems.
_PREFERRED_EXTENSIONS = {
    "application/json": ".json",
    "application/pdf": ".pdf",
    "application/zip": ".zip",
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
    "audio/wav": ".wav",
    "image/avif": ".avif",
    "image/gif": ".gif",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/svg+xml": ".svg",
    "image/webp": ".webp",
    "text/html": ".html",
    "text/plain": ".txt",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/webm": ".webm",
}


def mint_account_id() -> str:
    """Return a new, globally unique account id."""
    return str(uuid.uuid4())


def mime_extension(mime_type: str) -> str:
    """Return the extension (with leading dot) for a MIME type, or "" when unknown."""
    normalized = mime_type.split(";", 1)[0].strip().lower()
    if not normalized:
        return ""
    preferred = _PREFERRED_EXTENSIONS.get(normalized)
    if preferred is not None:
        return preferred
    return mimetypes.guess_extension(normalized, strict=False) or ""


def display_filename(original_filename: str, mime_type: str) -> str:
    """Return the name shown for a migrated file.

    Names that already carry an extension are kept verbatim; otherwise the
    extension mapped from the MIME type is appended.
    """
    _, extension = os.path.splitext(original_filename)
    if extension:
        return original_filename
    return f"{original_filename}{mime_extension(mime_type)}"


def normalize_expiry(uploaded_until: Optional[Timestamp]) -> Expiry:
    """Map a missing expiry to the store's "never expires" sentinel."""
    if uploaded_until is None:
        return NEVER_EXPIRES
    return uploaded_until


def is_private(is_public: bool) -> bool:
    return not is_public


def to_account(user: LegacyUser, account_id: Optional[str] = None) -> NewAccount:
    """Build the new account for a legacy user.

    A fresh id is minted unless ``account_id`` carries the id of an account
    created by an earlier, interrupted run.
    """
    return NewAccount(
        id=account_id or mint_account_id(),
        username=user.username,
        email=user.email,
        password_hash=user.password_hash,
        is_admin=user.is_admin,
    )


__all__ = [
    "mint_account_id",
    "mime_extension",
    "display_filename",
    "normalize_expiry",
    "is_private",
    "to_account",
]

"""Sequential migration from the legacy database into the target stores."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Literal, Optional, TypeVar

from stashmigrate.errors import AdapterError, MissingStateError
from stashmigrate.legacy.models import LegacyFile
from stashmigrate.legacy.reader import LegacyReader
from stashmigrate.state import StateRepository
from stashmigrate.state.models import MigrationState, PendingAlbum
from stashmigrate.stores.base import BlobPayload, BlobStore, MetadataStore, WriteResult

from .albums import AlbumLedger, route_file
from .identity import display_filename, is_private, normalize_expiry, to_account
from .locator import ContentLocator
from .models import (
    FailedRecord,
    FileDraft,
    FileOutcome,
    JoinFileRecord,
    MigrationReport,
    Processed,
    SkippedMissingSource,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class MigrationPipeline:
    """Migrate users, then files, one record at a time.

    Users are migrated first so every uploader has a container before their
    files are copied. Files are visited in the reader's album order; the
    ordering is what guarantees each album is created before any file joins it,
    so the loop must stay sequential.
    """

    def __init__(
        self,
        reader: LegacyReader,
        metadata_store: MetadataStore,
        blob_store: BlobStore,
        locator: ContentLocator,
        *,
        on_file_error: Literal["abort", "continue"] = "abort",
        state_repository: Optional[StateRepository] = None,
        resume: bool = False,
    ) -> None:
        self.reader = reader
        self.metadata_store = metadata_store
        self.blob_store = blob_store
        self.locator = locator
        self.on_file_error = on_file_error
        self.state_repository = state_repository
        self.resume = resume

    def run(self) -> MigrationReport:
        """Execute the migration end to end.

        Returns:
            MigrationReport: Accounts created and one outcome per legacy file.

        Raises:
            AdapterError: If an account or container cannot be created, or if a
                file fails while failures are set to abort.
            LegacyStoreUnavailableError: If the legacy queries fail.
        """
        LOGGER.info("Starting migration")
        state = self._initial_state()
        report = MigrationReport()
        if self.state_repository is not None:
            report.state_path = self.state_repository.state_path

        self._migrate_users(report, state)

        ledger = AlbumLedger(state.albums if state is not None else ())
        self._migrate_files(ledger, report, state)

        counts = report.counts()
        LOGGER.info(
            "Migration complete: %s",
            ", ".join(f"{key}={value}" for key, value in counts.items()),
        )
        return report

    # ------------------------------------------------------------------ #
    # Users                                                              #
    # ------------------------------------------------------------------ #

    def _migrate_users(self, report: MigrationReport, state: Optional[MigrationState]) -> None:
        done = set(state.migrated_users) if state is not None else set()
        for user in self.reader.list_users():
            if user.username in done:
                report.resumed_users += 1
                continue

            existing_id = state.accounts_created.get(user.username) if state is not None else None
            account = to_account(user, existing_id)
            if existing_id is None:
                _call(
                    "create_account",
                    user.username,
                    self.metadata_store.create_account,
                    account,
                )
                if state is not None:
                    state.accounts_created[user.username] = account.id
                    self._checkpoint(state)
            else:
                LOGGER.info("Account %s for %s already exists", account.id, user.username)

            _call(
                "create_container",
                user.username,
                self.blob_store.create_container,
                user.username,
            )
            LOGGER.info("Created account %s for %s", account.id, user.username)
            report.accounts.append(account)
            if state is not None:
                state.accounts_created.pop(user.username, None)
                state.migrated_users.append(user.username)
                self._checkpoint(state)

    # ------------------------------------------------------------------ #
    # Files                                                              #
    # ------------------------------------------------------------------ #

    def _migrate_files(
        self,
        ledger: AlbumLedger,
        report: MigrationReport,
        state: Optional[MigrationState],
    ) -> None:
        done = set(state.processed_files) if state is not None else set()
        for legacy_file in self.reader.list_files():
            if legacy_file.legacy_id in done:
                report.resumed_files += 1
                continue

            pending = _pending_album(state, legacy_file.legacy_id)
            outcome: FileOutcome
            try:
                if pending is not None:
                    outcome = self._finish_album(pending, ledger)
                else:
                    outcome = self._migrate_file(legacy_file, ledger, state)
            except AdapterError as exc:
                if self.on_file_error == "abort":
                    raise
                LOGGER.error("File %s failed: %s", legacy_file.legacy_id, exc)
                outcome = FailedRecord(
                    legacy_id=legacy_file.legacy_id,
                    operation=exc.operation,
                    message=str(exc),
                )

            report.files.append(outcome)
            if isinstance(outcome, Processed) and outcome.created_album:
                report.albums_created.append(outcome.album_id)

            if state is not None and not isinstance(outcome, FailedRecord):
                state.processed_files.append(legacy_file.legacy_id)
                state.pending_albums = [
                    entry
                    for entry in state.pending_albums
                    if entry.file_id != legacy_file.legacy_id
                ]
                state.albums = list(ledger)
                self._checkpoint(state)

    def _finish_album(self, pending: PendingAlbum, ledger: AlbumLedger) -> Processed:
        """Create the album of a founding file recorded by an interrupted run."""
        album = pending.album
        created = album.id not in ledger
        if created:
            _call("create_album", album.id, self.metadata_store.create_album, album)
            ledger.add(album.id)
            LOGGER.info("Created pending album %s for file %s", album.id, pending.file_id)
        else:
            LOGGER.warning(
                "Album %s was founded by another file; %s stays a standalone record",
                album.id,
                pending.file_id,
            )
        return Processed(
            legacy_id=pending.file_id,
            name=pending.name,
            size_bytes=pending.size_bytes,
            album_id=album.id,
            created_album=created,
        )

    def _migrate_file(
        self,
        legacy_file: LegacyFile,
        ledger: AlbumLedger,
        state: Optional[MigrationState] = None,
    ) -> FileOutcome:
        file_id = legacy_file.legacy_id
        source = self.locator.resolve(legacy_file.locator_pattern)
        if source is None:
            LOGGER.info(
                "Skipping file %s: nothing matches %s", file_id, legacy_file.locator_pattern
            )
            return SkippedMissingSource(
                legacy_id=file_id, locator_pattern=legacy_file.locator_pattern
            )

        LOGGER.info("Processing file %s", file_id)
        name = display_filename(legacy_file.original_filename, legacy_file.mime_type)
        names = _call(
            "allocate_names",
            file_id,
            self.blob_store.allocate_names,
            legacy_file.uploaded_by,
            name,
        )
        stored = _call(
            "write",
            file_id,
            self._copy_blobs,
            legacy_file.uploaded_by,
            source,
            self.locator.thumbnail_path(file_id),
            names.content_key,
            names.thumbnail_key,
        )

        draft = FileDraft(
            id=file_id,
            album_id=legacy_file.album_id,
            name=name,
            storage_key=names.content_key,
            size_bytes=stored.size_bytes,
            mime_type=legacy_file.mime_type,
            uploaded_by=legacy_file.uploaded_by,
            uploaded_at=legacy_file.uploaded_at,
            expires_at=normalize_expiry(legacy_file.uploaded_until),
            is_private=is_private(legacy_file.is_public),
        )
        writes = route_file(draft, ledger)
        try:
            _call("add_file", file_id, self.metadata_store.add_file, writes.file)
            if writes.album is not None:
                album = writes.album
                if state is not None:
                    state.pending_albums.append(
                        PendingAlbum(
                            file_id=file_id, name=name, size_bytes=stored.size_bytes, album=album
                        )
                    )
                    self._checkpoint(state)
                _call("create_album", album.id, self.metadata_store.create_album, album)
        except AdapterError:
            if writes.album is not None:
                # The album never materialized; the next member founds it instead.
                ledger.discard(writes.album.id)
            raise

        return Processed(
            legacy_id=file_id,
            name=name,
            size_bytes=stored.size_bytes,
            album_id=legacy_file.album_id,
            created_album=writes.album is not None,
            joined_album=isinstance(writes.file, JoinFileRecord),
        )

    def _copy_blobs(
        self,
        username: str,
        source: Path,
        thumbnail: Path,
        content_key: str,
        thumbnail_key: str,
    ) -> WriteResult:
        with source.open("rb") as content_stream, thumbnail.open("rb") as thumbnail_stream:
            return self.blob_store.write(
                username,
                BlobPayload(key=content_key, stream=content_stream),
                BlobPayload(key=thumbnail_key, stream=thumbnail_stream),
            )

    # ------------------------------------------------------------------ #
    # Checkpoints                                                        #
    # ------------------------------------------------------------------ #

    def _initial_state(self) -> Optional[MigrationState]:
        if self.state_repository is None:
            return None
        if not self.resume:
            # A fresh run must not leave an older checkpoint behind for a later --resume.
            self.state_repository.clear()
            return MigrationState()
        try:
            state = self.state_repository.load()
        except MissingStateError:
            LOGGER.warning(
                "No checkpoint at %s; starting from the beginning",
                self.state_repository.state_path,
            )
            return MigrationState()
        LOGGER.info(
            "Resuming: %d users and %d files already migrated",
            len(state.migrated_users),
            len(state.processed_files),
        )
        return state

    def _checkpoint(self, state: MigrationState) -> None:
        if self.state_repository is not None:
            self.state_repository.save(state)


def _call(operation: str, record_id: Any, func: Callable[..., T], *args: Any) -> T:
    """Invoke an adapter operation, reporting any failure as an AdapterError."""
    try:
        return func(*args)
    except AdapterError:
        raise
    except Exception as exc:
        raise AdapterError(operation, record_id, str(exc) or type(exc).__name__) from exc


def _pending_album(state: Optional[MigrationState], file_id: Any) -> Optional[PendingAlbum]:
    if state is None:
        return None
    return next((entry for entry in state.pending_albums if entry.file_id == file_id), None)


__all__ = ["MigrationPipeline"]

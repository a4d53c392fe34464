"""Checkpoint persistence for resumable migration runs."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from stashmigrate.errors import MissingStateError, StateError

from .models import MigrationState

DEFAULT_STATE_DIRNAME = ".stashmigrate"
STATE_FILENAME = "state.json"


class StateRepository:
    """Manage the persistence of migration checkpoints."""

    def __init__(self, state_dir: Path) -> None:
        """Initialize the repository for a state directory.

        Args:
            state_dir: Directory that stores checkpoint files.
        """
        self._state_dir = Path(state_dir).expanduser()

    @property
    def state_path(self) -> Path:
        """Return the path of the checkpoint file.

        Returns:
            Path: Location of ``state.json``.
        """
        return self._state_dir / STATE_FILENAME

    def load(self) -> MigrationState:
        """Load the stored checkpoint.

        Returns:
            MigrationState: Deserialized checkpoint.

        Raises:
            MissingStateError: If no checkpoint file is present.
            StateError: If stored data cannot be parsed.
        """
        path = self.state_path
        if not path.exists():
            raise MissingStateError(f"No migration state found at {path}")

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return MigrationState.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise StateError(f"Invalid migration state data: {exc}") from exc

    def save(self, state: MigrationState) -> None:
        """Persist the checkpoint, replacing the previous file atomically.

        Args:
            state: Checkpoint to serialize to disk.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state.updated_at = datetime.now(timezone.utc)
        if state.created_at.tzinfo is None:
            state.created_at = state.created_at.replace(tzinfo=timezone.utc)
        tmp_path = self.state_path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(
                json.dumps(state.model_dump(mode="json"), indent=2), encoding="utf-8"
            )
            tmp_path.replace(self.state_path)
        except OSError as exc:
            raise StateError(f"Unable to write migration state: {exc}") from exc

    def clear(self) -> None:
        """Remove the checkpoint file if present.

        Raises:
            StateError: If the file exists but cannot be removed.
        """
        try:
            self.state_path.unlink(missing_ok=True)
        except OSError as exc:
            raise StateError(f"Unable to remove migration state: {exc}") from exc


__all__ = [
    "StateRepository",
    "DEFAULT_STATE_DIRNAME",
    "STATE_FILENAME",
    "MigrationState",
    "StateError",
    "MissingStateError",
]

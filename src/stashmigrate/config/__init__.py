"""Configuration management for stash-migrate."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from stashmigrate.errors import ConfigError

from .models import MigrationConfig
from .resolver import env_overrides_from, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.stashmigrate/config.yaml")

_HEADER_LINES = (
    "# stash-migrate configuration file",
    "# Written by `stash-migrate config set`; edits by hand are kept.",
    "# Relative paths are resolved against the directory the migration runs from.",
)


class ConfigManager:
    """Read and write the YAML config file and resolve it against other sources.

    Args:
        config_path: File to manage; defaults to ``~/.stashmigrate/config.yaml``.
        env: Environment consulted for ``STASHMIGRATE__`` overrides; defaults to
            ``os.environ``.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._environ = os.environ if env is None else env

    @property
    def config_path(self) -> Path:
        return self._path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> MigrationConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted-key overrides from command line flags.
            include_env: Whether environment variables take part.
            ensure_file: Create the file with defaults when it is missing.
            env_overrides: Environment to use instead of the manager's own.

        Returns:
            MigrationConfig: Validated configuration.

        Raises:
            ConfigError: If the file cannot be parsed or the values are invalid.
        """
        if ensure_file:
            self.ensure_exists()

        from_env = None
        if include_env:
            from_env = env_overrides_from(
                self._environ if env_overrides is None else env_overrides
            )

        return resolve_with_precedence(
            defaults=MigrationConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=from_env or None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the mapping stored in the config file, or an empty one."""
        text = self.read_text()
        if not text:
            return {}
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {self._path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self._path} must contain a mapping at the top level.")
        return data

    def save(self, config: MigrationConfig | Mapping[str, Any]) -> None:
        """Write the configuration, stamping the header with the current time."""
        data = (
            config.model_dump(mode="python")
            if isinstance(config, MigrationConfig)
            else dict(config)
        )
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        header = "\n".join((*_HEADER_LINES, f"# Last updated: {stamp}"))
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            f"{header}\n{yaml.safe_dump(data, sort_keys=False)}", encoding="utf-8"
        )

    def ensure_exists(self) -> Path:
        """Write the default configuration if the file is missing, then return its path."""
        if not self._path.exists():
            self.save(MigrationConfig())
        return self._path

    def read_text(self) -> str:
        return self._path.read_text(encoding="utf-8") if self._path.exists() else ""


__all__ = [
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "MigrationConfig",
    "env_overrides_from",
    "flatten_for_env",
    "resolve_with_precedence",
]

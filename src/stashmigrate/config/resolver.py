"""Merge configuration layers into a validated `MigrationConfig`."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Iterator, Mapping

import yaml
from pydantic import ValidationError

from stashmigrate.errors import ConfigError

from .models import MigrationConfig

ENV_PREFIX = "STASHMIGRATE__"


def resolve_with_precedence(
    *,
    defaults: MigrationConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> MigrationConfig:
    """Layer the configuration sources over the defaults and validate the result.

    Later layers win: defaults < file < environment < CLI. Keys in any layer may
    be nested mappings, dotted paths such as ``"legacy.read_only"``, or a mix.

    Raises:
        ConfigError: If a layer is malformed or the merged values do not validate.
    """
    merged: dict[str, Any] = defaults.model_dump(mode="python")
    layers = {"file": file_overrides, "environment": env_overrides, "cli": cli_overrides}
    for layer, overrides in layers.items():
        if overrides is not None:
            _merge_into(merged, _expand_dotted(overrides, layer))

    try:
        return MigrationConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def env_overrides_from(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``STASHMIGRATE__SECTION__KEY`` variables as nested overrides.

    Values are parsed as YAML scalars so ``true`` or ``5`` arrive typed; values
    that fail to parse are kept as plain strings.
    """
    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        path = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not path:
            continue
        try:
            value: Any = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        _set_path(overrides, path, value, layer="environment")
    return overrides


def flatten_for_env(config: MigrationConfig) -> Dict[str, str]:
    """Render the config as the environment variables that would reproduce it."""
    return {
        ENV_PREFIX + "__".join(part.upper() for part in path): _env_value(value)
        for path, value in _leaves(config.model_dump(mode="python"), [])
    }


def _leaves(node: Mapping[str, Any], prefix: list[str]) -> Iterator[tuple[list[str], Any]]:
    for key, value in node.items():
        path = [*prefix, str(key)]
        if isinstance(value, MappingABC):
            yield from _leaves(value, path)
        else:
            yield path, value


def _env_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, list):
        return yaml.safe_dump(value, default_flow_style=True).strip()
    return str(value)


def _expand_dotted(overrides: Any, layer: str) -> dict[str, Any]:
    """Turn dotted keys into nested mappings, recursing into nested values."""
    if not isinstance(overrides, MappingABC):
        raise ConfigError(f"The {layer} configuration layer must be a mapping.")
    expanded: dict[str, Any] = {}
    for key, value in overrides.items():
        if not isinstance(key, str):
            raise ConfigError(f"Keys in the {layer} configuration layer must be strings.")
        if isinstance(value, MappingABC):
            value = _expand_dotted(value, layer)
        _set_path(expanded, key.split("."), value, layer=layer)
    return expanded


def _set_path(target: dict[str, Any], path: list[str], value: Any, *, layer: str) -> None:
    node = target
    for depth, segment in enumerate(path[:-1]):
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            dotted = ".".join(path[: depth + 1])
            raise ConfigError(f"The {layer} layer sets '{dotted}' both as a value and a section.")
        node = child
    if isinstance(value, dict) and isinstance(node.get(path[-1]), dict):
        _merge_into(node[path[-1]], value)
    else:
        node[path[-1]] = value


def _merge_into(target: dict[str, Any], overrides: Mapping[str, Any]) -> None:
    """Recursively apply ``overrides`` onto ``target`` in place."""
    for key, value in overrides.items():
        current = target.get(key)
        if isinstance(value, MappingABC) and isinstance(current, dict):
            _merge_into(current, value)
        else:
            target[key] = deepcopy(value)


__all__ = ["ENV_PREFIX", "env_overrides_from", "resolve_with_precedence", "flatten_for_env"]

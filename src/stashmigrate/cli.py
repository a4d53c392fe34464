"""Command line interface for stash-migrate."""

from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from stashmigrate.config import ConfigManager, MigrationConfig, resolve_with_precedence
from stashmigrate.errors import (
    AdapterError,
    ConfigError,
    LegacyStoreUnavailableError,
    MalformedLegacyRowError,
    StateError,
)
from stashmigrate.legacy import LegacyReader
from stashmigrate.logs import configure_logging
from stashmigrate.migration import ContentLocator
from stashmigrate.migration.models import (
    FailedRecord,
    MigrationReport,
    Processed,
    SkippedMissingSource,
)
from stashmigrate.migration.pipeline import MigrationPipeline
from stashmigrate.state import StateRepository
from stashmigrate.stores import get_blob_store, get_metadata_store

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """

    if quiet and mode != "error":
        return

    if summary_only and mode not in {"summary", "warning", "error"}:
        return

    console.print(message)


def _format_summary_line(command: str, source: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands."""

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {source}: {parts}.[/green]"


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a nested value within a dictionary for a dotted path.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """

    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


def _build_pipeline(
    config: MigrationConfig,
    reader: LegacyReader,
    *,
    resume: bool,
) -> MigrationPipeline:
    legacy = config.legacy
    state_repository = None
    if config.migration.checkpoint:
        state_repository = StateRepository(Path(config.migration.state_dir))
    return MigrationPipeline(
        reader=reader,
        metadata_store=get_metadata_store(config.metadata_store),
        blob_store=get_blob_store(config.blob_store, legacy),
        locator=ContentLocator(
            content_root=Path(legacy.content_root),
            thumbnail_dir=Path(legacy.thumbnail_dir),
            thumbnail_extension=legacy.thumbnail_extension,
        ),
        on_file_error=config.migration.on_file_error,
        state_repository=state_repository,
        resume=resume,
    )


def _outcome_row(outcome: Processed | SkippedMissingSource | FailedRecord) -> tuple[str, ...]:
    if isinstance(outcome, Processed):
        album = "-"
        if outcome.album_id is not None:
            album = f"{outcome.album_id} ({'created' if outcome.created_album else 'joined'})"
        return (str(outcome.legacy_id), "processed", outcome.name, str(outcome.size_bytes), album)
    if isinstance(outcome, SkippedMissingSource):
        return (str(outcome.legacy_id), "skipped", outcome.locator_pattern, "-", "-")
    return (str(outcome.legacy_id), "failed", outcome.message, "-", "-")


def _render_report(
    report: MigrationReport,
    database_path: str,
    *,
    quiet: bool,
    summary_only: bool,
) -> None:
    if report.files:
        table = Table(title=f"Migrated files from {database_path}")
        table.add_column("Legacy id")
        table.add_column("Outcome")
        table.add_column("Name / detail", overflow="fold")
        table.add_column("Size", justify="right")
        table.add_column("Album")
        for outcome in report.files:
            table.add_row(*_outcome_row(outcome))
        _emit_message(table, mode="detail", quiet=quiet, summary_only=summary_only)

    counts = report.counts()
    if counts["skipped"]:
        _emit_message(
            f"[yellow]{counts['skipped']} file(s) skipped because their content "
            "was missing.[/yellow]",
            mode="warning",
            quiet=quiet,
            summary_only=summary_only,
        )
    if counts["failed"]:
        _emit_message(
            f"[red]{counts['failed']} file(s) failed and were not migrated.[/red]",
            mode="error",
            quiet=quiet,
            summary_only=summary_only,
        )
    _emit_message(
        _format_summary_line("Migration", database_path, counts),
        mode="summary",
        quiet=quiet,
        summary_only=summary_only,
    )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="stash-migrate")
def cli() -> None:
    """Migrate a legacy stash database and its files into the new stores."""


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file to use instead of ~/.stashmigrate/config.yaml.",
)
@click.option("--legacy-db", type=str, help="Path to the legacy stash database.")
@click.option(
    "--continue-on-error",
    is_flag=True,
    help="Record failed files and keep going instead of aborting the run.",
)
@click.option("--resume", is_flag=True, help="Resume from the last checkpoint.")
@click.option("--json", "json_output", is_flag=True, help="Emit the migration report as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def run(
    ctx: click.Context,
    config_path: Path | None,
    legacy_db: str | None,
    continue_on_error: bool,
    resume: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Run the migration once, end to end.

    Args:
        ctx: Click context used for parameter source inspection.
        config_path: Optional configuration file path.
        legacy_db: Override for the legacy database path.
        continue_on_error: If True, failed files are recorded instead of aborting.
        resume: If True, skip records saved in the last checkpoint.
        json_output: If True, emit the report as JSON.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.
    """

    json_enabled = json_output
    try:
        overrides: dict[str, Any] = {}
        if legacy_db:
            overrides["legacy.database_path"] = legacy_db
        if continue_on_error:
            overrides["migration.on_file_error"] = "continue"
        if resume:
            overrides["migration.checkpoint"] = True

        config = ConfigManager(config_path).load(cli_overrides=overrides or None)

        explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
        explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE
        quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
        summary_only = summary_mode if explicit_summary else config.cli.summary_default

        if json_output:
            if explicit_quiet and quiet_enabled:
                raise click.ClickException("--json cannot be combined with --quiet.")
            if explicit_summary and summary_only:
                raise click.ClickException("--json cannot be combined with --summary.")
            quiet_enabled = False
            summary_only = False

        if quiet_enabled and summary_only:
            raise click.ClickException(
                "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
            )

        logging_settings = config.logging
        if json_output or quiet_enabled:
            logging_settings = logging_settings.model_copy(update={"level": "WARNING"})
        configure_logging(logging_settings)

        legacy = config.legacy
        with LegacyReader(
            Path(legacy.database_path),
            timeout_seconds=legacy.timeout_seconds,
            read_only=legacy.read_only,
        ) as reader:
            report = _build_pipeline(config, reader, resume=resume).run()

        if json_output:
            payload = report.model_dump(mode="json")
            payload["counts"] = report.counts()
            console.print_json(data=payload)
            return

        _render_report(
            report,
            legacy.database_path,
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_enabled, original=exc)
    except LegacyStoreUnavailableError as exc:
        _handle_cli_error(
            str(exc), code="legacy_store_unavailable", json_output=json_enabled, original=exc
        )
    except MalformedLegacyRowError as exc:
        _handle_cli_error(
            str(exc),
            code="malformed_legacy_row",
            json_output=json_enabled,
            details={"table": exc.table, "row_id": str(exc.row_id), "fields": exc.fields},
            original=exc,
        )
    except AdapterError as exc:
        _handle_cli_error(
            f"Migration aborted: {exc}",
            code="adapter_error",
            json_output=json_enabled,
            details={"operation": exc.operation, "record_id": str(exc.record_id)},
            original=exc,
        )
    except StateError as exc:
        _handle_cli_error(str(exc), code="state_error", json_output=json_enabled, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_enabled, original=exc)
    except Exception as exc:
        logging.getLogger(__name__).debug("Unexpected failure", exc_info=True)
        _handle_cli_error(
            f"Unexpected error during migration: {exc}",
            code="internal_error",
            json_output=json_enabled,
            details={"exception": type(exc).__name__},
            original=exc,
        )


@cli.group()
def config() -> None:
    """Manage stash-migrate configuration files and overrides."""


@config.command("view")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file to display.",
)
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(config_path: Path | None, no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager(config_path)
    try:
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file to update.",
)
def config_set(key: str, value: str, config_path: Path | None) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.
        config_path: Optional configuration file path.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager(config_path)
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException(
            "KEY must specify a dotted path such as 'legacy.database_path'."
        )

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=MigrationConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    # The "Last updated" stamp always changes; only real edits count.
    changed = [
        line
        for line in difflib.unified_diff(before, after, lineterm="", n=0)
        if line[:1] in "+-" and not line.startswith(("+++", "---", "+# Last", "-# Last"))
    ]
    if not changed:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    diff = difflib.unified_diff(
        before,
        after,
        fromfile="config.yaml (before)",
        tofile="config.yaml (after)",
        lineterm="",
    )
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()

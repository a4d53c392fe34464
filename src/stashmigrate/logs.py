"""Logging setup for the stash-migrate CLI."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from stashmigrate.config.models import LoggingSettings

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: LoggingSettings, *, console: Console | None = None) -> None:
    """Route package log records to the terminal and, optionally, a rotating file.

    Args:
        settings: Logging section of the loaded configuration.
        console: Rich console used for terminal output; stderr when omitted.
    """
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger("stashmigrate")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    terminal = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    terminal.setLevel(level)
    logger.addHandler(terminal)

    if settings.file:
        path = Path(settings.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            path,
            maxBytes=max(settings.max_size_mb, 1) * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        rotating.setFormatter(logging.Formatter(_FILE_FORMAT))
        rotating.setLevel(level)
        logger.addHandler(rotating)


__all__ = ["configure_logging"]

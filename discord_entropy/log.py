"""Logging setup — rich-formatted diagnostics on stderr."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LEVELS = {-1: logging.ERROR, 0: logging.WARNING, 1: logging.INFO}


def setup_logging(verbosity: int = 0) -> None:
    """Route the package logger to a stderr RichHandler.

    *verbosity* of -1 shows errors only, 0 warnings, 1 info, 2+ debug.
    stdout is left untouched so raw output can be piped.
    """
    level = LEVELS.get(verbosity, logging.DEBUG if verbosity > 1 else logging.ERROR)
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbosity > 1,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger = logging.getLogger("discord_entropy")
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level)

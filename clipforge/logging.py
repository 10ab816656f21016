"""
clipforge.logging - Centralized logging configuration.

Console logging is terse and quiet by default; an optional log file
records every pipeline stage and FFmpeg invocation at DEBUG level.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger("clipforge")

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _reset_handlers() -> None:
    for handler in list(logger.handlers):
        if getattr(handler, "clipforge_owned", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure logging for the clipforge package.

    Args:
        verbose: If True, enable DEBUG level console logging; otherwise WARNING
        log_file: Also write DEBUG level records to this file
    """
    level = logging.DEBUG if verbose else logging.WARNING
    _reset_handlers()

    if not log_file:
        logging.basicConfig(level=level, format=CONSOLE_FORMAT)
        logger.setLevel(level)
        return

    # The file wants DEBUG records, so the console filters at its handler
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    for handler in (console, file_handler):
        handler.clipforge_owned = True
        logger.addHandler(handler)

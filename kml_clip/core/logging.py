"""Logging setup for the command line.

Library code only ever calls ``logging.getLogger("kml_clip.<module>")``;
handlers are the host application's business.  The command line calls
``configure_logging()`` to get readable console output and, optionally,
a detailed log file.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "kml_clip"

CONSOLE_FORMAT = "%(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: int = logging.INFO, log_file: Path | None = None) -> logging.Logger:
    """Attach console (and optional file) handlers to the package logger.

    The console handler writes to stderr so stdout stays free for JSON
    output.  The file handler, when requested, records DEBUG detail.
    Calling this twice replaces the previous handlers.

    Returns:
        The configured ``kml_clip`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if log_file else level)
    logger.handlers.clear()
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)
        logger.debug("Logging initialized: %s", log_file)

    return logger

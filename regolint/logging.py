"""Logging setup: diagnostics go to stderr so stdout only carries lint output."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "regolint"
CONSOLE_FORMAT = "regolint: %(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a child of the ``regolint`` logger, e.g. ``regolint.engine``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send regolint records to stderr and optionally ``log_file``.

    Only warnings reach the console unless ``verbose`` is set. The log file,
    when given, always records debug output.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # configure_logging may run once per CLI invocation in the same process
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(sink)

    return logger


__all__ = ["CONSOLE_FORMAT", "FILE_FORMAT", "ROOT_LOGGER", "configure_logging", "get_logger"]

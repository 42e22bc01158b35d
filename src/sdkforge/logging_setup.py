"""Logging configuration for the ``sdkforge`` logger hierarchy.

Modules log through ``logging.getLogger(__name__)``. The CLI calls
:func:`configure_logging` once per invocation to attach:

* a stderr handler -- a :class:`rich.logging.RichHandler` in verbose mode,
  otherwise a plain handler limited to warnings;
* an activity-log file handler writing ``out/activity.log``, rotated at
  50 MB, at the level chosen by the application config's ``logLevel``.

User-facing messages do not go through logging; they use
:mod:`sdkforge.output`.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

LOGGER_NAME = "sdkforge"
MAX_LOG_BYTES = 50 * 1024 * 1024
BACKUP_COUNT = 3

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def level_for(name: str) -> int:
    """Map an application ``logLevel`` value to a :mod:`logging` level."""
    return _LEVELS.get(str(name).lower(), logging.INFO)


def configure_logging(
    verbose: bool = False,
    log_level: str = "info",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """Install handlers on the ``sdkforge`` logger, replacing earlier ones.

    Args:
        verbose: Route debug records to stderr through Rich.
        log_level: Level of the activity log (``debug``, ``info``, ``warn``
            or ``error``).
        log_file: Activity log path. ``None`` disables the file handler.

    Returns:
        The configured ``sdkforge`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_level = level_for(log_level)
    stderr_level = logging.DEBUG if verbose else logging.WARNING

    if verbose:
        stderr_handler: logging.Handler = RichHandler(show_path=False, rich_tracebacks=True)
    else:
        stderr_handler = logging.StreamHandler()
        stderr_handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    stderr_handler.setLevel(stderr_level)
    logger.addHandler(stderr_handler)

    level = stderr_level
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
        )
        file_handler.setLevel(file_level)
        logger.addHandler(file_handler)
        level = min(level, file_level)

    logger.setLevel(level)
    logger.propagate = False
    return logger

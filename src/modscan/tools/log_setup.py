"""
Logging set-up for the command-line tools.

Console output goes to stderr so it never mixes with the scan report on
stdout. When a log directory is given, everything at the configured level is
also written to a file rotated at midnight.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

LOG_FILENAME = "modscan.log"
LOG_LEVEL_ENV = "MODSCAN_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
INSTALLED_MARK = "_modscan_handler"

logger = logging.getLogger(__name__)


def resolve_level(verbose: bool = False) -> int:
    """DEBUG when verbose, else MODSCAN_LOG_LEVEL (default INFO)."""
    if verbose:
        return logging.DEBUG
    name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    log_dir: Optional[Path],
    level: int = logging.INFO,
    retention_days: int = 14,
    *,
    verbose: bool = False,
) -> Optional[Path]:
    """
    Install console and rotating file handlers on the root logger.

    Args:
        log_dir: Directory for the log file. None disables file logging.
        level: Level for the file handler and the root logger.
        retention_days: Rotated files kept before the oldest is deleted.
        verbose: Show everything on the console instead of warnings only.

    Returns:
        Path of the log file, or None when file logging is disabled or the
        directory cannot be created.
    """
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    # Replace handlers from an earlier call instead of stacking them.
    for handler in list(root.handlers):
        if getattr(handler, INSTALLED_MARK, False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler()
    console.setLevel(level if verbose else max(level, logging.WARNING))
    console.setFormatter(formatter)
    setattr(console, INSTALLED_MARK, True)
    root.addHandler(console)

    if log_dir is None:
        return None

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / LOG_FILENAME
        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_path,
            when="midnight",
            backupCount=retention_days,
            encoding="utf-8",
        )
    except OSError as e:
        logger.warning("File logging disabled, cannot use %s: %s", log_dir, e)
        return None

    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    setattr(file_handler, INSTALLED_MARK, True)
    root.addHandler(file_handler)
    return log_path

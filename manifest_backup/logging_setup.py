"""Logging configuration shared by the setup and runner entry points."""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
LOGGER_NAME = "manifest_backup"


def _file_handler(log_file: str) -> tuple[Optional[logging.Handler], Optional[str]]:
    """Create a file handler, returning a warning instead when the path is unusable."""
    log_path = Path(log_file).expanduser()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), None
    except OSError as e:
        return None, f"Could not open log file '{log_path}', logging to console only: {e}"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    cli_mode: bool = True,
) -> logging.Logger:
    """
    Set up logging for the application.

    Args:
        log_level: Level name such as INFO or DEBUG
        log_file: Optional path of a log file to append to
        cli_mode: Also log to stdout. Cron runs with a log file can turn this off.

    Returns:
        The package logger
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = []
    pending_warning = None

    if log_file:
        handler, pending_warning = _file_handler(log_file)
        if handler:
            handlers.append(handler)

    if cli_mode or not handlers:
        handlers.append(logging.StreamHandler(sys.stdout))

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)

    if pending_warning:
        logger.warning(pending_warning)

    return logger

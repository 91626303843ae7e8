"""
Logging service for pagemark.

Centralized logging setup with a console handler and an optional daily
log file. Log files go to ~/.local/share/pagemark/logs/ unless another
directory is given.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


DEFAULT_LOG_DIR = Path.home() / ".local" / "share" / "pagemark" / "logs"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logging_initialized = False


def parse_log_level(level: Union[int, str]) -> int:
    """
    Turn a level name from the config file ("DEBUG", "info", ...) into a
    logging constant. Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    log_level: Union[int, str] = logging.INFO,
    log_to_file: bool = True,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Configure the logging system for pagemark.

    Args:
        log_level: The logging level, as a constant or a level name.
        log_to_file: Whether to also log to a file.
        log_dir: Directory for log files. Defaults to DEFAULT_LOG_DIR.

    Only the first call has an effect.
    """
    global _logging_initialized

    if _logging_initialized:
        return

    level = parse_log_level(log_level)
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_to_file:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / f"pagemark_{datetime.now().strftime('%Y%m%d')}.log"

            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
            root_logger.addHandler(file_handler)

        except OSError as e:
            # Console only
            console_handler.setLevel(logging.WARNING)
            root_logger.warning(f"Could not create log file: {e}. Logging to console only.")

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: The name for the logger, typically __name__ of the calling module.

    Returns:
        A Logger instance.
    """
    return logging.getLogger(name)

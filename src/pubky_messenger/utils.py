"""
Pubky Messenger - Utility functions.

Provides logging setup and small helpers shared by the protocol modules.
"""

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_DATE_FORMAT,
    LOG_FILENAME,
    LOG_FORMAT,
    LOG_KEY_PREFIX,
    LOG_MAX_BYTES,
)

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "pubky_messenger"


def unix_timestamp() -> int:
    """Current time as whole seconds since the epoch."""
    return int(time.time())


def abbreviate_key(public_key: object, length: int = LOG_KEY_PREFIX) -> str:
    """
    Shorten a public key for log output.

    Args:
        public_key: PublicKey or key string
        length: Number of leading characters to keep

    Returns:
        Leading characters of the key's string form
    """
    return str(public_key)[:length]


def configure_logging(config, log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Install handlers on the package logger according to the [logging] section.

    Calling it again replaces the previously installed handlers.

    Args:
        config: Config instance
        log_dir: Overrides logging.log_dir when given

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    level_name = str(config.get("logging", "level", "INFO")).upper()
    package_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if config.get("logging", "console_logging", True):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        package_logger.addHandler(console)

    if config.get("logging", "file_logging", False):
        target_dir = Path(log_dir or config.get("logging", "log_dir")).expanduser()
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            target_dir / LOG_FILENAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    logger.debug(f"Logging configured at level {level_name}")
    return package_logger

"""
Logging setup shared by the Mzima DB Tools scripts.

Every script logs to stdout and to a size-rotated file under logs/. The
archive, migration and schema-backup scripts each get a dedicated file whose
path comes from config; any other named logger writes to logs/<name>.log.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from config.settings import Config


# Used only when config.settings cannot be imported
class _FallbackConfig:
    LOG_LEVEL = "INFO"
    LOG_MAX_BYTES = 5 * 1024 * 1024
    LOG_BACKUP_COUNT = 3
    ARCHIVE_LOG_FILE = "logs/table_archive.log"
    MIGRATION_LOG_FILE = "logs/migrations.log"
    SCHEMA_BACKUP_LOG_FILE = "logs/schema_backup.log"


config: "Config | _FallbackConfig" = _FallbackConfig()

try:
    from config.settings import config as imported_config

    config = imported_config
except Exception:
    pass

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Logger name -> config attribute holding its log file
NAMED_LOG_FILES = {
    "table_archive": "ARCHIVE_LOG_FILE",
    "migrations": "MIGRATION_LOG_FILE",
    "schema_backup": "SCHEMA_BACKUP_LOG_FILE",
}


def _default_log_file(logger_name: str | None) -> str:
    attr = NAMED_LOG_FILES.get(logger_name or "")
    if attr:
        return getattr(config, attr)
    return f"logs/{logger_name or 'default'}.log"


def _attach_file_handler(
    logger: logging.Logger,
    log_file: str,
    formatter: logging.Formatter,
    max_bytes: int,
    backup_count: int,
) -> bool:
    """Add a rotating file handler; returns False if the file can't be opened."""
    try:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count
        )
    except OSError as e:
        logger.warning(f"Failed to setup file logging to {log_file}: {e}")
        return False

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return True


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    logger_name: str | None = None,
    max_bytes: int | None = None,
    backup_count: int | None = None,
) -> logging.Logger:
    """
    Configure a logger with console and rotating file output.

    Calling this again for the same logger replaces its handlers, so scripts
    and tests can set it up repeatedly without duplicate lines.

    Args:
        log_level (str, optional): Level name such as 'INFO' or 'DEBUG'.
                                 Defaults to config.LOG_LEVEL
        log_file (str, optional): Log file path. Defaults to the file
                                 configured for logger_name
        logger_name (str, optional): Logger name; the root logger if None
        max_bytes (int, optional): Rotation size. Defaults to config.LOG_MAX_BYTES
        backup_count (int, optional): Rotated files to keep. Defaults to
                                 config.LOG_BACKUP_COUNT

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(logger_name="table_discovery")
        >>> logger.info("🚀 Starting table discovery...")
    """
    log_level = log_level or config.LOG_LEVEL
    log_file = log_file or _default_log_file(logger_name)
    max_bytes = max_bytes if max_bytes is not None else config.LOG_MAX_BYTES
    backup_count = (
        backup_count if backup_count is not None else config.LOG_BACKUP_COUNT
    )

    formatter = logging.Formatter(LOG_FORMAT)
    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if _attach_file_handler(logger, log_file, formatter, max_bytes, backup_count):
        logger.debug(f"Logging configured - Level: {log_level}, File: {log_file}")
    else:
        logger.info("Continuing with console logging only")

    return logger


def setup_archive_logging(log_level: str | None = None) -> logging.Logger:
    """Logger for archive_tables.py and remove_archived_tables.py."""
    return setup_logging(log_level=log_level, logger_name="table_archive")


def setup_migration_logging(log_level: str | None = None) -> logging.Logger:
    """Logger for run_migrations.py."""
    return setup_logging(log_level=log_level, logger_name="migrations")


def setup_schema_backup_logging(log_level: str | None = None) -> logging.Logger:
    """Logger for schema_backup.py."""
    return setup_logging(log_level=log_level, logger_name="schema_backup")

"""Logging configuration for the add-on manager with dual output (console + files)."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

from ..constants import LOG_INIT_MESSAGE, MAIN_LOG_FILE, MIGRATION_LOG_FILE, SECURITY_FIELDS


def redact_sensitive_fields(_logger: Any, _method_name: str, event_dict: dict) -> dict:
    """Mask credential-like values before they reach any handler."""
    for key in list(event_dict):
        if key.lower() in SECURITY_FIELDS:
            event_dict[key] = "***"
    return event_dict


def setup_logging(
    log_dir: Path | str = Path("logs"),
    log_level: str | None = None,
    max_file_size_mb: int = 10,
) -> None:
    """Setup dual logging system: console + files with automatic truncation.

    Creates two log files:
    - addon_manager.log: General add-on lifecycle operations
    - migration.log: Legacy backend migration steps

    Args:
        log_dir: Directory for log files
        log_level: Log level (defaults to LOG_LEVEL env var or INFO)
        max_file_size_mb: Max file size before truncation (no backup files kept)
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    log_level_num = getattr(logging, log_level.upper(), logging.INFO)
    max_bytes = max_file_size_mb * 1024 * 1024

    # Clear any existing handlers to prevent duplicates
    logging.getLogger().handlers.clear()

    main_file_handler = RotatingFileHandler(
        log_dir / MAIN_LOG_FILE,
        maxBytes=max_bytes,
        backupCount=0,
        encoding="utf-8",
    )
    main_file_handler.setLevel(log_level_num)

    migration_file_handler = RotatingFileHandler(
        log_dir / MIGRATION_LOG_FILE,
        maxBytes=max_bytes,
        backupCount=0,
        encoding="utf-8",
    )
    migration_file_handler.setLevel(log_level_num)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_num)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_num)
    root_logger.addHandler(console_handler)

    main_logger = logging.getLogger("addon_manager")
    main_logger.addHandler(main_file_handler)
    main_logger.propagate = True

    migration_logger = logging.getLogger("migration")
    migration_logger.addHandler(migration_file_handler)
    migration_logger.propagate = True

    from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

    renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stdout.isatty()
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            redact_sensitive_fields,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )
    console_handler.setFormatter(ProcessorFormatter(processor=renderer))
    main_file_handler.setFormatter(
        ProcessorFormatter(processor=structlog.processors.JSONRenderer())
    )
    migration_file_handler.setFormatter(
        ProcessorFormatter(processor=structlog.processors.JSONRenderer())
    )

    logger = structlog.get_logger("addon_manager")
    logger.info(
        LOG_INIT_MESSAGE,
        log_dir=str(log_dir.absolute()),
        log_level=log_level,
        max_file_size_mb=max_file_size_mb,
        main_log=str(log_dir / MAIN_LOG_FILE),
        migration_log=str(log_dir / MIGRATION_LOG_FILE),
    )


def get_migration_logger() -> Any:
    """Get logger for migration operations (writes to migration.log)."""
    return structlog.get_logger("migration")

"""
Centralized logging configuration for the POS terminal.

Cloud sync runs on short-lived background threads while the till keeps
taking orders on the main thread, so every log line carries the name of
the thread that wrote it.

Features:
    - Thread name in every log message
    - Console output (always enabled)
    - Rotating file logs (optional, for production)
    - Separate error log for ERROR/CRITICAL messages

Log Format:
    2026-10-17 10:15:30 [INFO    ] [MainThread] pos_terminal.services.order_service - Order #12 created
    2026-10-17 10:15:31 [INFO    ] [Sync-push-a1b2] pos_terminal.sync.push.a1b2 - Snapshot uploaded

Usage:
    # At application startup
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, enable_file_logging=True)

    # In modules
    logger = get_logger(__name__)
    logger.info("Order created")
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_LOGGER_NAME = "pos_terminal"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Rotation for both file logs
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


# =============================================================================
# THREAD CONTEXT FILTER
# =============================================================================

class ThreadContextFilter(logging.Filter):
    """
    Stamp each record with the thread that produced it.

    Adds ``thread_name`` and ``thread_id`` so the format string can tell the
    main till thread apart from sync workers.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.thread_name = threading.current_thread().name
        record.thread_id = threading.get_ident()
        return True


def _attach(
    logger: logging.Logger,
    handler: logging.Handler,
    level: int,
    formatter: logging.Formatter,
    thread_filter: logging.Filter,
) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(thread_filter)
    logger.addHandler(handler)


def _rotating_file(path: Path) -> RotatingFileHandler:
    return RotatingFileHandler(
        filename=path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    app_name: str = APP_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure the application logger.

    Console output is always on. With file logging enabled, ``<app>.log``
    receives everything at ``log_level`` and ``<app>_error.log`` only
    ERROR and above, both rotated at 10 MB.

    Args:
        app_name: Name of the application logger (default: "pos_terminal")
        log_level: Minimum log level (default: INFO)
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Whether to write log files (default: True)

    Returns:
        The configured application logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Tests build several apps in one process
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    thread_filter = ThreadContextFilter()

    _attach(logger, logging.StreamHandler(sys.stdout), log_level, formatter, thread_filter)

    if enable_file_logging:
        log_dir = Path(log_dir) if log_dir else Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        _attach(logger, _rotating_file(app_log_file), log_level, formatter, thread_filter)
        _attach(
            logger,
            _rotating_file(log_dir / f"{app_name}_error.log"),
            logging.ERROR,
            formatter,
            thread_filter,
        )
        logger.info(f"File logging enabled: {app_log_file}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


# =============================================================================
# LOGGER FACTORY FUNCTIONS
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Child logger under the application namespace.

    ``get_logger("services.order_service")`` returns
    ``pos_terminal.services.order_service``.
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def get_sync_logger(operation: str, sync_id: str) -> logging.Logger:
    """
    Logger for one sync run, e.g. ``pos_terminal.sync.push.a1b2c3d4``.

    Args:
        operation: "push" or "pull"
        sync_id: Identifier of the run (first 8 chars are used)
    """
    return logging.getLogger(f"{APP_LOGGER_NAME}.sync.{operation}.{sync_id[:8]}")


def set_thread_name(name: str) -> None:
    """Rename the current thread; the name shows up in every log line."""
    threading.current_thread().name = name

"""
POS Terminal - Flask Application Entry Point.

The factory opens the local database, builds the PosTerminal (order,
backup, report and sync services), runs the startup pull when cloud sync
is enabled, and registers the JSON blueprints and error handlers.

ARCHITECTURE:
    Main Thread
    ├── Local database (SQLite, opened fail-fast)
    ├── Flask request handling (every local write happens here)
    └── Shutdown: sync threads joined, database closed

    Sync Threads (one per push/pull)
    └── Each with its OWN Dropbox client; snapshots taken under the store lock

A local write is always committed before its push is requested. A failed
push never undoes or blocks the write.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import APP_LOGGER_NAME, setup_logging, get_logger
from core.exceptions import (
    NotFoundError,
    PosTerminalError,
    StorageFailureError,
    TransportFailureError,
    ValidationFailedError,
)
from services.terminal import PosTerminal
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Directory holding the .env file.

    Next to the executable in a PyInstaller bundle, next to app.py otherwise.
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    return Path(__file__).parent


def _load_environment() -> None:
    # .env always wins over the shell environment
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)


def _configure_logging(app: Flask) -> None:
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    write_files = app.config.get("ENVIRONMENT") == "production" and not app.config.get("TESTING")

    app_logger = setup_logging(
        app_name=APP_LOGGER_NAME,
        log_level=log_level,
        log_dir=app.config.get("LOG_DIR"),
        enable_file_logging=write_files,
    )

    # Flask's own messages go through the same handlers
    app.logger.handlers = app_logger.handlers
    app.logger.setLevel(log_level)


def _error_response(error: PosTerminalError, status_code: int):
    return jsonify({
        "error": error.message,
        "type": type(error).__name__,
        "details": error.details,
    }), status_code


def _register_error_handlers(app: Flask) -> None:
    """Map the exception hierarchy onto JSON error responses."""

    @app.errorhandler(NotFoundError)
    def handle_not_found(e: NotFoundError):
        return _error_response(e, 404)

    @app.errorhandler(ValidationFailedError)
    def handle_validation_failed(e: ValidationFailedError):
        logger.info(f"Rejected request: {e}")
        return _error_response(e, 400)

    @app.errorhandler(TransportFailureError)
    def handle_transport_failure(e: TransportFailureError):
        logger.warning(f"Cloud request failed: {e}")
        return _error_response(e, 502)

    @app.errorhandler(StorageFailureError)
    def handle_storage_failure(e: StorageFailureError):
        logger.error(f"Local storage failure: {e}")
        return _error_response(e, 500)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 32 * 1024 * 1024) / (1024 * 1024)
        return jsonify({"error": f"Backup too large. Maximum upload size is {max_mb:.0f} MB."}), 413

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"error": e.description}), e.code


def create_app(config_object="config.Config", terminal: Optional[PosTerminal] = None) -> Flask:
    """
    Application factory.

    FAIL-FAST: if the local database cannot be opened the app does not start.

    Args:
        config_object: Config class or import path
        terminal: Pre-built PosTerminal (tests); built from config if omitted

    Returns:
        Configured Flask application

    Raises:
        StorageFailureError: The local database cannot be opened
    """
    _load_environment()

    app = Flask(__name__)
    app.config.from_object(config_object)
    _configure_logging(app)

    logger.info(f"Starting POS terminal in {app.config.get('ENVIRONMENT')} mode")

    if terminal is None:
        try:
            terminal = PosTerminal.from_config(app.config)
        except StorageFailureError as e:
            logger.error(f"FATAL: Cannot open local database - {e}")
            raise
        logger.info(f"Local database ready: {app.config.get('DATABASE_PATH')}")

    # Routes reach the terminal through app.config
    app.config["POS_TERMINAL"] = terminal

    # Startup pull (only when sync is enabled, credentialed and online)
    terminal.start()

    def cleanup():
        logger.info("Shutting down...")
        terminal.shutdown()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    register_blueprints(app)
    _register_error_handlers(app)

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode, use_reloader=False)

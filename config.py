"""
Configuration for the POS terminal.

Business settings (restaurant details, tax and service-charge rates, the
Dropbox access token) live in the local database and are edited from the
settings screen. This file only holds deployment values: where the database
lives, which cloud endpoints and remote path to use, and timeouts.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Default configuration for the POS terminal."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    MAX_CONTENT_LENGTH = 32 * 1024 * 1024  # 32 MB backup imports
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # Rotating log files are written here in production (default: ./logs)
    LOG_DIR = os.environ.get("POS_LOG_DIR") or None

    # Local database (one key per collection / singleton record)
    DATABASE_PATH = os.environ.get(
        "POS_DATABASE_PATH", str(BASE_DIR / "data" / "pos_terminal.db")
    )

    # ==========================================================================
    # Cloud sync (Dropbox)
    # ==========================================================================
    # The whole database is mirrored to ONE file. Every device that should
    # share data must point at the same path. The last device to push wins;
    # there is no merge, so only one till should be taking orders at a time.
    # ==========================================================================
    DROPBOX_SNAPSHOT_PATH = os.environ.get("DROPBOX_SNAPSHOT_PATH", "/shinwari_pos_db.json")
    DROPBOX_API_URL = os.environ.get("DROPBOX_API_URL", "https://api.dropboxapi.com")
    DROPBOX_CONTENT_URL = os.environ.get("DROPBOX_CONTENT_URL", "https://content.dropboxapi.com")
    SYNC_TIMEOUT_SECONDS = float(os.environ.get("SYNC_TIMEOUT_SECONDS", "30"))

    # Host used for the "is the device online" check before each sync
    CONNECTIVITY_CHECK_HOST = os.environ.get("CONNECTIVITY_CHECK_HOST", "content.dropboxapi.com")
    CONNECTIVITY_CHECK_TIMEOUT_SECONDS = float(
        os.environ.get("CONNECTIVITY_CHECK_TIMEOUT_SECONDS", "2")
    )

    # Orders: "0" lets staff move an order to any status (kitchen display
    # behaviour), "1" enforces the forward kitchen flow.
    STRICT_ORDER_TRANSITIONS = _env_flag("STRICT_ORDER_TRANSITIONS")

    # PIN required by the "wipe all data" endpoint
    ADMIN_RESET_PIN = os.environ.get("ADMIN_RESET_PIN", "")


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    DATABASE_PATH = ":memory:"
    ADMIN_RESET_PIN = "0000"

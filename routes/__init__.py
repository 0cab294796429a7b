"""
Flask route blueprints for the POS terminal.

This module contains all route handlers organized by functionality:
- main: Health check
- orders: Checkout, revisions and status changes
- collections: Satellite collections, settings and printer config
- sync: Cloud sync status and manual push/pull
- backup: Snapshot download, restore and wipe
- reports: Sales/expense/purchase summaries

Each blueprint is registered with the Flask app in create_app().
"""

from .main import main_bp
from .orders import orders_bp
from .collections import collections_bp
from .sync import sync_bp
from .backup import backup_bp
from .reports import reports_bp

__all__ = [
    "main_bp",
    "orders_bp",
    "collections_bp",
    "sync_bp",
    "backup_bp",
    "reports_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(main_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(collections_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(backup_bp)
    app.register_blueprint(reports_bp)

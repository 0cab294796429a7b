"""
Main routes (health check).
"""

from flask import Blueprint, current_app, jsonify

from .helpers import get_terminal

main_bp = Blueprint("main", __name__)


@main_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    terminal = get_terminal()
    checks = terminal.health()

    return jsonify({
        "status": "ok" if checks["database_open"] else "degraded",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": checks,
    })

"""
Cloud sync routes.

Handles:
- /api/sync/status - Current sync status for the status indicator
- /api/sync/push - Upload a snapshot now
- /api/sync/pull - Replace local data with the cloud copy now
- /api/sync/test - Verify a Dropbox token and enable sync
"""

from flask import Blueprint, jsonify, request

from .helpers import get_terminal

sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


@sync_bp.route("/status", methods=["GET"])
def status():
    return jsonify(get_terminal().sync.status())


@sync_bp.route("/push", methods=["POST"])
def push():
    """Synchronous push; the outcome is also recorded in the status."""
    result = get_terminal().sync.push()
    return jsonify(result.to_dict())


@sync_bp.route("/pull", methods=["POST"])
def pull():
    result = get_terminal().sync.pull()
    return jsonify(result.to_dict())


@sync_bp.route("/test", methods=["POST"])
def test_connection():
    """
    Check a Dropbox token.

    On success the token is saved and sync is switched on.
    """
    data = request.get_json(silent=True) or {}
    display_name = get_terminal().connect_cloud(data.get("accessToken"))
    return jsonify({"connected": True, "displayName": display_name})

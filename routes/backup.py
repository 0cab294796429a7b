"""
Backup routes.

Handles:
- /api/backup (GET) - Download a snapshot of every collection
- /api/backup (POST) - Restore a snapshot (file upload or raw JSON body)
- /api/backup/clear - Wipe all local data (admin PIN required)
"""

from datetime import datetime, timezone

from flask import Blueprint, Response, jsonify, request

from logging_config import get_logger
from .helpers import get_terminal, json_body


# Module logger
logger = get_logger(__name__)

backup_bp = Blueprint("backup", __name__, url_prefix="/api/backup")


@backup_bp.route("", methods=["GET"])
def download():
    blob = get_terminal().backup.export_snapshot()
    filename = f"pos_backup_{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.json"

    return Response(
        blob,
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@backup_bp.route("", methods=["POST"])
def restore():
    """
    Restore a backup.

    Accepts a multipart upload under "file" or the snapshot as the body.
    Nothing is changed if the snapshot is rejected.
    """
    uploaded = request.files.get("file")
    blob = uploaded.read() if uploaded else request.get_data()

    get_terminal().restore_backup(blob)
    logger.info(f"Backup restored ({len(blob)} bytes)")
    return jsonify({"restored": True})


@backup_bp.route("/clear", methods=["POST"])
def clear():
    data = json_body()
    get_terminal().clear_all_data(str(data.get("pin", "")))
    return jsonify({"cleared": True})

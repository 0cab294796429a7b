"""
Collection and settings routes.

Handles:
- /api/collections/<name> - Read / replace a satellite collection
- /api/settings - Read / replace system settings
- /api/printer - Read / replace printer configuration
"""

from typing import Optional

from flask import Blueprint, jsonify, request

from core.cloud_client import normalize_token
from core.exceptions import ValidationFailedError
from models.settings import TOKEN_MASK, PrinterConfig, SystemSettings
from .helpers import MAX_NOTE_LENGTH, get_terminal, json_body, sanitize_text

collections_bp = Blueprint("collections", __name__, url_prefix="/api")

PAPER_WIDTHS = ("58mm", "80mm")


@collections_bp.route("/collections/<name>", methods=["GET"])
def get_collection(name: str):
    return jsonify(get_terminal().get_collection(name))


@collections_bp.route("/collections/<name>", methods=["PUT"])
def put_collection(name: str):
    """Replace a whole collection. Body is a JSON array."""
    items = request.get_json(silent=True)
    if not isinstance(items, list):
        raise ValidationFailedError("Request body must be a JSON array")

    get_terminal().put_collection(name, items)
    return jsonify({"collection": name, "count": len(items)})


@collections_bp.route("/settings", methods=["GET"])
def get_settings():
    """Settings with the Dropbox token masked."""
    return jsonify(get_terminal().get_settings().to_public_dict())


def _submitted_token(data) -> Optional[str]:
    """Token from the body; None when omitted or sent back masked."""
    sync = data.get("sync")
    dropbox = sync.get("dropbox") if isinstance(sync, dict) else None
    if not isinstance(dropbox, dict) or "accessToken" not in dropbox:
        return None
    token = str(dropbox["accessToken"] or "")
    if token.startswith(TOKEN_MASK):
        return None
    return token


@collections_bp.route("/settings", methods=["PUT"])
def put_settings():
    """
    Replace system settings.

    The stored Dropbox token is kept unless the body carries a new one
    (an empty string clears it).
    """
    terminal = get_terminal()
    data = json_body()
    try:
        settings = SystemSettings.from_dict(data)
    except (AttributeError, TypeError, ValueError) as e:
        raise ValidationFailedError(f"Invalid settings: {e}")

    token = _submitted_token(data)
    if token is None:
        settings.sync.access_token = terminal.get_settings().sync.access_token
    else:
        settings.sync.access_token = normalize_token(token)

    settings.restaurant_name = sanitize_text(settings.restaurant_name)
    settings.restaurant_urdu_name = sanitize_text(settings.restaurant_urdu_name)
    settings.phone = sanitize_text(settings.phone, 40)
    settings.address = sanitize_text(settings.address, MAX_NOTE_LENGTH)

    return jsonify(terminal.update_settings(settings).to_public_dict())


@collections_bp.route("/printer", methods=["GET"])
def get_printer():
    return jsonify(get_terminal().get_printer_config().to_dict())


@collections_bp.route("/printer", methods=["PUT"])
def put_printer():
    printer_config = PrinterConfig.from_dict(json_body())
    if printer_config.paper_width not in PAPER_WIDTHS:
        raise ValidationFailedError(
            f"Paper width must be one of {', '.join(PAPER_WIDTHS)}",
            {"paperWidth": printer_config.paper_width},
        )

    printer_config.header_text = sanitize_text(printer_config.header_text, MAX_NOTE_LENGTH)
    printer_config.footer_text = sanitize_text(printer_config.footer_text, MAX_NOTE_LENGTH)

    return jsonify(get_terminal().update_printer_config(printer_config).to_dict())

"""
Shared helpers for the JSON route blueprints.
"""

from typing import Any, Dict, Optional

import bleach
from flask import current_app, request

from core.exceptions import ValidationFailedError
from services.terminal import PosTerminal


# Constants
MAX_NOTE_LENGTH = 500
MAX_FIELD_LENGTH = 200


def get_terminal() -> PosTerminal:
    """The PosTerminal owned by the current app."""
    return current_app.config["POS_TERMINAL"]


def sanitize_text(text: Optional[str], max_length: Optional[int] = MAX_FIELD_LENGTH) -> str:
    """Sanitize user input text."""
    if not text:
        return ""
    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def json_body() -> Dict[str, Any]:
    """
    Request body as a JSON object.

    Raises:
        ValidationFailedError: Body missing or not an object
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailedError("Request body must be a JSON object")
    return data

"""
Report routes.

Handles:
- /api/reports/summary?range=TODAY|WEEK|MONTH|YEAR|ALL
"""

from flask import Blueprint, jsonify, request

from .helpers import get_terminal

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.route("/summary", methods=["GET"])
def summary():
    report = get_terminal().report(request.args.get("range"))
    return jsonify(report.to_dict())

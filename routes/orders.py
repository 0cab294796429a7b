"""
Order routes.

Handles:
- /api/orders - List orders / place an order
- /api/orders/next-number - Number the next order will get
- /api/orders/<id> - Read / revise one order
- /api/orders/<id>/status, /hold, /resume - Status changes

Request bodies use the same camelCase keys as stored orders:
    {
        "items": [{"id": "m1", "name": "Karahi", "price": 1200, "quantity": 1,
                   "selectedAddons": [], "selectedVariation": null}],
        "type": "DINE_IN",
        "paymentMethod": "CASH",
        "tableNumber": "4",
        "discount": {"type": "PERCENT", "value": 10},
        "userId": "u1"
    }
"""

from typing import Any, Dict, List

from flask import Blueprint, jsonify, request

from core.exceptions import ValidationFailedError
from models.order import (
    LineItem,
    OrderContext,
    parse_order_status,
    parse_order_type,
    parse_payment_method,
)
from logging_config import get_logger
from .helpers import MAX_NOTE_LENGTH, get_terminal, json_body, sanitize_text


# Module logger
logger = get_logger(__name__)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _parse_items(data: Dict[str, Any]) -> List[LineItem]:
    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        raise ValidationFailedError("'items' must be a list")
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationFailedError("Each cart line must be an object")
        raw = dict(raw, name=sanitize_text(raw.get("name")))
        items.append(LineItem.from_dict(raw))
    return items


def _parse_context(data: Dict[str, Any]) -> OrderContext:
    context = OrderContext.from_dict(data)
    context.table_number = sanitize_text(context.table_number, 20) or None
    context.customer_name = sanitize_text(context.customer_name)
    context.customer_phone = sanitize_text(context.customer_phone, 40)
    context.delivery_address = sanitize_text(context.delivery_address, MAX_NOTE_LENGTH) or None
    context.kitchen_note = sanitize_text(context.kitchen_note, MAX_NOTE_LENGTH)
    return context


@orders_bp.route("", methods=["GET"])
def list_orders():
    """
    List orders, newest first.

    Query params:
        view: "held" or "active" (kitchen queue); all orders if omitted
    """
    service = get_terminal().orders
    view = request.args.get("view", "").lower()

    if view == "held":
        orders = service.held_orders()
    elif view == "active":
        orders = service.active_orders()
    elif view:
        raise ValidationFailedError(f"Unknown view: {view}", {"view": view})
    else:
        orders = service.list_orders()

    return jsonify([order.to_dict() for order in orders])


@orders_bp.route("/next-number", methods=["GET"])
def next_number():
    return jsonify({"orderNumber": get_terminal().orders.peek_next_order_number()})


@orders_bp.route("", methods=["POST"])
def create_order():
    """Place an order from the cart."""
    terminal = get_terminal()
    data = json_body()

    order = terminal.orders.create_order(
        cart_items=_parse_items(data),
        order_type=parse_order_type(data.get("type", "DINE_IN")),
        context=_parse_context(data),
        payment_method=parse_payment_method(data.get("paymentMethod", "CASH")),
        cashier_name=terminal.resolve_cashier(data.get("userId")),
    )
    return jsonify(order.to_dict()), 201


@orders_bp.route("/<order_id>", methods=["GET"])
def get_order(order_id: str):
    return jsonify(get_terminal().orders.get_order(order_id).to_dict())


@orders_bp.route("/<order_id>", methods=["PUT"])
def revise_order(order_id: str):
    """Replace an open order's cart and details."""
    data = json_body()

    order = get_terminal().orders.revise_order(
        order_id,
        cart_items=_parse_items(data),
        order_type=parse_order_type(data.get("type", "DINE_IN")),
        context=_parse_context(data),
        payment_method=parse_payment_method(data.get("paymentMethod", "CASH")),
    )
    return jsonify(order.to_dict())


@orders_bp.route("/<order_id>/status", methods=["POST"])
def update_status(order_id: str):
    data = json_body()
    if "status" not in data:
        raise ValidationFailedError("'status' is required")

    order = get_terminal().orders.transition_status(order_id, parse_order_status(data["status"]))
    return jsonify(order.to_dict())


@orders_bp.route("/<order_id>/hold", methods=["POST"])
def hold_order(order_id: str):
    return jsonify(get_terminal().orders.hold_order(order_id).to_dict())


@orders_bp.route("/<order_id>/resume", methods=["POST"])
def resume_order(order_id: str):
    return jsonify(get_terminal().orders.resume_order(order_id).to_dict())

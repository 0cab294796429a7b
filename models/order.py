"""
Order data models.

An order flows through the till like this:

    cart (LineItems) -> checkout -> PENDING -> PREPARING -> READY -> COMPLETED
                                      │  ▲
                                      ▼  │ resume
                                     HELD
    any live status -> CANCELLED / REFUNDED

Line items keep the prices captured when they were added to the cart, so a
stored order stays historically accurate after the menu changes.

Wire format (snapshot / backup file) uses camelCase keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, FrozenSet, List, Mapping, Optional

from core.exceptions import ValidationFailedError
from core.pricing import Discount, NO_DISCOUNT, PriceBreakdown


class OrderType(Enum):
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"


class PaymentMethod(Enum):
    CASH = "CASH"
    CARD = "CARD"


class OrderStatus(Enum):
    """
    Status of an order.

    Lifecycle:
        PENDING -> PREPARING -> READY -> COMPLETED
        PENDING <-> HELD
        * -> CANCELLED | REFUNDED
    """

    PENDING = "PENDING"
    """Placed at the till, waiting for the kitchen."""

    PREPARING = "PREPARING"
    """Kitchen is working on it."""

    READY = "READY"
    """Ready for pickup / serving."""

    COMPLETED = "COMPLETED"
    """Served and settled."""

    HELD = "HELD"
    """Parked; not counted as revenue until resumed."""

    CANCELLED = "CANCELLED"
    """Voided; never counted as revenue."""

    REFUNDED = "REFUNDED"
    """Money returned; never counted as revenue."""

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def counts_as_revenue(self) -> bool:
        return self not in NON_REVENUE_STATUSES


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
})

NON_REVENUE_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.HELD,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
})

KITCHEN_QUEUE_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.PENDING,
    OrderStatus.PREPARING,
    OrderStatus.READY,
})


# =============================================================================
# TRANSITION TABLES
# =============================================================================
# The kitchen display lets staff pick any status for any order, so the
# default table allows every move. STRICT_TRANSITIONS only allows the
# forward kitchen flow plus hold/cancel/refund.

PERMISSIVE_TRANSITIONS: Mapping[OrderStatus, FrozenSet[OrderStatus]] = {
    status: frozenset(OrderStatus) for status in OrderStatus
}

STRICT_TRANSITIONS: Mapping[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.COMPLETED,
        OrderStatus.HELD, OrderStatus.CANCELLED,
    }),
    OrderStatus.PREPARING: frozenset({
        OrderStatus.READY, OrderStatus.COMPLETED, OrderStatus.CANCELLED,
    }),
    OrderStatus.READY: frozenset({
        OrderStatus.COMPLETED, OrderStatus.CANCELLED,
    }),
    OrderStatus.HELD: frozenset({
        OrderStatus.PENDING, OrderStatus.CANCELLED,
    }),
    OrderStatus.COMPLETED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}


def _parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise ValidationFailedError(f"Unknown {field_name}: {value}", {field_name: value})


def parse_order_type(value) -> OrderType:
    return _parse_enum(OrderType, value, "order_type")


def parse_payment_method(value) -> PaymentMethod:
    return _parse_enum(PaymentMethod, value, "payment_method")


def parse_order_status(value) -> OrderStatus:
    return _parse_enum(OrderStatus, value, "status")


# =============================================================================
# LINE ITEMS
# =============================================================================

@dataclass(frozen=True)
class Addon:
    """Add-on with the price captured at order-build time."""

    name: str
    price: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "price": self.price}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Addon":
        return cls(name=data.get("name", ""), price=float(data.get("price", 0.0)))


@dataclass(frozen=True)
class Variation:
    """Size/variation; its price replaces the item's base price."""

    id: str
    name: str
    price: float

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": self.price}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Variation":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            price=float(data.get("price", 0.0)),
        )


@dataclass(frozen=True)
class LineItem:
    """One cart line."""

    menu_item_id: str
    """Reference to the menu item (never used to re-read prices)."""

    name: str

    unit_price: float
    """Base price snapshot."""

    quantity: int = 1

    selected_variation: Optional[Variation] = None

    selected_addons: tuple = ()
    """Tuple of Addon."""

    @property
    def effective_unit_price(self) -> float:
        if self.selected_variation is not None:
            return self.selected_variation.price
        return self.unit_price

    def validate(self) -> None:
        """
        Raises:
            ValidationFailedError: Quantity below 1 or a negative price
        """
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool) or self.quantity < 1:
            raise ValidationFailedError(
                f"Quantity must be a whole number of at least 1 for '{self.name}'",
                {"menu_item_id": self.menu_item_id, "quantity": self.quantity},
            )
        prices = [self.unit_price] + [a.price for a in self.selected_addons]
        if self.selected_variation is not None:
            prices.append(self.selected_variation.price)
        if any(price < 0 for price in prices):
            raise ValidationFailedError(
                f"Prices cannot be negative for '{self.name}'",
                {"menu_item_id": self.menu_item_id},
            )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.menu_item_id,
            "name": self.name,
            "price": self.unit_price,
            "quantity": self.quantity,
            "selectedAddons": [a.to_dict() for a in self.selected_addons],
        }
        if self.selected_variation is not None:
            data["selectedVariation"] = self.selected_variation.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        """
        Build a line from cart/wire data.

        Raises:
            ValidationFailedError: Missing or non-numeric price/quantity
        """
        try:
            variation_data = data.get("selectedVariation")
            return cls(
                menu_item_id=str(data.get("id", data.get("menu_item_id", ""))),
                name=data.get("name", ""),
                unit_price=float(data.get("price", data.get("unit_price"))),
                quantity=int(data.get("quantity", 1)),
                selected_variation=Variation.from_dict(variation_data) if variation_data else None,
                selected_addons=tuple(
                    Addon.from_dict(a) for a in (data.get("selectedAddons") or [])
                ),
            )
        except (TypeError, ValueError) as e:
            raise ValidationFailedError(f"Invalid cart line: {e}", {"line": data})


# =============================================================================
# ORDER CONTEXT
# =============================================================================

@dataclass
class OrderContext:
    """
    Details captured on the order-building screen besides the cart.

    Use normalized() before storing: the table number only applies to
    dine-in and the delivery address only to delivery.
    """

    table_number: Optional[str] = None
    customer_name: str = ""
    customer_phone: str = ""
    delivery_address: Optional[str] = None
    kitchen_note: str = ""
    discount: Discount = NO_DISCOUNT

    def normalized(self, order_type: OrderType) -> "OrderContext":
        def clean(value: Optional[str]) -> str:
            return (value or "").strip()

        return OrderContext(
            table_number=clean(self.table_number) or None if order_type is OrderType.DINE_IN else None,
            customer_name=clean(self.customer_name),
            customer_phone=clean(self.customer_phone),
            delivery_address=clean(self.delivery_address) or None if order_type is OrderType.DELIVERY else None,
            kitchen_note=clean(self.kitchen_note),
            discount=self.discount,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderContext":
        discount_data = data.get("discount")
        return cls(
            table_number=data.get("tableNumber"),
            customer_name=data.get("customerName", "") or "",
            customer_phone=data.get("customerPhone", "") or "",
            delivery_address=data.get("deliveryAddress"),
            kitchen_note=data.get("kitchenNote", "") or "",
            discount=Discount.from_dict(discount_data) if discount_data else NO_DISCOUNT,
        )


# =============================================================================
# ORDER
# =============================================================================

@dataclass
class Order:
    """
    A placed order.

    The monetary fields are written once per checkout or revision and are
    never recomputed from the items afterwards.
    """

    id: str
    order_number: int
    order_type: OrderType
    items: List[LineItem]
    status: OrderStatus
    payment_method: PaymentMethod

    subtotal: float
    discount_amount: float
    tax_amount: float
    service_charge_amount: float
    total: float

    created_at: str
    """ISO timestamp of checkout; preserved by revisions."""

    updated_at: str = ""
    cashier_name: str = "Admin"
    context: OrderContext = field(default_factory=OrderContext)

    @property
    def discount(self) -> Discount:
        return self.context.discount

    def apply_pricing(self, breakdown: PriceBreakdown) -> None:
        self.subtotal = breakdown.subtotal
        self.discount_amount = breakdown.discount_amount
        self.tax_amount = breakdown.tax
        self.service_charge_amount = breakdown.service_charge
        self.total = breakdown.total

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the snapshot wire format."""
        data: Dict[str, Any] = {
            "id": self.id,
            "orderNumber": self.order_number,
            "type": self.order_type.value,
            "items": [item.to_dict() for item in self.items],
            "status": self.status.value,
            "paymentMethod": self.payment_method.value,
            "subtotal": self.subtotal,
            "discountAmount": self.discount_amount,
            "taxAmount": self.tax_amount,
            "serviceChargeAmount": self.service_charge_amount,
            "total": self.total,
            "discount": self.context.discount.to_dict(),
            "timestamp": self.created_at,
            "updatedAt": self.updated_at,
            "cashierName": self.cashier_name,
            "customerName": self.context.customer_name,
            "customerPhone": self.context.customer_phone,
            "kitchenNote": self.context.kitchen_note,
        }
        if self.context.table_number is not None:
            data["tableNumber"] = self.context.table_number
        if self.context.delivery_address is not None:
            data["deliveryAddress"] = self.context.delivery_address
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """Create from the snapshot wire format."""
        return cls(
            id=data["id"],
            order_number=int(data["orderNumber"]),
            order_type=parse_order_type(data.get("type", OrderType.DINE_IN.value)),
            items=[LineItem.from_dict(i) for i in data.get("items", [])],
            status=parse_order_status(data.get("status", OrderStatus.PENDING.value)),
            payment_method=parse_payment_method(data.get("paymentMethod", PaymentMethod.CASH.value)),
            subtotal=float(data.get("subtotal", 0.0)),
            discount_amount=float(data.get("discountAmount", 0.0)),
            tax_amount=float(data.get("taxAmount", 0.0)),
            service_charge_amount=float(data.get("serviceChargeAmount", 0.0)),
            total=float(data.get("total", 0.0)),
            created_at=data.get("timestamp", ""),
            updated_at=data.get("updatedAt", ""),
            cashier_name=data.get("cashierName", "Admin"),
            context=OrderContext.from_dict(data),
        )

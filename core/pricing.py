"""
Order pricing.

Pure functions: the same cart, discount, order type and rates always give
the same breakdown. Nothing here reads the menu or the database; line items
carry the prices captured when they were added to the cart.

Formula:
    line      = (unit price or variation price + sum(add-on prices)) x quantity
    subtotal  = sum(line)
    discount  = subtotal x value / 100   (PERCENT)
              = value                    (FIXED)
    base      = max(0, subtotal - discount)
    tax       = base x tax rate / 100
    service   = base x service rate / 100   (dine-in only)
    total     = base + tax + service

No rounding is applied. Screens round for display only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Iterable, TYPE_CHECKING

from .exceptions import ValidationFailedError

if TYPE_CHECKING:
    from models.order import LineItem, OrderType


class DiscountKind(Enum):
    """How a discount value is interpreted."""

    PERCENT = "PERCENT"
    FIXED = "FIXED"


@dataclass(frozen=True)
class Discount:
    """Discount requested at checkout."""

    kind: DiscountKind = DiscountKind.PERCENT
    value: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Discount":
        kind = data.get("type", data.get("kind", DiscountKind.PERCENT.value))
        try:
            discount_kind = DiscountKind(str(kind).upper())
        except ValueError:
            raise ValidationFailedError(f"Unknown discount type: {kind}")
        return cls(kind=discount_kind, value=float(data.get("value", 0.0) or 0.0))


NO_DISCOUNT = Discount()


@dataclass(frozen=True)
class RateConfig:
    """Active tax and service-charge percentages."""

    tax_rate_percent: float = 0.0
    service_charge_rate_percent: float = 0.0


@dataclass(frozen=True)
class PriceBreakdown:
    """Monetary breakdown stored on an order."""

    subtotal: float
    discount_amount: float
    discounted_subtotal: float
    tax: float
    service_charge: float
    total: float


def line_total(item: "LineItem") -> float:
    """Contribution of one cart line to the subtotal."""
    addon_cost = sum(addon.price for addon in item.selected_addons)
    return (item.effective_unit_price + addon_cost) * item.quantity


def calculate_subtotal(items: Iterable["LineItem"]) -> float:
    return sum((line_total(item) for item in items), 0.0)


def calculate_discount(subtotal: float, discount: Discount) -> float:
    if discount.kind is DiscountKind.PERCENT:
        return subtotal * (discount.value / 100)
    return discount.value


def calculate_breakdown(
    items: Iterable["LineItem"],
    discount: Discount,
    order_type: "OrderType",
    rates: RateConfig,
) -> PriceBreakdown:
    """
    Price a cart.

    Args:
        items: Cart lines with their price snapshots
        discount: Discount requested at checkout
        order_type: Service charge only applies to dine-in
        rates: Active tax and service-charge percentages

    Returns:
        PriceBreakdown with every amount unrounded

    Raises:
        ValidationFailedError: Negative discount or rate, bad line item
    """
    # Local import: models.order imports this module for its price helpers
    from models.order import OrderType

    items = list(items)
    for item in items:
        item.validate()

    if discount.value < 0:
        raise ValidationFailedError("Discount cannot be negative", {"value": discount.value})
    if rates.tax_rate_percent < 0 or rates.service_charge_rate_percent < 0:
        raise ValidationFailedError("Tax and service-charge rates cannot be negative")

    subtotal = calculate_subtotal(items)
    discount_amount = calculate_discount(subtotal, discount)
    discounted_subtotal = max(0.0, subtotal - discount_amount)
    tax = discounted_subtotal * (rates.tax_rate_percent / 100)
    if order_type is OrderType.DINE_IN:
        service_charge = discounted_subtotal * (rates.service_charge_rate_percent / 100)
    else:
        service_charge = 0.0

    return PriceBreakdown(
        subtotal=subtotal,
        discount_amount=discount_amount,
        discounted_subtotal=discounted_subtotal,
        tax=tax,
        service_charge=service_charge,
        total=discounted_subtotal + tax + service_charge,
    )

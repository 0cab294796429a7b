"""
Order lifecycle service.

Owns every change to the ``orders`` collection: checkout, revision, status
transitions and hold/resume. All operations run synchronously on the
caller's thread and either complete or raise before anything is written.

Flow:
    1. Validate input (empty cart, unknown id, disallowed transition)
    2. Price the cart with the current settings rates
    3. Write the orders collection (and the sequence, for checkout) in one
       store batch
    4. Notify on_change so the sync service can push

Usage:
    service = OrderService(store, SequenceGenerator(store), on_change=sync.request_push)

    order = service.create_order(items, OrderType.DINE_IN, context, PaymentMethod.CASH)
    service.transition_status(order.id, OrderStatus.PREPARING)
    service.hold_order(order.id)
    service.resume_order(order.id)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from core.entity_store import EntityStore, ORDERS
from core.exceptions import EmptyCartError, InvalidTransitionError, NotFoundError
from core.pricing import calculate_breakdown
from core.sequence import SequenceGenerator
from models.order import (
    KITCHEN_QUEUE_STATUSES,
    PERMISSIVE_TRANSITIONS,
    STRICT_TRANSITIONS,
    LineItem,
    Order,
    OrderContext,
    OrderStatus,
    OrderType,
    PaymentMethod,
)
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderService:
    """
    Checkout and order state machine.

    Attributes:
        transitions: Active transition table (status -> allowed next statuses)
    """

    def __init__(
        self,
        store: EntityStore,
        sequence: SequenceGenerator,
        on_change: Optional[Callable[[], None]] = None,
        strict_transitions: bool = False,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Args:
            store: Entity store holding the orders collection
            sequence: Order number generator
            on_change: Called after every successful mutation
            strict_transitions: Use the forward-only kitchen flow table
            clock: Source of timestamps
        """
        self._store = store
        self._sequence = sequence
        self._on_change = on_change
        self._clock = clock
        self._transitions: Mapping[OrderStatus, FrozenSet[OrderStatus]] = (
            STRICT_TRANSITIONS if strict_transitions else PERMISSIVE_TRANSITIONS
        )

    @property
    def transitions(self) -> Mapping[OrderStatus, FrozenSet[OrderStatus]]:
        return self._transitions

    # =========================================================================
    # READS
    # =========================================================================

    def list_orders(self) -> List[Order]:
        """All orders, newest first."""
        return [Order.from_dict(data) for data in self._store.get(ORDERS)]

    def get_order(self, order_id: str) -> Order:
        """
        Raises:
            NotFoundError: If no order has this id
        """
        _, data = self._find(self._store.get(ORDERS), order_id)
        return Order.from_dict(data)

    def held_orders(self) -> List[Order]:
        return [o for o in self.list_orders() if o.status is OrderStatus.HELD]

    def active_orders(self) -> List[Order]:
        """Kitchen queue: pending, preparing and ready orders."""
        return [o for o in self.list_orders() if o.status in KITCHEN_QUEUE_STATUSES]

    def peek_next_order_number(self) -> int:
        return self._sequence.peek_next()

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    def create_order(
        self,
        cart_items: Sequence[LineItem],
        order_type: OrderType,
        context: OrderContext,
        payment_method: PaymentMethod,
        cashier_name: str = "Admin",
    ) -> Order:
        """
        Place a new order.

        The order number is consumed and the order stored in one transaction,
        so a failed write never burns a number.

        Raises:
            EmptyCartError: No line items
            ValidationFailedError: Bad quantity, price or discount
            StorageFailureError: The write failed
        """
        if not cart_items:
            raise EmptyCartError()

        context = context.normalized(order_type)
        breakdown = calculate_breakdown(
            cart_items, context.discount, order_type, self._store.get_settings().rates
        )
        timestamp = self._clock().isoformat()

        with self._store.batch():
            order = Order(
                id=uuid.uuid4().hex,
                order_number=self._sequence.commit_next(),
                order_type=order_type,
                items=list(cart_items),
                status=OrderStatus.PENDING,
                payment_method=payment_method,
                subtotal=0.0,
                discount_amount=0.0,
                tax_amount=0.0,
                service_charge_amount=0.0,
                total=0.0,
                created_at=timestamp,
                updated_at=timestamp,
                cashier_name=cashier_name or "Admin",
                context=context,
            )
            order.apply_pricing(breakdown)
            self._store.put(ORDERS, [order.to_dict()] + self._store.get(ORDERS))

        logger.info(
            f"Order #{order.order_number} placed: {order.order_type.value}, "
            f"{len(order.items)} lines, total {order.total:.2f}"
        )
        self._notify()
        return order

    def revise_order(
        self,
        order_id: str,
        cart_items: Sequence[LineItem],
        order_type: OrderType,
        context: OrderContext,
        payment_method: PaymentMethod,
    ) -> Order:
        """
        Replace the contents of an existing order and send it back to PENDING.

        Keeps id, order number, creation time and cashier. Never touches the
        sequence.

        Raises:
            NotFoundError: Unknown id
            InvalidTransitionError: Order is completed, cancelled or refunded
            EmptyCartError: No line items
        """
        orders = self._store.get(ORDERS)
        index, data = self._find(orders, order_id)
        order = Order.from_dict(data)

        if order.status.is_terminal:
            raise InvalidTransitionError(
                order_id,
                order.status.value,
                OrderStatus.PENDING.value,
                reason="closed orders cannot be edited",
            )
        if not cart_items:
            raise EmptyCartError()

        context = context.normalized(order_type)
        breakdown = calculate_breakdown(
            cart_items, context.discount, order_type, self._store.get_settings().rates
        )

        order.items = list(cart_items)
        order.order_type = order_type
        order.payment_method = payment_method
        order.context = context
        order.status = OrderStatus.PENDING
        order.updated_at = self._clock().isoformat()
        order.apply_pricing(breakdown)

        self._save(orders, index, order)
        logger.info(f"Order #{order.order_number} revised: total {order.total:.2f}")
        self._notify()
        return order

    # =========================================================================
    # STATUS
    # =========================================================================

    def transition_status(self, order_id: str, new_status: OrderStatus) -> Order:
        """
        Move an order to a new status.

        Raises:
            NotFoundError: Unknown id
            InvalidTransitionError: Not allowed by the active transition table
        """
        orders = self._store.get(ORDERS)
        index, data = self._find(orders, order_id)
        order = Order.from_dict(data)

        if new_status not in self._transitions.get(order.status, frozenset()):
            raise InvalidTransitionError(order_id, order.status.value, new_status.value)

        return self._apply_status(orders, index, order, new_status)

    def hold_order(self, order_id: str) -> Order:
        return self.transition_status(order_id, OrderStatus.HELD)

    def resume_order(self, order_id: str) -> Order:
        """
        Bring a held order back to PENDING.

        Raises:
            NotFoundError: Unknown id
            InvalidTransitionError: Order is not held
        """
        orders = self._store.get(ORDERS)
        index, data = self._find(orders, order_id)
        order = Order.from_dict(data)

        if order.status is not OrderStatus.HELD:
            raise InvalidTransitionError(
                order_id,
                order.status.value,
                OrderStatus.PENDING.value,
                reason="only held orders can be resumed",
            )

        return self._apply_status(orders, index, order, OrderStatus.PENDING)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _apply_status(
        self,
        orders: List[Dict[str, Any]],
        index: int,
        order: Order,
        new_status: OrderStatus,
    ) -> Order:
        previous = order.status
        order.status = new_status
        order.updated_at = self._clock().isoformat()

        self._save(orders, index, order)
        logger.info(f"Order #{order.order_number}: {previous.value} -> {new_status.value}")
        self._notify()
        return order

    def _save(self, orders: List[Dict[str, Any]], index: int, order: Order) -> None:
        # Keys this model does not know about are carried over untouched
        updated = dict(orders[index])
        for key in ("tableNumber", "deliveryAddress"):
            updated.pop(key, None)
        updated.update(order.to_dict())
        orders[index] = updated
        self._store.put(ORDERS, orders)

    @staticmethod
    def _find(orders: List[Dict[str, Any]], order_id: str) -> Tuple[int, Dict[str, Any]]:
        for index, data in enumerate(orders):
            if data.get("id") == order_id:
                return index, data
        raise NotFoundError("order", order_id)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()

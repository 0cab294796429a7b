"""
Unit tests for the order lifecycle service.
"""

from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest

from core.entity_store import ORDER_SEQUENCE, ORDERS, EntityStore
from core.exceptions import (
    EmptyCartError,
    InvalidTransitionError,
    NotFoundError,
    StorageFailureError,
    ValidationFailedError,
)
from core.kv_store import SQLiteKeyValueStore
from core.pricing import Discount, DiscountKind
from core.sequence import SequenceGenerator
from models.order import LineItem, OrderContext, OrderStatus, OrderType, PaymentMethod
from models.settings import SystemSettings
from services.order_service import OrderService


# Fixtures

@pytest.fixture
def medium():
    kv = SQLiteKeyValueStore(":memory:")
    kv.initialize()
    yield kv
    kv.cleanup()


@pytest.fixture
def store(medium):
    store = EntityStore(medium)
    store.put_settings(SystemSettings(tax_rate=5, service_charge_rate=10))
    return store


@pytest.fixture
def on_change():
    return Mock()


@pytest.fixture
def service(store, on_change):
    clock = Mock(return_value=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))
    return OrderService(store, SequenceGenerator(store), on_change=on_change, clock=clock)


@pytest.fixture
def cart():
    return [LineItem(menu_item_id="m1", name="Chicken Karahi", unit_price=500.0, quantity=2)]


def place(service, cart, order_type=OrderType.DINE_IN, context=None):
    return service.create_order(
        cart, order_type, context or OrderContext(), PaymentMethod.CASH, cashier_name="Ali"
    )


class TestCreateOrder:

    def test_creates_pending_order_with_pricing(self, service, cart):
        context = OrderContext(table_number="4", discount=Discount(DiscountKind.PERCENT, 10))
        order = place(service, cart, context=context)

        assert order.status is OrderStatus.PENDING
        assert order.order_number == 1
        assert order.subtotal == pytest.approx(1000)
        assert order.discount_amount == pytest.approx(100)
        assert order.tax_amount == pytest.approx(45)
        assert order.service_charge_amount == pytest.approx(90)
        assert order.total == pytest.approx(1035)
        assert order.cashier_name == "Ali"
        assert order.created_at == "2024-03-01T12:00:00+00:00"

    def test_new_orders_are_prepended(self, service, cart):
        first = place(service, cart)
        second = place(service, cart)

        assert [o.id for o in service.list_orders()] == [second.id, first.id]

    def test_peek_then_create_uses_peeked_number(self, store, service, cart):
        store.put_counter(ORDER_SEQUENCE, 7)

        assert service.peek_next_order_number() == 7
        assert service.peek_next_order_number() == 7

        order = place(service, cart)

        assert order.order_number == 7
        assert service.peek_next_order_number() == 8

    def test_order_numbers_strictly_increase(self, service, cart):
        numbers = [place(service, cart).order_number for _ in range(4)]
        assert numbers == sorted(set(numbers))

    def test_empty_cart_rejected(self, service, store, on_change):
        with pytest.raises(EmptyCartError):
            place(service, [])

        assert store.get(ORDERS) == []
        assert service.peek_next_order_number() == 1
        on_change.assert_not_called()

    def test_notifies_on_change(self, service, cart, on_change):
        place(service, cart)
        on_change.assert_called_once_with()

    def test_context_normalized_for_order_type(self, service, cart):
        context = OrderContext(
            table_number="4",
            customer_name="  Sara  ",
            delivery_address="House 1",
        )
        order = place(service, cart, order_type=OrderType.TAKEAWAY, context=context)

        assert order.context.table_number is None
        assert order.context.delivery_address is None
        assert order.context.customer_name == "Sara"

    def test_failed_write_burns_no_number(self, service, store, medium, cart):
        with patch.object(medium, "set_many", side_effect=StorageFailureError("write", OSError("full"))):
            with pytest.raises(StorageFailureError):
                place(service, cart)

        assert store.get(ORDERS) == []
        assert service.peek_next_order_number() == 1

    def test_invalid_quantity_rejected(self, service):
        with pytest.raises(ValidationFailedError):
            place(service, [LineItem(menu_item_id="m1", name="Naan", unit_price=40.0, quantity=0)])


class TestReviseOrder:

    def test_revise_replaces_contents_and_keeps_identity(self, service, cart):
        order = place(service, cart)
        service.transition_status(order.id, OrderStatus.PREPARING)

        new_cart = [LineItem(menu_item_id="m2", name="Naan", unit_price=40.0, quantity=5)]
        revised = service.revise_order(
            order.id, new_cart, OrderType.TAKEAWAY, OrderContext(), PaymentMethod.CARD
        )

        assert revised.id == order.id
        assert revised.order_number == order.order_number
        assert revised.created_at == order.created_at
        assert revised.cashier_name == "Ali"
        assert revised.status is OrderStatus.PENDING
        assert revised.subtotal == pytest.approx(200)
        assert revised.service_charge_amount == 0
        assert revised.payment_method is PaymentMethod.CARD
        assert service.get_order(order.id).items == new_cart

    def test_revise_does_not_touch_sequence(self, service, cart):
        order = place(service, cart)
        service.revise_order(order.id, cart, OrderType.DINE_IN, OrderContext(), PaymentMethod.CASH)

        assert service.peek_next_order_number() == 2

    def test_revise_unknown_id_leaves_orders_unchanged(self, service, store, cart, on_change):
        place(service, cart)
        before = store.get(ORDERS)
        on_change.reset_mock()

        with pytest.raises(NotFoundError):
            service.revise_order("missing", cart, OrderType.DINE_IN, OrderContext(), PaymentMethod.CASH)

        assert store.get(ORDERS) == before
        on_change.assert_not_called()

    def test_revise_cancelled_order_rejected(self, service, cart):
        order = place(service, cart)
        service.transition_status(order.id, OrderStatus.CANCELLED)

        with pytest.raises(InvalidTransitionError):
            service.revise_order(order.id, cart, OrderType.DINE_IN, OrderContext(), PaymentMethod.CASH)

        assert service.get_order(order.id).status is OrderStatus.CANCELLED

    def test_revise_keeps_unknown_keys(self, service, store, cart):
        order = place(service, cart)
        orders = store.get(ORDERS)
        orders[0]["printedAt"] = "2024-03-01T12:01:00+00:00"
        store.put(ORDERS, orders)

        service.revise_order(order.id, cart, OrderType.DINE_IN, OrderContext(), PaymentMethod.CASH)

        assert store.get(ORDERS)[0]["printedAt"] == "2024-03-01T12:01:00+00:00"


class TestStatusTransitions:

    def test_permissive_allows_any_move(self, service, cart):
        order = place(service, cart)
        service.transition_status(order.id, OrderStatus.COMPLETED)

        reopened = service.transition_status(order.id, OrderStatus.PENDING)

        assert reopened.status is OrderStatus.PENDING

    def test_transition_unknown_id(self, service):
        with pytest.raises(NotFoundError):
            service.transition_status("missing", OrderStatus.READY)

    def test_strict_rejects_completed_to_pending(self, store, cart):
        service = OrderService(store, SequenceGenerator(store), strict_transitions=True)
        order = place(service, cart)
        service.transition_status(order.id, OrderStatus.PREPARING)
        service.transition_status(order.id, OrderStatus.COMPLETED)

        with pytest.raises(InvalidTransitionError):
            service.transition_status(order.id, OrderStatus.PENDING)

        assert service.get_order(order.id).status is OrderStatus.COMPLETED

    def test_strict_allows_refund_of_completed(self, store, cart):
        service = OrderService(store, SequenceGenerator(store), strict_transitions=True)
        order = place(service, cart)
        service.transition_status(order.id, OrderStatus.COMPLETED)

        assert service.transition_status(order.id, OrderStatus.REFUNDED).status is OrderStatus.REFUNDED

    def test_hold_and_resume(self, service, cart):
        order = place(service, cart)

        assert service.hold_order(order.id).status is OrderStatus.HELD
        assert [o.id for o in service.held_orders()] == [order.id]
        assert service.active_orders() == []

        assert service.resume_order(order.id).status is OrderStatus.PENDING
        assert service.held_orders() == []

    def test_resume_requires_held(self, service, cart):
        order = place(service, cart)

        with pytest.raises(InvalidTransitionError):
            service.resume_order(order.id)

    def test_active_orders_is_kitchen_queue(self, service, cart):
        pending = place(service, cart)
        ready = place(service, cart)
        done = place(service, cart)
        service.transition_status(ready.id, OrderStatus.READY)
        service.transition_status(done.id, OrderStatus.COMPLETED)

        assert {o.id for o in service.active_orders()} == {pending.id, ready.id}

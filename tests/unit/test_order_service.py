"""Unit tests for OrderService."""

import json
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from menu_ordering_service.errors import (
    ConcurrentModificationError,
    EmptyCartError,
    NotFoundError,
    ValidationError,
)
from menu_ordering_service.models.menu_models import MenuItem
from menu_ordering_service.models.order_models import OrderStatus, OrderType
from menu_ordering_service.models.restaurant_models import PaymentMethod, Restaurant
from menu_ordering_service.repositories.kv_store import InMemoryKeyValueStore
from menu_ordering_service.repositories.ordering_repositories import OrderRepository
from menu_ordering_service.services.cart import Cart
from menu_ordering_service.services.order_service import OrderService, snapshot_lines


class FixedClock:
    """Clock returning a settable instant, advanced one second per call."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 7, 16, 12, 0, tzinfo=UTC))


@pytest.fixture
def repository(store: InMemoryKeyValueStore) -> OrderRepository:
    return OrderRepository(store)


@pytest.fixture
def service(repository: OrderRepository, clock: FixedClock) -> OrderService:
    return OrderService(repository, clock=clock)


@pytest.fixture
def cart(mock_menu_items: list[MenuItem]) -> Cart:
    """Two Margheritas at 10.00 and one salad at 5.00."""
    cart = Cart()
    cart.add(mock_menu_items[0])
    cart.add(mock_menu_items[0])
    cart.add(mock_menu_items[1])
    return cart


@pytest.mark.unit
class TestSubmit:
    """Tests for order submission."""

    def test_total_and_line_snapshots(
        self, service: OrderService, cart: Cart, restaurant: Restaurant
    ) -> None:
        order = service.submit(cart, restaurant, OrderType.DINE_IN)

        assert order.total == Decimal("25.00")
        assert [(line.item_id, line.price, line.quantity) for line in order.items] == [
            ("item_a", Decimal("10.00"), 2),
            ("item_b", Decimal("5.00"), 1),
        ]
        assert order.status == OrderStatus.PENDING
        assert order.restaurant_id == restaurant.id
        assert order.id.startswith("order_")

    def test_order_is_persisted(
        self, service: OrderService, cart: Cart, restaurant: Restaurant
    ) -> None:
        order = service.submit(cart, restaurant, OrderType.TAKEAWAY)

        assert service.list_orders(restaurant.id) == [order]

    def test_cart_left_untouched(
        self, service: OrderService, cart: Cart, restaurant: Restaurant
    ) -> None:
        service.submit(cart, restaurant, OrderType.TAKEAWAY)

        assert cart.count() == 3

    def test_empty_cart_rejected_and_nothing_persisted(
        self, service: OrderService, restaurant: Restaurant, store: InMemoryKeyValueStore
    ) -> None:
        with pytest.raises(EmptyCartError):
            service.submit(Cart(), restaurant, OrderType.DINE_IN)

        assert store.get(f"orders_{restaurant.id}") is None

    def test_snapshot_unaffected_by_later_cart_changes(
        self,
        service: OrderService,
        cart: Cart,
        restaurant: Restaurant,
        mock_menu_items: list[MenuItem],
    ) -> None:
        order = service.submit(cart, restaurant, OrderType.DINE_IN)

        cart.add(mock_menu_items[0])
        cart.lines[0].price = Decimal("99.00")

        stored = service.get_order(restaurant.id, order.id)
        assert stored.total == Decimal("25.00")
        assert stored.items[0].quantity == 2

    def test_queue_numbers_increase_per_restaurant(
        self, service: OrderService, cart: Cart, restaurant: Restaurant
    ) -> None:
        numbers = [service.submit(cart, restaurant, OrderType.DINE_IN).queue_number for _ in range(3)]
        other = restaurant.model_copy(update={"id": "rest_other"})

        assert numbers == [1, 2, 3]
        assert service.submit(cart, other, OrderType.DINE_IN).queue_number == 1

    def test_rejects_payment_method_not_accepted(
        self, service: OrderService, cart: Cart, restaurant: Restaurant
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            service.submit(cart, restaurant, OrderType.DINE_IN, payment_method=PaymentMethod.STRIPE)

        assert exc_info.value.fields == ["paymentMethod"]

    def test_keeps_payment_method_and_customer_name(
        self, service: OrderService, cart: Cart, restaurant: Restaurant
    ) -> None:
        order = service.submit(
            cart,
            restaurant,
            OrderType.TAKEAWAY,
            payment_method=PaymentMethod.CASH,
            customer_name="Sam",
        )

        stored = service.get_order(restaurant.id, order.id)
        assert stored.payment_method == PaymentMethod.CASH
        assert stored.customer_name == "Sam"

    def test_malformed_cart_line_rejected(
        self, service: OrderService, restaurant: Restaurant
    ) -> None:
        cart = Cart.from_snapshot([{"itemId": "a", "name": "Tea", "price": "free", "quantity": 1}])

        with pytest.raises(ValidationError) as exc_info:
            service.submit(cart, restaurant, OrderType.DINE_IN)

        assert exc_info.value.fields == ["items.a"]

    def test_retries_after_concurrent_write(
        self,
        store: InMemoryKeyValueStore,
        cart: Cart,
        restaurant: Restaurant,
        clock: FixedClock,
    ) -> None:
        repository = OrderRepository(store)
        service = OrderService(repository, clock=clock)
        competitor = OrderService(OrderRepository(store), clock=clock)
        original_write = repository.write
        calls = {"n": 0}

        def write_after_competitor(*args, **kwargs):  # type: ignore[no-untyped-def]
            calls["n"] += 1
            if calls["n"] == 1:
                competitor.submit(cart, restaurant, OrderType.DINE_IN)
            return original_write(*args, **kwargs)

        repository.write = write_after_competitor  # type: ignore[method-assign]

        order = service.submit(cart, restaurant, OrderType.TAKEAWAY)

        assert calls["n"] == 2
        assert order.queue_number == 2
        assert len(service.list_orders(restaurant.id)) == 2

    def test_gives_up_after_max_attempts(self, cart: Cart, restaurant: Restaurant) -> None:
        repository = MagicMock(spec=OrderRepository)
        repository.load.return_value = ([], 0)
        repository.write.side_effect = ConcurrentModificationError("conflict")
        service = OrderService(repository, max_write_attempts=2)

        with pytest.raises(ConcurrentModificationError):
            service.submit(cart, restaurant, OrderType.DINE_IN)

        assert repository.write.call_count == 2

    def test_max_write_attempts_must_be_positive(self, repository: OrderRepository) -> None:
        with pytest.raises(ValueError):
            OrderService(repository, max_write_attempts=0)


@pytest.mark.unit
class TestOrderQueue:
    """Tests for listing, advancing and summarizing orders."""

    def test_list_orders_newest_first(
        self, service: OrderService, cart: Cart, restaurant: Restaurant
    ) -> None:
        first = service.submit(cart, restaurant, OrderType.DINE_IN)
        second = service.submit(cart, restaurant, OrderType.DINE_IN)

        assert [o.id for o in service.list_orders(restaurant.id)] == [second.id, first.id]

    def test_advance_walks_the_state_machine(
        self, service: OrderService, cart: Cart, restaurant: Restaurant
    ) -> None:
        order = service.submit(cart, restaurant, OrderType.DINE_IN)

        statuses = [service.advance(restaurant.id, order.id).status for _ in range(3)]

        assert statuses == [OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.READY]
        assert service.get_order(restaurant.id, order.id).status == OrderStatus.READY

    def test_advance_ready_order_writes_nothing(
        self,
        service: OrderService,
        cart: Cart,
        restaurant: Restaurant,
        store: InMemoryKeyValueStore,
    ) -> None:
        order = service.submit(cart, restaurant, OrderType.DINE_IN)
        service.advance(restaurant.id, order.id)
        service.advance(restaurant.id, order.id)
        _, version = store.get_versioned(f"orders_{restaurant.id}")

        service.advance(restaurant.id, order.id)

        assert store.get_versioned(f"orders_{restaurant.id}")[1] == version

    def test_advance_only_touches_target_order(
        self, service: OrderService, cart: Cart, restaurant: Restaurant
    ) -> None:
        first = service.submit(cart, restaurant, OrderType.DINE_IN)
        second = service.submit(cart, restaurant, OrderType.DINE_IN)

        service.advance(restaurant.id, second.id)

        assert service.get_order(restaurant.id, first.id).status == OrderStatus.PENDING
        assert service.get_order(restaurant.id, second.id).total == second.total

    def test_advance_unknown_order(self, service: OrderService, restaurant: Restaurant) -> None:
        with pytest.raises(NotFoundError):
            service.advance(restaurant.id, "order_missing")

    def test_summarize_counts_the_day(
        self, service: OrderService, cart: Cart, restaurant: Restaurant, clock: FixedClock
    ) -> None:
        order = service.submit(cart, restaurant, OrderType.DINE_IN)
        service.submit(cart, restaurant, OrderType.DINE_IN)
        service.advance(restaurant.id, order.id)
        clock.now = clock.now + timedelta(days=1)
        service.submit(cart, restaurant, OrderType.DINE_IN)

        summary = service.summarize(restaurant.id, date(2025, 7, 16))

        assert summary.order_count == 2
        assert summary.revenue == Decimal("50.00")
        assert summary.by_status == {
            OrderStatus.PENDING: 1,
            OrderStatus.PREPARING: 1,
            OrderStatus.READY: 0,
        }

    def test_summarize_reads_timestamps_without_offset_as_utc(
        self, service: OrderService, restaurant: Restaurant, store: InMemoryKeyValueStore
    ) -> None:
        legacy = {
            "id": "order_old",
            "restaurantId": restaurant.id,
            "items": [{"itemId": "a", "name": "Tea", "price": 3, "quantity": 1}],
            "total": 3,
            "orderType": "takeaway",
            "queueNumber": 1,
            "createdAt": "2025-07-16T23:30:00",
        }
        store.set(f"orders_{restaurant.id}", json.dumps([legacy]))

        summary = service.summarize(restaurant.id, date(2025, 7, 16))

        assert summary.order_count == 1
        assert summary.revenue == Decimal("3.00")


@pytest.mark.unit
class TestSnapshotLines:
    """Tests for snapshot_lines."""

    def test_copies_lines(self, cart: Cart) -> None:
        lines = snapshot_lines(cart)

        assert [line.quantity for line in lines] == [2, 1]

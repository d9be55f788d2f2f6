"""Order submission pipeline and the operator-side order queue."""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TypeVar

from menu_ordering_service.errors import (
    ConcurrentModificationError,
    EmptyCartError,
    NotFoundError,
    ValidationError,
)
from menu_ordering_service.models.menu_models import quantize_price
from menu_ordering_service.models.order_models import (
    Order,
    OrderLine,
    OrderStatus,
    OrderType,
)
from menu_ordering_service.models.records import ParsedRecord, Valid
from menu_ordering_service.models.restaurant_models import PaymentMethod, Restaurant
from menu_ordering_service.observability import metrics
from menu_ordering_service.observability.decorators import traced
from menu_ordering_service.repositories.ordering_repositories import OrderRepository
from menu_ordering_service.services.cart import Cart

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class OrderSummary:
    """Dashboard counters for one day of orders.

    Attributes:
        day: The calendar day (UTC) the counters cover
        order_count: Orders created that day
        revenue: Sum of order totals for that day
        by_status: Number of that day's orders in each status
    """

    day: date
    order_count: int = 0
    revenue: Decimal = Decimal("0.00")
    by_status: dict[OrderStatus, int] = field(
        default_factory=lambda: {status: 0 for status in OrderStatus}
    )


def snapshot_lines(cart: Cart) -> list[OrderLine]:
    """Copy cart lines into immutable order lines.

    Raises:
        ValidationError: If any line has a malformed price or quantity
    """
    malformed = [line.item_id for line in cart.lines if not line.is_well_formed]
    if malformed:
        raise ValidationError(
            [f"items.{item_id}" for item_id in malformed],
            "Cart contains lines with an invalid price or quantity",
        )

    return [
        OrderLine(
            item_id=line.item_id,
            name=line.name,
            price=line.price,  # type: ignore[arg-type]
            quantity=line.quantity,  # type: ignore[arg-type]
        )
        for line in cart.lines
    ]


def next_queue_number(records: list[ParsedRecord[Order]]) -> int:
    """One past the highest queue number already issued for the tenant."""
    issued = [r.value.queue_number for r in records if isinstance(r, Valid)]
    return max(issued, default=0) + 1


class OrderService:
    """Service for submitting orders and moving them through the queue.

    The order log of a tenant is rewritten as a whole on every change. Each
    rewrite is conditional on the log version read beforehand; on a conflict
    the change is replayed against a fresh read, up to ``max_write_attempts``.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        max_write_attempts: int = 3,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the OrderService.

        Args:
            order_repository: Repository for tenant order logs
            max_write_attempts: Attempts per change before giving up on conflicts
            clock: Source of "now" (UTC); defaults to the system clock
        """
        if max_write_attempts < 1:
            raise ValueError("max_write_attempts must be at least 1")

        self.order_repository = order_repository
        self.max_write_attempts = max_write_attempts
        self.clock = clock or (lambda: datetime.now(UTC))

    @traced("submit_order", service_name="menu-ordering-svc")
    def submit(
        self,
        cart: Cart,
        restaurant: Restaurant,
        order_type: OrderType,
        payment_method: PaymentMethod | None = None,
        customer_name: str | None = None,
    ) -> Order:
        """Turn a cart into a persisted order.

        This method performs the complete submission:
        1. Reject an empty cart
        2. Snapshot the cart lines and compute the total from the snapshot
        3. Assign the next queue number and append to the tenant's order log

        The cart is left untouched; callers clear it once this returns.

        Args:
            cart: The customer's cart
            restaurant: Restaurant the order is placed with
            order_type: Dine-in, takeaway or delivery
            payment_method: Selected payment method, if any
            customer_name: Name to call out at pickup, if any

        Returns:
            Order: The persisted order

        Raises:
            EmptyCartError: If the cart has no lines
            ValidationError: If a line is malformed or the payment method is not accepted
            ConcurrentModificationError: If the order log kept changing underneath
        """
        if cart.is_empty:
            raise EmptyCartError()

        if payment_method is not None and not restaurant.accepts(payment_method):
            raise ValidationError(
                ["paymentMethod"], f"{payment_method.value} is not accepted by this restaurant"
            )

        lines = snapshot_lines(cart)
        total = quantize_price(sum((line.amount for line in lines), Decimal("0")))
        created_at = self.clock()
        order_id = f"order_{int(created_at.timestamp() * 1000)}_{uuid.uuid4().hex[:6]}"

        def append(records: list[ParsedRecord[Order]]) -> Order:
            order = Order(
                id=order_id,
                restaurant_id=restaurant.id,
                items=lines,
                total=total,
                order_type=order_type,
                status=OrderStatus.PENDING,
                queue_number=next_queue_number(records),
                created_at=created_at,
                payment_method=payment_method,
                customer_name=customer_name or None,
            )
            records.append(Valid(order))
            return order

        order = self._apply(restaurant.id, append)

        metrics.record_order_submitted(order.order_type.value, float(order.total))
        logger.info(
            f"Order {order.id} placed with restaurant {restaurant.id}: "
            f"queue number {order.queue_number}, total {order.total}"
        )
        return order

    def list_orders(self, restaurant_id: str) -> list[Order]:
        """List a tenant's orders, newest first."""
        orders = self.order_repository.list_orders(restaurant_id)
        return sorted(orders, key=lambda o: o.created_at.timestamp(), reverse=True)

    def get_order(self, restaurant_id: str, order_id: str) -> Order:
        """Look up one order.

        Raises:
            NotFoundError: If the order does not exist
        """
        for order in self.order_repository.list_orders(restaurant_id):
            if order.id == order_id:
                return order
        raise NotFoundError(f"Order {order_id} not found")

    @traced("advance_order", service_name="menu-ordering-svc")
    def advance(self, restaurant_id: str, order_id: str) -> Order:
        """Move an order to its next status: pending -> preparing -> ready.

        Advancing a ready order changes nothing and writes nothing.

        Raises:
            NotFoundError: If the order does not exist
        """

        def transition(records: list[ParsedRecord[Order]]) -> Order | None:
            for index, record in enumerate(records):
                if isinstance(record, Valid) and record.value.id == order_id:
                    next_status = record.value.status.next_status
                    if next_status is None:
                        return None
                    updated = record.value.model_copy(update={"status": next_status})
                    records[index] = Valid(updated)
                    return updated
            raise NotFoundError(f"Order {order_id} not found")

        updated = self._apply(restaurant_id, transition)
        if updated is None:
            logger.info(f"Order {order_id} is already ready, nothing to advance")
            return self.get_order(restaurant_id, order_id)

        metrics.record_status_transition(updated.status.value)
        logger.info(f"Order {order_id} advanced to {updated.status.value}")
        return updated

    def summarize(self, restaurant_id: str, day: date | None = None) -> OrderSummary:
        """Count a day's orders and revenue for the dashboard."""
        day = day or self.clock().date()
        summary = OrderSummary(day=day)
        for order in self.order_repository.list_orders(restaurant_id):
            if order.created_at.astimezone(UTC).date() != day:
                continue
            summary.order_count += 1
            summary.revenue += order.total
            summary.by_status[order.status] += 1
        summary.revenue = quantize_price(summary.revenue)
        return summary

    def _apply(
        self,
        restaurant_id: str,
        change: Callable[[list[ParsedRecord[Order]]], T | None],
    ) -> T | None:
        """Read the log, apply ``change`` and write it back, retrying on conflicts.

        ``change`` mutates the list of records in place and returns a result.
        A None result means nothing changed and nothing is written.
        """
        for attempt in range(1, self.max_write_attempts + 1):
            records, version = self.order_repository.load(restaurant_id)
            result = change(records)
            if result is None:
                return None
            try:
                self.order_repository.write(restaurant_id, records, expected_version=version)
                return result
            except ConcurrentModificationError:
                logger.warning(
                    f"Order log for restaurant {restaurant_id} changed during write "
                    f"(attempt {attempt}/{self.max_write_attempts})"
                )

        raise ConcurrentModificationError(
            f"Order log for restaurant {restaurant_id} kept changing; giving up"
        )

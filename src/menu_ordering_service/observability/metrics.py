"""Custom metrics for the menu ordering service."""

from opentelemetry import metrics

# Get meter for ordering service
meter = metrics.get_meter("menu-ordering-svc")

# Orders submitted counter
orders_submitted_counter = meter.create_counter(
    name="orders_submitted_total",
    description="Total number of submitted orders by order type",
    unit="1",
)

# Order total histogram
order_total_histogram = meter.create_histogram(
    name="order_total_amount",
    description="Billed total of submitted orders",
    unit="1",
)

status_transition_counter = meter.create_counter(
    name="order_status_transitions_total",
    description="Total number of order status transitions by target status",
    unit="1",
)

cart_change_counter = meter.create_counter(
    name="cart_changes_total",
    description="Total number of cart add/remove operations",
    unit="1",
)

rejected_checkout_counter = meter.create_counter(
    name="checkout_rejected_total",
    description="Total number of rejected checkouts by reason",
    unit="1",
)


def record_order_submitted(order_type: str, total: float) -> None:
    """Record a submitted order.

    Args:
        order_type: The order type tag (e.g., "dine-in", "takeaway")
        total: Billed total of the order
    """
    orders_submitted_counter.add(1, {"order_type": order_type})
    order_total_histogram.record(total, {"order_type": order_type})


def record_status_transition(status: str) -> None:
    """Record an order moving into a new status.

    Args:
        status: The status the order moved to
    """
    status_transition_counter.add(1, {"status": status})


def record_cart_change(operation: str) -> None:
    """Record a cart mutation ("add" or "remove")."""
    cart_change_counter.add(1, {"operation": operation})


def record_checkout_rejected(reason: str) -> None:
    """Record a checkout that did not produce an order.

    Args:
        reason: Error type that blocked the checkout
    """
    rejected_checkout_counter.add(1, {"reason": reason})

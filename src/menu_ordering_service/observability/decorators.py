"""OpenTelemetry tracing decorators."""

import functools
import inspect
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from menu_ordering_service.errors import OrderingError

# Type variable for generic function signatures
F = TypeVar("F", bound=Callable[..., Any])

_TENANT_ARGUMENTS = ("restaurant_id", "restaurant")


def _tenant_id(bound: inspect.BoundArguments) -> str | None:
    """Pull the restaurant id out of a call's arguments, if it has one."""
    for name in _TENANT_ARGUMENTS:
        value = bound.arguments.get(name)
        if isinstance(value, str):
            return value
        restaurant_id = getattr(value, "id", None)
        if isinstance(restaurant_id, str):
            return restaurant_id
    return None


def traced(
    span_name: str | None = None, service_name: str = "menu-ordering-svc"
) -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a service operation.

    Creates a span per call, tagged with the restaurant id when the call has a
    ``restaurant_id`` or ``restaurant`` argument. Domain errors
    (``OrderingError``) mark the span as rejected; any other exception is
    recorded and sets the span status to error. Exceptions are always re-raised.

    Args:
        span_name: Name for the span (defaults to function name if not provided)
        service_name: Service name for span attributes

    Returns:
        Decorated function with tracing

    Example:
        @traced("submit_order", service_name="menu-ordering-svc")
        def submit(self, cart: Cart, restaurant: Restaurant, order_type: OrderType) -> Order:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(
                name, record_exception=False, set_status_on_exception=False
            ) as span:
                span.set_attribute("service.name", service_name)
                if span_name:
                    span.set_attribute("function.name", func.__name__)

                try:
                    tenant_id = _tenant_id(signature.bind_partial(*args, **kwargs))
                except TypeError:
                    tenant_id = None
                if tenant_id:
                    span.set_attribute("restaurant.id", tenant_id)

                try:
                    result = func(*args, **kwargs)
                except OrderingError as e:
                    span.set_attribute("success", False)
                    span.set_attribute("outcome", "rejected")
                    span.set_attribute("error.type", type(e).__name__)
                    raise
                except Exception as e:
                    span.set_attribute("success", False)
                    span.set_attribute("error.type", type(e).__name__)
                    span.set_attribute("error.message", str(e))
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    raise

                span.set_attribute("success", True)
                return result

        return wrapper  # type: ignore

    return decorator

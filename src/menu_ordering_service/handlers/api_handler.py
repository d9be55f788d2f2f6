"""FastAPI application for the public ordering flow and the operator dashboard."""

import logging
from datetime import date
from typing import Any

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from menu_ordering_service import errors
from menu_ordering_service.auth.api_dependencies import get_current_user_from_header
from menu_ordering_service.auth.api_key_validator import APIKeyValidator, CurrentUser
from menu_ordering_service.models.menu_models import MenuCategory, MenuItem, Money
from menu_ordering_service.models.order_models import Order, OrderType
from menu_ordering_service.models.restaurant_models import PaymentMethod, Restaurant
from menu_ordering_service.observability import metrics
from menu_ordering_service.services.cart import Cart, CartSessionRegistry
from menu_ordering_service.services.menu_catalog import MenuCatalog
from menu_ordering_service.services.order_service import OrderService
from menu_ordering_service.services.tenant_directory import TenantDirectory

logger = logging.getLogger(__name__)

# Most specific class first; lookups walk the exception's MRO
_STATUS_CODES: dict[type[errors.OrderingError], int] = {
    errors.ValidationError: 422,
    errors.NotFoundError: 404,
    errors.EmptyCartError: 409,
    errors.SlugConflictError: 409,
    errors.AlreadyRegisteredError: 409,
    errors.ConcurrentModificationError: 409,
    errors.StorageError: 503,
}


def status_code_for(exc: errors.OrderingError) -> int:
    """Map a domain error to its HTTP status code (500 when unmapped)."""
    for cls in type(exc).__mro__:
        if cls in _STATUS_CODES:
            return _STATUS_CODES[cls]
    return 500


class ApiModel(BaseModel):
    """Base for request/response bodies: camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class PublicRestaurant(ApiModel):
    """Restaurant details shown to customers."""

    name: str
    slug: str
    description: str
    address: str
    phone: str
    email: str
    payment_methods: list[PaymentMethod]


class MenuSection(ApiModel):
    """One category heading and the items listed under it."""

    name: str
    items: list[MenuItem]


class PublicMenuResponse(ApiModel):
    """Everything the ordering page needs to render."""

    restaurant: PublicRestaurant
    order_types: list[OrderType]
    sections: list[MenuSection]


class CartLineView(ApiModel):
    """A cart line as displayed in the cart panel."""

    item_id: str
    name: str
    price: Money | None
    quantity: int | None
    amount: Money


class CartResponse(ApiModel):
    """Cart contents with the running total and item count."""

    session_id: str
    lines: list[CartLineView]
    total: Money
    count: int


class CheckoutRequest(ApiModel):
    """Checkout form submitted by the customer."""

    order_type: OrderType
    payment_method: PaymentMethod | None = None
    customer_name: str | None = Field(None, max_length=100)
    lines: list[dict[str, Any]] | None = Field(
        None, description="Cart lines held by the client; replaces the session cart when given"
    )


class RestaurantCreateRequest(ApiModel):
    """Setup form for a new restaurant."""

    name: str
    payment_methods: list[PaymentMethod]
    description: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""


class OperatorRestaurantResponse(ApiModel):
    """The operator's restaurant and the link to share with customers."""

    restaurant: Restaurant
    public_url: str


class ActiveRequest(ApiModel):
    """Request body to open or close the public ordering page."""

    active: bool


class CategoryRequest(ApiModel):
    """Request body for a new category."""

    name: str
    description: str = ""


class ItemRequest(ApiModel):
    """Menu item form. The price is kept as typed and validated by the catalog."""

    name: str
    price: str
    category: str
    description: str = ""
    available: bool = True

    @field_validator("price", mode="before")
    @classmethod
    def price_as_text(cls, v: Any) -> Any:
        """Accept JSON numbers as well as text."""
        if isinstance(v, int | float) and not isinstance(v, bool):
            return str(v)
        return v


class AvailabilityRequest(ApiModel):
    """Request body to set an item's availability."""

    available: bool


class OrderSummaryResponse(ApiModel):
    """Dashboard counters for one day."""

    day: date
    order_count: int
    revenue: Money
    by_status: dict[str, int]


def cart_response(session_id: str, cart: Cart, menu: dict[str, list[MenuItem]]) -> CartResponse:
    """Render a cart with its lines in menu order."""
    return CartResponse(
        session_id=session_id,
        lines=[
            CartLineView(
                item_id=line.item_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                amount=line.amount,
            )
            for line in cart.lines_in_menu_order(menu)
        ],
        total=cart.total(),
        count=cart.count(),
    )


def create_app(
    tenant_directory: TenantDirectory,
    menu_catalog: MenuCatalog,
    order_service: OrderService,
    cart_sessions: CartSessionRegistry,
    api_keys: dict[str, str],
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        tenant_directory: Service for restaurant setup and slug resolution
        menu_catalog: Service for menus
        order_service: Service for order submission and the order queue
        cart_sessions: Holder of per-session carts
        api_keys: Operator API keys mapped to the user each belongs to

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Menu Ordering Service API",
        description="Public menu ordering by restaurant slug and the operator dashboard API",
        version="1.0.0",
    )

    # Store services in app state for access in route handlers
    app.state.tenant_directory = tenant_directory
    app.state.menu_catalog = menu_catalog
    app.state.order_service = order_service
    app.state.cart_sessions = cart_sessions
    app.state.api_key_validator = APIKeyValidator(api_keys=api_keys)

    @app.exception_handler(errors.OrderingError)
    def handle_ordering_error(request: Request, exc: errors.OrderingError) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({status_code}): {exc}")

        content: dict[str, Any] = {"detail": str(exc)}
        if isinstance(exc, errors.ValidationError):
            content["fields"] = exc.fields
        return JSONResponse(status_code=status_code, content=content)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status indicating service is running
        """
        return HealthResponse(status="healthy")

    def current_operator(x_api_key: str | None = Header(None)) -> CurrentUser:
        """Dependency resolving the operator behind the API key."""
        return get_current_user_from_header(
            x_api_key=x_api_key, validator=app.state.api_key_validator
        )

    def operator_restaurant(user: CurrentUser = Depends(current_operator)) -> Restaurant:
        """Dependency loading the operator's restaurant."""
        restaurant: Restaurant = app.state.tenant_directory.get_for_user(user.id)
        return restaurant

    def session_cart(slug: str, session_id: str) -> tuple[Restaurant, Cart]:
        """Resolve the slug and look up the session's cart without opening a session."""
        restaurant: Restaurant = app.state.tenant_directory.resolve(slug)
        cart: Cart | None = app.state.cart_sessions.get(session_id, restaurant.id)
        return restaurant, cart if cart is not None else Cart()

    # Public ordering flow

    @app.get("/r/{slug}", response_model=PublicMenuResponse, tags=["Ordering"])
    def get_public_menu(slug: str) -> PublicMenuResponse:
        """Resolve a slug and return the restaurant with its available items by category."""
        restaurant: Restaurant = app.state.tenant_directory.resolve(slug)
        grouping = app.state.menu_catalog.grouped_menu(restaurant.id, available_only=True)
        return PublicMenuResponse(
            restaurant=PublicRestaurant(
                name=restaurant.name,
                slug=restaurant.slug,
                description=restaurant.description,
                address=restaurant.address,
                phone=restaurant.phone,
                email=restaurant.email,
                payment_methods=restaurant.payment_methods,
            ),
            order_types=list(OrderType),
            sections=[MenuSection(name=name, items=items) for name, items in grouping.items()],
        )

    @app.get("/r/{slug}/cart/{session_id}", response_model=CartResponse, tags=["Ordering"])
    def get_cart(slug: str, session_id: str) -> CartResponse:
        """Show the session's cart."""
        restaurant, cart = session_cart(slug, session_id)
        return cart_response(session_id, cart, app.state.menu_catalog.grouped_menu(restaurant.id))

    @app.post(
        "/r/{slug}/cart/{session_id}/items/{item_id}",
        response_model=CartResponse,
        tags=["Ordering"],
    )
    def add_to_cart(slug: str, session_id: str, item_id: str) -> CartResponse:
        """Add one unit of a menu item to the cart.

        Raises:
            NotFoundError: If the item is not on the menu
            ValidationError: If the item is currently unavailable
        """
        restaurant: Restaurant = app.state.tenant_directory.resolve(slug)
        item: MenuItem = app.state.menu_catalog.get_item(restaurant.id, item_id)
        if not item.available:
            raise errors.ValidationError(["itemId"], f"{item.name} is currently unavailable")

        cart: Cart = app.state.cart_sessions.get_or_create(session_id, restaurant.id)
        cart.add(item)
        logger.info(f"Session {session_id} holds {cart.quantity_of(item.id)} x {item.id}")
        return cart_response(session_id, cart, app.state.menu_catalog.grouped_menu(restaurant.id))

    @app.delete(
        "/r/{slug}/cart/{session_id}/items/{item_id}",
        response_model=CartResponse,
        tags=["Ordering"],
    )
    def remove_from_cart(slug: str, session_id: str, item_id: str) -> CartResponse:
        """Remove one unit of an item; removing an item not in the cart is a no-op."""
        restaurant, cart = session_cart(slug, session_id)
        cart.remove(item_id)
        return cart_response(session_id, cart, app.state.menu_catalog.grouped_menu(restaurant.id))

    @app.post(
        "/r/{slug}/cart/{session_id}/checkout",
        response_model=Order,
        status_code=201,
        tags=["Ordering"],
    )
    def checkout(slug: str, session_id: str, request: CheckoutRequest) -> Order:
        """Submit the cart as an order and close the cart session.

        When the request carries ``lines`` they are priced against the current
        menu and used instead of the session cart, so a checkout does not
        depend on the session living in this process. The session is closed
        only after the order was stored.
        """
        restaurant, cart = session_cart(slug, session_id)
        try:
            if request.lines is not None:
                cart = app.state.menu_catalog.cart_from_snapshot(restaurant.id, request.lines)
            order: Order = app.state.order_service.submit(
                cart,
                restaurant,
                request.order_type,
                payment_method=request.payment_method,
                customer_name=request.customer_name,
            )
        except errors.OrderingError as e:
            metrics.record_checkout_rejected(type(e).__name__)
            raise

        app.state.cart_sessions.discard(session_id)
        return order

    # Operator dashboard

    @app.post(
        "/operator/restaurant",
        response_model=OperatorRestaurantResponse,
        status_code=201,
        tags=["Operator"],
    )
    def register_restaurant(
        request: RestaurantCreateRequest,
        user: CurrentUser = Depends(current_operator),
    ) -> OperatorRestaurantResponse:
        """Complete restaurant setup for the operator."""
        restaurant: Restaurant = app.state.tenant_directory.register(
            user_id=user.id,
            name=request.name,
            payment_methods=request.payment_methods,
            description=request.description,
            address=request.address,
            phone=request.phone,
            email=request.email,
        )
        return OperatorRestaurantResponse(
            restaurant=restaurant, public_url=app.state.tenant_directory.public_url(restaurant)
        )

    @app.get("/operator/restaurant", response_model=OperatorRestaurantResponse, tags=["Operator"])
    def get_restaurant(
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> OperatorRestaurantResponse:
        """Return the operator's restaurant and its public link."""
        return OperatorRestaurantResponse(
            restaurant=restaurant, public_url=app.state.tenant_directory.public_url(restaurant)
        )

    @app.put(
        "/operator/restaurant/active",
        response_model=OperatorRestaurantResponse,
        tags=["Operator"],
    )
    def set_restaurant_active(
        request: ActiveRequest,
        user: CurrentUser = Depends(current_operator),
    ) -> OperatorRestaurantResponse:
        """Open or close the public ordering page."""
        restaurant: Restaurant = app.state.tenant_directory.set_active(user.id, request.active)
        return OperatorRestaurantResponse(
            restaurant=restaurant, public_url=app.state.tenant_directory.public_url(restaurant)
        )

    @app.get("/operator/menu/categories", response_model=list[MenuCategory], tags=["Menu"])
    def list_categories(
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> list[MenuCategory]:
        """List categories in display order."""
        categories: list[MenuCategory] = app.state.menu_catalog.list_categories(restaurant.id)
        return categories

    @app.post(
        "/operator/menu/categories",
        response_model=MenuCategory,
        status_code=201,
        tags=["Menu"],
    )
    def add_category(
        request: CategoryRequest,
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> MenuCategory:
        """Add a category at the end of the display order."""
        category: MenuCategory = app.state.menu_catalog.add_category(
            restaurant.id, request.name, description=request.description
        )
        return category

    @app.get("/operator/menu/items", response_model=list[MenuItem], tags=["Menu"])
    def list_items(restaurant: Restaurant = Depends(operator_restaurant)) -> list[MenuItem]:
        """List all items, available or not."""
        items: list[MenuItem] = app.state.menu_catalog.list_items(restaurant.id)
        return items

    @app.post("/operator/menu/items", response_model=MenuItem, status_code=201, tags=["Menu"])
    def add_item(
        request: ItemRequest,
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> MenuItem:
        """Create a menu item."""
        item: MenuItem = app.state.menu_catalog.add_item(
            restaurant.id,
            name=request.name,
            price=request.price,
            category=request.category,
            description=request.description,
            available=request.available,
        )
        return item

    @app.put("/operator/menu/items/{item_id}", response_model=MenuItem, tags=["Menu"])
    def update_item(
        item_id: str,
        request: ItemRequest,
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> MenuItem:
        """Replace a menu item's editable fields."""
        item: MenuItem = app.state.menu_catalog.update_item(
            restaurant.id,
            item_id,
            name=request.name,
            price=request.price,
            category=request.category,
            description=request.description,
            available=request.available,
        )
        return item

    @app.delete("/operator/menu/items/{item_id}", status_code=204, tags=["Menu"])
    def delete_item(
        item_id: str,
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> Response:
        """Delete a menu item."""
        app.state.menu_catalog.delete_item(restaurant.id, item_id)
        return Response(status_code=204)

    @app.put(
        "/operator/menu/items/{item_id}/availability",
        response_model=MenuItem,
        tags=["Menu"],
    )
    def set_item_availability(
        item_id: str,
        request: AvailabilityRequest,
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> MenuItem:
        """Mark an item available or sold out."""
        item: MenuItem = app.state.menu_catalog.set_availability(
            restaurant.id, item_id, request.available
        )
        return item

    @app.post(
        "/operator/menu/items/{item_id}/availability/toggle",
        response_model=MenuItem,
        tags=["Menu"],
    )
    def toggle_item_availability(
        item_id: str,
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> MenuItem:
        """Flip an item between available and sold out."""
        item: MenuItem = app.state.menu_catalog.toggle_availability(restaurant.id, item_id)
        return item

    @app.get("/operator/orders", response_model=list[Order], tags=["Orders"])
    def list_orders(restaurant: Restaurant = Depends(operator_restaurant)) -> list[Order]:
        """List orders, newest first."""
        orders: list[Order] = app.state.order_service.list_orders(restaurant.id)
        return orders

    @app.get("/operator/orders/summary", response_model=OrderSummaryResponse, tags=["Orders"])
    def get_order_summary(
        day: date | None = None,
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> OrderSummaryResponse:
        """Order count, revenue and status breakdown for a day (today by default)."""
        summary = app.state.order_service.summarize(restaurant.id, day)
        return OrderSummaryResponse(
            day=summary.day,
            order_count=summary.order_count,
            revenue=summary.revenue,
            by_status={status.value: count for status, count in summary.by_status.items()},
        )

    @app.post("/operator/orders/{order_id}/advance", response_model=Order, tags=["Orders"])
    def advance_order(
        order_id: str,
        restaurant: Restaurant = Depends(operator_restaurant),
    ) -> Order:
        """Move an order to its next status."""
        logger.info(f"Advancing order {order_id} for restaurant {restaurant.id}")
        order: Order = app.state.order_service.advance(restaurant.id, order_id)
        return order

    return app

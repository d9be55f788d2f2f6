"""Menu catalog: categories, items, availability and category grouping."""

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any

from menu_ordering_service.errors import NotFoundError, ValidationError
from menu_ordering_service.models.menu_models import (
    MAX_PRICE,
    OTHER_CATEGORY,
    MenuCategory,
    MenuItem,
    quantize_price,
)
from menu_ordering_service.observability.decorators import traced
from menu_ordering_service.repositories.ordering_repositories import MenuRepository
from menu_ordering_service.services.cart import Cart

logger = logging.getLogger(__name__)


def parse_price(text: str | None) -> Decimal | None:
    """Parse a price typed into a form.

    Returns:
        Decimal rounded to cents, or None unless the text is a finite number
        between 0 and MAX_PRICE
    """
    if text is None:
        return None
    try:
        value = Decimal(str(text).strip())
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0 or value > MAX_PRICE:
        return None
    return quantize_price(value)


def group_by_category(
    items: list[MenuItem], categories: list[MenuCategory]
) -> dict[str, list[MenuItem]]:
    """Group items under their category name for display.

    Keys follow category display order; items keep their insertion order
    within a group. Items whose category matches no known category are placed
    in an "Other" group, together with the items of a real category of that
    name; the "Other" group always comes last. Categories without items are
    left out.

    Args:
        items: Menu items in insertion order
        categories: Known categories (any order)

    Returns:
        dict: Category name -> items
    """
    ordered_names = [c.name for c in sort_categories(categories)]
    known = set(ordered_names)

    buckets: dict[str, list[MenuItem]] = {name: [] for name in ordered_names}
    other: list[MenuItem] = []
    for item in items:
        if item.category in known:
            buckets[item.category].append(item)
        else:
            other.append(item)

    grouped = {name: grouped_items for name, grouped_items in buckets.items() if grouped_items}
    if other or OTHER_CATEGORY in grouped:
        grouped[OTHER_CATEGORY] = grouped.pop(OTHER_CATEGORY, []) + other
    return grouped


def sort_categories(categories: list[MenuCategory]) -> list[MenuCategory]:
    """Sort by display order; ``sorted`` is stable so ties keep insertion order."""
    return sorted(categories, key=lambda c: c.order)


def default_categories(restaurant_id: str) -> list[MenuCategory]:
    seed = [
        ("Pizza", "Wood-fired pizzas"),
        ("Salads", "Fresh salads"),
        ("Pasta", "Italian pasta dishes"),
        ("Desserts", "Sweet treats"),
    ]
    return [
        MenuCategory(
            id=str(order), restaurant_id=restaurant_id, name=name, description=description, order=order
        )
        for order, (name, description) in enumerate(seed, start=1)
    ]


def default_items(restaurant_id: str) -> list[MenuItem]:
    return [
        MenuItem(
            id="1",
            restaurant_id=restaurant_id,
            name="Margherita Pizza",
            description="Fresh tomatoes, mozzarella, basil, olive oil",
            price=Decimal("18.99"),
            category="Pizza",
            available=True,
        ),
        MenuItem(
            id="2",
            restaurant_id=restaurant_id,
            name="Caesar Salad",
            description="Romaine lettuce, parmesan, croutons, caesar dressing",
            price=Decimal("14.99"),
            category="Salads",
            available=True,
        ),
    ]


class MenuCatalog:
    """Service for one tenant's menu.

    Every mutating operation reads the full list, changes it and writes it
    back. When a tenant has no stored menu and demo seeding is on, a default
    menu is written on first read.
    """

    def __init__(self, menu_repository: MenuRepository, seed_demo_menu: bool = True) -> None:
        """Initialize the catalog.

        Args:
            menu_repository: Repository for menu items and categories
            seed_demo_menu: Write a default menu for tenants that have none
        """
        self.menu_repository = menu_repository
        self.seed_demo_menu = seed_demo_menu

    def list_categories(self, restaurant_id: str) -> list[MenuCategory]:
        """List categories sorted by display order, ties by creation order."""
        categories = self.menu_repository.load_categories(restaurant_id)
        if categories is None:
            categories = []
            if self.seed_demo_menu:
                categories = default_categories(restaurant_id)
                self.menu_repository.save_categories(restaurant_id, categories)
                logger.info(f"Seeded default categories for restaurant {restaurant_id}")
        return sort_categories(categories)

    def list_items(self, restaurant_id: str) -> list[MenuItem]:
        """List menu items in insertion order."""
        items = self.menu_repository.load_items(restaurant_id)
        if items is None:
            items = []
            if self.seed_demo_menu:
                items = default_items(restaurant_id)
                self.menu_repository.save_items(restaurant_id, items)
                logger.info(f"Seeded default menu items for restaurant {restaurant_id}")
        return items

    def get_item(self, restaurant_id: str, item_id: str) -> MenuItem:
        """Look up one item.

        Raises:
            NotFoundError: If the item does not exist
        """
        for item in self.list_items(restaurant_id):
            if item.id == item_id:
                return item
        raise NotFoundError(f"Menu item {item_id} not found")

    def grouped_menu(
        self, restaurant_id: str, available_only: bool = False
    ) -> dict[str, list[MenuItem]]:
        """Group the tenant's items by category in display order."""
        items = self.list_items(restaurant_id)
        if available_only:
            items = [item for item in items if item.available]
        return group_by_category(items, self.list_categories(restaurant_id))

    @traced("set_item_availability", service_name="menu-ordering-svc")
    def set_availability(self, restaurant_id: str, item_id: str, available: bool) -> MenuItem:
        """Set an item's availability flag. Setting the current value changes nothing.

        Raises:
            NotFoundError: If the item does not exist
        """
        items = self.list_items(restaurant_id)
        for index, item in enumerate(items):
            if item.id == item_id:
                if item.available == available:
                    return item
                updated = item.model_copy(update={"available": available})
                items[index] = updated
                self.menu_repository.save_items(restaurant_id, items)
                return updated
        raise NotFoundError(f"Menu item {item_id} not found")

    def toggle_availability(self, restaurant_id: str, item_id: str) -> MenuItem:
        """Flip an item's availability flag."""
        item = self.get_item(restaurant_id, item_id)
        return self.set_availability(restaurant_id, item_id, not item.available)

    def cart_from_snapshot(self, restaurant_id: str, raw_lines: list[Any]) -> Cart:
        """Rebuild a client-held cart against the current menu.

        Only item ids and quantities are taken from the client; names and
        prices come from the menu.

        Raises:
            ValidationError: If a line is for an item that is not on the menu or unavailable
        """
        menu = {item.id: item for item in self.list_items(restaurant_id) if item.available}
        cart = Cart.from_snapshot(raw_lines, menu=menu)

        off_menu = [line.item_id for line in cart.lines if line.item_id not in menu]
        if off_menu:
            raise ValidationError(
                [f"items.{item_id}" for item_id in off_menu],
                "Some items in the cart are no longer available",
            )
        return cart

    @traced("add_menu_item", service_name="menu-ordering-svc")
    def add_item(
        self,
        restaurant_id: str,
        name: str,
        price: str,
        category: str,
        description: str = "",
        available: bool = True,
    ) -> MenuItem:
        """Create a menu item from form input.

        Args:
            restaurant_id: Restaurant identifier
            name: Item name
            price: Price as typed, e.g. "12.50"
            category: Category name the item is listed under
            description: Item description
            available: Initial availability

        Returns:
            MenuItem: The stored item

        Raises:
            ValidationError: If name, price or category is missing or invalid
        """
        parsed_price = self._validate_item_fields(name, price, category)
        items = self.list_items(restaurant_id)
        item = MenuItem(
            id=self._new_id(),
            restaurant_id=restaurant_id,
            name=name.strip(),
            description=description,
            price=parsed_price,
            category=category,
            available=available,
        )
        items.append(item)
        self.menu_repository.save_items(restaurant_id, items)
        logger.info(f"Added menu item {item.id} to restaurant {restaurant_id}")
        return item

    def update_item(
        self,
        restaurant_id: str,
        item_id: str,
        name: str,
        price: str,
        category: str,
        description: str = "",
        available: bool = True,
    ) -> MenuItem:
        """Replace an item's editable fields.

        Raises:
            ValidationError: If name, price or category is missing or invalid
            NotFoundError: If the item does not exist
        """
        parsed_price = self._validate_item_fields(name, price, category)
        items = self.list_items(restaurant_id)
        for index, item in enumerate(items):
            if item.id == item_id:
                updated = item.model_copy(
                    update={
                        "name": name.strip(),
                        "description": description,
                        "price": parsed_price,
                        "category": category,
                        "available": available,
                    }
                )
                items[index] = updated
                self.menu_repository.save_items(restaurant_id, items)
                logger.info(f"Updated menu item {item_id} in restaurant {restaurant_id}")
                return updated
        raise NotFoundError(f"Menu item {item_id} not found")

    def delete_item(self, restaurant_id: str, item_id: str) -> None:
        """Remove an item.

        Raises:
            NotFoundError: If the item does not exist
        """
        items = self.list_items(restaurant_id)
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            raise NotFoundError(f"Menu item {item_id} not found")
        self.menu_repository.save_items(restaurant_id, remaining)
        logger.info(f"Deleted menu item {item_id} from restaurant {restaurant_id}")

    def add_category(self, restaurant_id: str, name: str, description: str = "") -> MenuCategory:
        """Append a category at the end of the display order.

        Raises:
            ValidationError: If the name is blank or already used in this restaurant
        """
        if not name or not name.strip():
            raise ValidationError(["name"], "Category name is required")

        categories = self.list_categories(restaurant_id)
        name = name.strip()
        if any(c.name == name for c in categories):
            raise ValidationError(["name"], f"Category {name!r} already exists")

        category = MenuCategory(
            id=self._new_id(),
            restaurant_id=restaurant_id,
            name=name,
            description=description or None,
            order=max((c.order for c in categories), default=0) + 1,
        )
        self.menu_repository.save_categories(restaurant_id, [*categories, category])
        logger.info(f"Added category {name} to restaurant {restaurant_id}")
        return category

    def _validate_item_fields(self, name: str, price: str, category: str) -> Decimal:
        invalid = []
        if not name or not name.strip():
            invalid.append("name")
        parsed_price = parse_price(price)
        if parsed_price is None:
            invalid.append("price")
        if not category or not category.strip():
            invalid.append("category")
        if invalid:
            raise ValidationError(invalid)
        return parsed_price  # type: ignore[return-value]

    @staticmethod
    def _new_id() -> str:
        return str(time.time_ns() // 1000)

"""Shared pytest fixtures and configuration for all tests."""

import os

# Must be set before src.main / src.lambda_handler are imported by test modules
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import UTC, datetime  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402

from menu_ordering_service.models.menu_models import MenuCategory, MenuItem  # noqa: E402
from menu_ordering_service.models.restaurant_models import (  # noqa: E402
    PaymentMethod,
    Restaurant,
)
from menu_ordering_service.repositories.kv_store import InMemoryKeyValueStore  # noqa: E402


@pytest.fixture
def mock_restaurant_id() -> str:
    """Fixture providing a standard test restaurant ID."""
    return "rest_1752703500000"


@pytest.fixture
def restaurant(mock_restaurant_id: str) -> Restaurant:
    """Fixture providing an active restaurant owned by user_1."""
    return Restaurant(
        id=mock_restaurant_id,
        user_id="user_1",
        name="Joe's Pizza",
        slug="joe-s-pizza-1752703500000",
        description="Neighbourhood pizzeria",
        address="1 Main St",
        phone="555-0100",
        email="joe@example.com",
        payment_methods=[PaymentMethod.COUNTER, PaymentMethod.CASH],
        is_active=True,
        created_at=datetime(2025, 7, 16, 22, 5, tzinfo=UTC),
    )


@pytest.fixture
def mock_categories(mock_restaurant_id: str) -> list[MenuCategory]:
    """Fixture providing sample categories for testing."""
    return [
        MenuCategory(id="1", restaurant_id=mock_restaurant_id, name="Pizza", order=1),
        MenuCategory(id="2", restaurant_id=mock_restaurant_id, name="Salads", order=2),
    ]


@pytest.fixture
def mock_menu_items(mock_restaurant_id: str) -> list[MenuItem]:
    """Fixture providing sample menu items for testing."""
    return [
        MenuItem(
            id="item_a",
            restaurant_id=mock_restaurant_id,
            name="Margherita",
            price=Decimal("10.00"),
            category="Pizza",
        ),
        MenuItem(
            id="item_b",
            restaurant_id=mock_restaurant_id,
            name="Garden Salad",
            price=Decimal("5.00"),
            category="Salads",
        ),
        MenuItem(
            id="item_c",
            restaurant_id=mock_restaurant_id,
            name="Lemonade",
            price=Decimal("3.50"),
            category="Drinks",
            available=False,
        ),
    ]


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    """Fixture providing an empty in-memory store."""
    return InMemoryKeyValueStore()

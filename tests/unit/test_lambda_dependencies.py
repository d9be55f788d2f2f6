"""Unit tests for Lambda dependency caching."""

import os
from collections.abc import Iterator
from unittest.mock import Mock, patch

import pytest

import src.lambda_dependencies as lambda_dependencies
from menu_ordering_service.auth.api_key_validator import CurrentUser
from menu_ordering_service.repositories.kv_store import InMemoryKeyValueStore
from menu_ordering_service.services.menu_catalog import MenuCatalog
from menu_ordering_service.services.order_service import OrderService
from menu_ordering_service.services.tenant_directory import TenantDirectory


@pytest.fixture(autouse=True)
def reset_caches() -> Iterator[None]:
    """Clear the module-level caches around every test."""
    names = ("_store", "_tenant_directory", "_menu_catalog", "_order_service", "_fastapi_app")
    for name in names:
        setattr(lambda_dependencies, name, None)
    yield
    for name in names:
        setattr(lambda_dependencies, name, None)


@pytest.mark.unit
class TestGetStore:
    """Tests for the cached DynamoDB store."""

    @patch.dict(os.environ, {"DYNAMODB_STORE_TABLE": "orders-table"}, clear=True)
    @patch("src.lambda_dependencies.DynamoDBKeyValueStore")
    @patch("src.lambda_dependencies.get_dynamodb_resource")
    def test_store_created_once(self, mock_get_resource: Mock, mock_store_cls: Mock) -> None:
        first = lambda_dependencies.get_store()
        second = lambda_dependencies.get_store()

        assert first is second
        mock_get_resource.assert_called_once()
        mock_store_cls.assert_called_once_with(
            dynamodb_resource=mock_get_resource.return_value, table_name="orders-table"
        )


@pytest.mark.unit
class TestServiceCaching:
    """Tests for the cached services and application."""

    @pytest.fixture(autouse=True)
    def in_memory_store(self) -> InMemoryKeyValueStore:
        store = InMemoryKeyValueStore()
        lambda_dependencies._store = store
        return store

    @patch.dict(os.environ, {"SEED_DEMO_MENU": "false", "ORDER_WRITE_ATTEMPTS": "4"}, clear=True)
    def test_services_are_cached_and_configured(self) -> None:
        directory = lambda_dependencies.get_tenant_directory()
        catalog = lambda_dependencies.get_menu_catalog()
        orders = lambda_dependencies.get_order_service()

        assert isinstance(directory, TenantDirectory)
        assert isinstance(catalog, MenuCatalog)
        assert isinstance(orders, OrderService)
        assert lambda_dependencies.get_tenant_directory() is directory
        assert lambda_dependencies.get_menu_catalog() is catalog
        assert lambda_dependencies.get_order_service() is orders
        assert catalog.seed_demo_menu is False
        assert orders.max_write_attempts == 4

    @patch.dict(os.environ, {"OPERATOR_API_KEYS": "secret:user_1"}, clear=True)
    @patch("src.lambda_dependencies.setup_observability")
    def test_fastapi_app_created_once(self, mock_setup_observability: Mock) -> None:
        app = lambda_dependencies.get_fastapi_app()

        assert lambda_dependencies.get_fastapi_app() is app
        mock_setup_observability.assert_called_once_with(app)
        assert app.state.order_service is lambda_dependencies.get_order_service()
        assert app.state.api_key_validator.identify("secret") == CurrentUser(id="user_1")

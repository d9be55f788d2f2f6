"""Shared dependency factory for the Lambda handler.

Dependencies are created once per Lambda container and reused across warm
invocations. Lambda deployments always use the DynamoDB store: process memory
does not survive between containers.
"""

import logging
import os

from fastapi import FastAPI

from menu_ordering_service.handlers.api_handler import create_app
from menu_ordering_service.observability import configure_logging, setup_observability
from menu_ordering_service.repositories.kv_store import DynamoDBKeyValueStore, KeyValueStore
from menu_ordering_service.repositories.ordering_repositories import (
    MenuRepository,
    OrderRepository,
    RestaurantRepository,
)
from menu_ordering_service.services.cart import CartSessionRegistry
from menu_ordering_service.services.menu_catalog import MenuCatalog
from menu_ordering_service.services.order_service import OrderService
from menu_ordering_service.services.tenant_directory import TenantDirectory
from menu_ordering_service.settings import (
    cart_idle_seconds,
    cart_session_limit,
    env_flag,
    get_dynamodb_resource,
    get_operator_keys,
    order_write_attempts,
    public_base_url,
)

logger = logging.getLogger(__name__)

# Module-level caches for Lambda container reuse
_store: KeyValueStore | None = None
_tenant_directory: TenantDirectory | None = None
_menu_catalog: MenuCatalog | None = None
_order_service: OrderService | None = None
_fastapi_app: FastAPI | None = None


def get_store() -> KeyValueStore:
    """Create or retrieve the cached DynamoDB-backed store."""
    global _store

    if _store is None:
        table_name = os.getenv("DYNAMODB_STORE_TABLE", "menu-ordering-store")
        _store = DynamoDBKeyValueStore(
            dynamodb_resource=get_dynamodb_resource(), table_name=table_name
        )
        logger.info(f"Store initialized with table {table_name}")

    return _store


def get_tenant_directory() -> TenantDirectory:
    """Create or retrieve the cached tenant directory."""
    global _tenant_directory

    if _tenant_directory is None:
        _tenant_directory = TenantDirectory(
            RestaurantRepository(get_store()),
            public_base_url=public_base_url(),
            include_inactive=env_flag("RESOLVE_INACTIVE_TENANTS", False),
        )
        logger.info("Tenant directory initialized")

    return _tenant_directory


def get_menu_catalog() -> MenuCatalog:
    """Create or retrieve the cached menu catalog."""
    global _menu_catalog

    if _menu_catalog is None:
        _menu_catalog = MenuCatalog(
            MenuRepository(get_store()), seed_demo_menu=env_flag("SEED_DEMO_MENU", True)
        )
        logger.info("Menu catalog initialized")

    return _menu_catalog


def get_order_service() -> OrderService:
    """Create or retrieve the cached order service."""
    global _order_service

    if _order_service is None:
        _order_service = OrderService(
            OrderRepository(get_store()),
            max_write_attempts=order_write_attempts(),
        )
        logger.info("Order service initialized")

    return _order_service


def get_fastapi_app() -> FastAPI:
    """Create or retrieve the cached FastAPI application.

    Session carts live in the container's memory. Clients that may reach
    another container send their cart lines with the checkout request.
    """
    global _fastapi_app

    if _fastapi_app is None:
        _fastapi_app = create_app(
            tenant_directory=get_tenant_directory(),
            menu_catalog=get_menu_catalog(),
            order_service=get_order_service(),
            cart_sessions=CartSessionRegistry(
                max_sessions=cart_session_limit(), idle_seconds=cart_idle_seconds()
            ),
            api_keys=get_operator_keys(),
        )
        setup_observability(_fastapi_app)
        logger.info("FastAPI application initialized")

    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging.

    Should be called once during Lambda cold start.
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Lambda environment initialized")

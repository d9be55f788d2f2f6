"""Server entry point: wires the ordering services from the environment.

Run directly for a uvicorn development server; `main:app` is the ASGI target
for production servers.
"""

import logging
import os

from fastapi import FastAPI

from menu_ordering_service.handlers.api_handler import create_app
from menu_ordering_service.observability import configure_logging, setup_observability
from menu_ordering_service.repositories.kv_store import (
    DynamoDBKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
)
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


def get_store() -> KeyValueStore:
    """Create the key-value store selected by STORE_BACKEND.

    Raises:
        ValueError: If STORE_BACKEND names an unknown backend
    """
    backend = os.getenv("STORE_BACKEND", "memory").lower()

    if backend == "memory":
        logger.warning("Using in-memory store - data is lost on restart")
        return InMemoryKeyValueStore()

    if backend == "dynamodb":
        table_name = os.getenv("DYNAMODB_STORE_TABLE", "menu-ordering-store")
        logger.info(f"Using DynamoDB store table {table_name}")
        return DynamoDBKeyValueStore(
            dynamodb_resource=get_dynamodb_resource(), table_name=table_name
        )

    raise ValueError(f"Unknown STORE_BACKEND {backend!r}, expected 'memory' or 'dynamodb'")


def create_application(store: KeyValueStore | None = None) -> FastAPI:
    """Build the ordering API on top of the configured store.

    Logging is configured first so service construction is captured. Feature
    flags and operator keys are read from the environment here, once.

    Args:
        store: Store to use instead of the one selected by STORE_BACKEND

    Returns:
        The FastAPI application with tracing attached
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Initializing menu ordering service...")

    if store is None:
        store = get_store()

    restaurant_repository = RestaurantRepository(store)
    menu_repository = MenuRepository(store)
    order_repository = OrderRepository(store)

    tenant_directory = TenantDirectory(
        restaurant_repository,
        public_base_url=public_base_url(),
        include_inactive=env_flag("RESOLVE_INACTIVE_TENANTS", False),
    )
    menu_catalog = MenuCatalog(menu_repository, seed_demo_menu=env_flag("SEED_DEMO_MENU", True))
    order_service = OrderService(order_repository, max_write_attempts=order_write_attempts())

    logger.info("Services initialized")

    app = create_app(
        tenant_directory=tenant_directory,
        menu_catalog=menu_catalog,
        order_service=order_service,
        cart_sessions=CartSessionRegistry(
            max_sessions=cart_session_limit(), idle_seconds=cart_idle_seconds()
        ),
        api_keys=get_operator_keys(),
    )

    setup_observability(app)

    logger.info("Menu ordering service initialized successfully")

    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )

"""Repositories for restaurants, menus and orders on top of a key-value store.

Records are stored as JSON text under the key shapes the web client already
uses. Following the pattern of the rest of the service, expected failures
(missing or unreadable records) come back as None or empty collections and
are logged; only store backend failures propagate.
"""

import json
import logging
from typing import Any

from menu_ordering_service.errors import ConcurrentModificationError, StorageParseError
from menu_ordering_service.models.menu_models import MenuCategory, MenuItem
from menu_ordering_service.models.order_models import Order
from menu_ordering_service.models.records import (
    Malformed,
    ParsedRecord,
    Valid,
    parse_records,
    valid_values,
)
from menu_ordering_service.models.restaurant_models import Restaurant
from menu_ordering_service.repositories.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

PRIMARY_RESTAURANT_KEY = "restaurantData"
RESTAURANT_KEY_PREFIX = "restaurant_"
SLUG_INDEX_PREFIX = "restaurant_slug_"


def decode_record(key: str, raw: str) -> Any:
    """Decode a stored JSON record.

    Raises:
        StorageParseError: If the value is not valid JSON
    """
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise StorageParseError(key, str(e)) from e


def encode_record(value: Any) -> str:
    """Serialize a record for storage."""
    return json.dumps(value, separators=(",", ":"))


class JsonRecordRepository:
    """Base class with JSON read helpers shared by the repositories."""

    def __init__(self, store: KeyValueStore) -> None:
        """Initialize repository.

        Args:
            store: Key-value store holding the serialized records
        """
        self.store = store

    def _read_json(self, key: str) -> Any | None:
        """Read and decode a record; None if absent or unreadable."""
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return decode_record(key, raw)
        except StorageParseError as e:
            logger.warning(f"Ignoring unreadable record: {e}")
            return None

    def _read_list(self, key: str) -> list[Any] | None:
        """Read a record expected to hold a JSON array.

        Returns:
            list if the record holds an array, [] if it is unreadable, None if absent
        """
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            decoded = decode_record(key, raw)
        except StorageParseError as e:
            logger.warning(f"Falling back to an empty collection: {e}")
            return []
        if not isinstance(decoded, list):
            logger.warning(f"Record {key!r} is not a list, falling back to an empty collection")
            return []
        return decoded


def log_malformed(key: str, results: list[ParsedRecord[Any]]) -> None:
    """Log every malformed entry of a parsed collection."""
    for result in results:
        if isinstance(result, Malformed):
            logger.warning(f"Skipping malformed entry in {key!r}: {result.reason}")


class RestaurantRepository(JsonRecordRepository):
    """Repository for restaurant records and the slug index.

    Each restaurant lives under ``restaurant_<userId>``; the most recently set
    up restaurant is also mirrored under ``restaurantData``. The slug index maps
    ``restaurant_slug_<slug>`` to the key of the owning record.
    """

    @staticmethod
    def record_key(user_id: str) -> str:
        return f"{RESTAURANT_KEY_PREFIX}{user_id}"

    @staticmethod
    def slug_index_key(slug: str) -> str:
        return f"{SLUG_INDEX_PREFIX}{slug}"

    def get_by_key(self, key: str) -> Restaurant | None:
        """Load a restaurant record by its store key.

        Args:
            key: Store key of the record

        Returns:
            Restaurant if the record exists and parses, None otherwise
        """
        data = self._read_json(key)
        if not isinstance(data, dict):
            return None

        results = parse_records(Restaurant, [data])
        log_malformed(key, results)
        parsed = valid_values(results)
        return parsed[0] if parsed else None

    def get_primary(self) -> Restaurant | None:
        """Load the record in the legacy single-tenant slot."""
        return self.get_by_key(PRIMARY_RESTAURANT_KEY)

    def get_by_user(self, user_id: str) -> Restaurant | None:
        """Load the restaurant owned by a user."""
        return self.get_by_key(self.record_key(user_id))

    def record_keys(self) -> list[str]:
        """List the keys of every per-user restaurant record."""
        return [
            key
            for key in self.store.keys(RESTAURANT_KEY_PREFIX)
            if not key.startswith(SLUG_INDEX_PREFIX)
        ]

    def lookup_slug(self, slug: str) -> str | None:
        """Return the record key indexed for a slug, if any."""
        return self.store.get(self.slug_index_key(slug))

    def claim_slug(self, slug: str, record_key: str) -> bool:
        """Atomically create the index entry for a slug.

        Args:
            slug: Slug to claim
            record_key: Store key of the restaurant record owning the slug

        Returns:
            bool: True if the slug was free and is now claimed, False if taken
        """
        try:
            self.store.put_versioned(self.slug_index_key(slug), record_key, expected_version=0)
            return True
        except ConcurrentModificationError:
            return False

    def save(self, restaurant: Restaurant, mirror_primary: bool = True) -> None:
        """Write the restaurant record, optionally mirroring it to the primary slot."""
        payload = encode_record(restaurant.to_store_item())
        self.store.set(self.record_key(restaurant.user_id), payload)
        if mirror_primary:
            self.store.set(PRIMARY_RESTAURANT_KEY, payload)


class MenuRepository(JsonRecordRepository):
    """Repository for a tenant's menu items and categories."""

    @staticmethod
    def items_key(restaurant_id: str) -> str:
        return f"menu-{restaurant_id}"

    @staticmethod
    def legacy_items_key(restaurant_id: str) -> str:
        return f"menu_{restaurant_id}"

    @staticmethod
    def categories_key(restaurant_id: str) -> str:
        return f"categories-{restaurant_id}"

    def load_items(self, restaurant_id: str) -> list[MenuItem] | None:
        """Load menu items, falling back to the legacy key.

        Args:
            restaurant_id: Restaurant identifier

        Returns:
            list of parsed items (malformed entries skipped), or None if no menu is stored
        """
        key = self.items_key(restaurant_id)
        raw_items = self._read_list(key)
        if raw_items is None:
            key = self.legacy_items_key(restaurant_id)
            raw_items = self._read_list(key)
        if raw_items is None:
            return None

        results = parse_records(MenuItem, raw_items)
        log_malformed(key, results)
        return valid_values(results)

    def save_items(self, restaurant_id: str, items: list[MenuItem]) -> None:
        self.store.set(
            self.items_key(restaurant_id),
            encode_record([item.to_store_item() for item in items]),
        )

    def load_categories(self, restaurant_id: str) -> list[MenuCategory] | None:
        """Load categories in stored (insertion) order.

        Returns:
            list of parsed categories, or None if none are stored
        """
        key = self.categories_key(restaurant_id)
        raw_categories = self._read_list(key)
        if raw_categories is None:
            return None

        results = parse_records(MenuCategory, raw_categories)
        log_malformed(key, results)
        return valid_values(results)

    def save_categories(self, restaurant_id: str, categories: list[MenuCategory]) -> None:
        self.store.set(
            self.categories_key(restaurant_id),
            encode_record([category.to_store_item() for category in categories]),
        )


class OrderRepository(JsonRecordRepository):
    """Repository for a tenant's order log.

    The log is one JSON array per restaurant. Reads return parse results with
    the record version; writes are conditional on that version. Malformed
    entries are written back untouched so a rewrite never drops data.
    """

    @staticmethod
    def orders_key(restaurant_id: str) -> str:
        return f"orders_{restaurant_id}"

    def load(self, restaurant_id: str) -> tuple[list[ParsedRecord[Order]], int]:
        """Load the order log and its version.

        Args:
            restaurant_id: Restaurant identifier

        Returns:
            tuple: (parse results in log order, record version)
        """
        key = self.orders_key(restaurant_id)
        raw, version = self.store.get_versioned(key)
        if raw is None:
            return [], version

        try:
            decoded = decode_record(key, raw)
        except StorageParseError as e:
            logger.warning(f"Treating order log as empty: {e}")
            return [], version

        if not isinstance(decoded, list):
            logger.warning(f"Order log {key!r} is not a list, treating as empty")
            return [], version

        results = parse_records(Order, decoded)
        log_malformed(key, results)
        return results, version

    def list_orders(self, restaurant_id: str) -> list[Order]:
        """Load only the well-formed orders, in log order."""
        results, _ = self.load(restaurant_id)
        return valid_values(results)

    def write(
        self,
        restaurant_id: str,
        records: list[ParsedRecord[Order]],
        expected_version: int,
    ) -> int:
        """Rewrite the order log if it is still at ``expected_version``.

        Raises:
            ConcurrentModificationError: If the log changed since it was read
        """
        entries = [
            r.value.to_store_item() if isinstance(r, Valid) else r.raw for r in records
        ]
        return self.store.put_versioned(
            self.orders_key(restaurant_id), encode_record(entries), expected_version
        )

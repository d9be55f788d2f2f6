"""Key-value store adapters.

The ordering service keeps one serialized JSON record per key. Every record
carries a version number that increases on each write, so list rewrites can
be made conditional on nobody else having written in between.
"""

import logging
import threading
from abc import ABC, abstractmethod

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from menu_ordering_service.errors import ConcurrentModificationError, StorageError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract string-keyed record store.

    Values are opaque strings (serialized JSON). A key that was never written
    has version 0.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Write a value unconditionally."""

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys starting with ``prefix``."""

    @abstractmethod
    def get_versioned(self, key: str) -> tuple[str | None, int]:
        """Return the value together with its current version."""

    @abstractmethod
    def put_versioned(self, key: str, value: str, expected_version: int) -> int:
        """Write a value only if the key is still at ``expected_version``.

        Args:
            key: Record key
            value: Serialized record
            expected_version: Version read before the caller's modification

        Returns:
            int: The new version

        Raises:
            ConcurrentModificationError: If another write happened in between
        """


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store used for development and tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._records: dict[str, tuple[str, int]] = {}
        self._lock = threading.Lock()
        for key, value in (initial or {}).items():
            self._records[key] = (value, 1)

    def get(self, key: str) -> str | None:
        with self._lock:
            record = self._records.get(key)
        return record[0] if record else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            _, version = self._records.get(key, (None, 0))
            self._records[key] = (value, version + 1)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return [key for key in self._records if key.startswith(prefix)]

    def get_versioned(self, key: str) -> tuple[str | None, int]:
        with self._lock:
            value, version = self._records.get(key, (None, 0))
        return value, version

    def put_versioned(self, key: str, value: str, expected_version: int) -> int:
        with self._lock:
            _, version = self._records.get(key, (None, 0))
            if version != expected_version:
                raise ConcurrentModificationError(
                    f"Record {key!r} is at version {version}, expected {expected_version}"
                )
            self._records[key] = (value, version + 1)
            return version + 1


class DynamoDBKeyValueStore(KeyValueStore):
    """Store backed by a DynamoDB table with ``key`` as partition key.

    Items have the shape ``{"key": str, "value": str, "version": int}``.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize the store.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get(self, key: str) -> str | None:
        value, _ = self.get_versioned(key)
        return value

    def set(self, key: str, value: str) -> None:
        try:
            self.table.update_item(
                Key={"key": key},
                UpdateExpression="SET #value = :value ADD #version :one",
                ExpressionAttributeNames={"#value": "value", "#version": "version"},
                ExpressionAttributeValues={":value": value, ":one": 1},
            )
        except ClientError as e:
            logger.error(f"Failed to write record {key}: {e}")
            raise StorageError(f"Failed to write record {key}") from e

    def keys(self, prefix: str = "") -> list[str]:
        """List keys with a paginated scan filtered on the key prefix."""
        scan_kwargs: dict = {
            "ProjectionExpression": "#key",
            "ExpressionAttributeNames": {"#key": "key"},
        }
        if prefix:
            scan_kwargs["FilterExpression"] = Attr("key").begins_with(prefix)

        keys: list[str] = []
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                keys.extend(str(item["key"]) for item in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Failed to list records with prefix {prefix!r}: {e}")
            raise StorageError("Failed to list records") from e

        return keys

    def get_versioned(self, key: str) -> tuple[str | None, int]:
        try:
            response = self.table.get_item(Key={"key": key}, ConsistentRead=True)
        except ClientError as e:
            logger.error(f"Failed to read record {key}: {e}")
            raise StorageError(f"Failed to read record {key}") from e

        if "Item" not in response:
            return None, 0

        item = response["Item"]
        return str(item.get("value")), int(item.get("version", 0))  # type: ignore[arg-type]

    def put_versioned(self, key: str, value: str, expected_version: int) -> int:
        new_version = expected_version + 1
        put_kwargs: dict = {"Item": {"key": key, "value": value, "version": new_version}}
        if expected_version == 0:
            put_kwargs["ConditionExpression"] = "attribute_not_exists(#key)"
            put_kwargs["ExpressionAttributeNames"] = {"#key": "key"}
        else:
            put_kwargs["ConditionExpression"] = "#version = :expected"
            put_kwargs["ExpressionAttributeNames"] = {"#version": "version"}
            put_kwargs["ExpressionAttributeValues"] = {":expected": expected_version}

        try:
            self.table.put_item(**put_kwargs)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise ConcurrentModificationError(
                    f"Record {key!r} changed since version {expected_version}"
                ) from e
            logger.error(f"Failed to write record {key}: {e}")
            raise StorageError(f"Failed to write record {key}") from e

        return new_version

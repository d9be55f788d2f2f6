"""Exception hierarchy for the ordering service.

Services raise these for expected failures; the HTTP layer maps each one to a
status code and a user-facing message.
"""


class OrderingError(Exception):
    """Base class for all ordering service errors."""


class ValidationError(OrderingError):
    """Raised when form input is missing or invalid.

    Attributes:
        fields: Names of the offending fields, in the order they were checked
    """

    def __init__(self, fields: list[str], message: str | None = None) -> None:
        self.fields = list(fields)
        super().__init__(message or f"Missing or invalid fields: {', '.join(self.fields)}")


class NotFoundError(OrderingError):
    """Raised when a slug, restaurant, item or order does not exist."""


class EmptyCartError(OrderingError):
    """Raised when checkout is attempted with no cart lines."""

    def __init__(self) -> None:
        super().__init__("Your cart is empty")


class SlugConflictError(OrderingError):
    """Raised when a generated slug is already taken by another restaurant."""


class AlreadyRegisteredError(OrderingError):
    """Raised when a user who already owns a restaurant runs setup again."""


class StorageError(OrderingError):
    """Raised when the key-value store backend fails."""


class StorageParseError(OrderingError):
    """Raised when a persisted record is not valid serialized data."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        super().__init__(f"Record {key!r} could not be parsed: {reason}")


class ConcurrentModificationError(OrderingError):
    """Raised when a versioned write loses a race with another writer."""

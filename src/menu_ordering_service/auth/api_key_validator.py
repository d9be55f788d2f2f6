"""API key validation and operator identity for dashboard endpoints.

Authentication proper lives outside this service. Each configured API key is
bound to the id of the user it was issued to, and a valid key is all the
service needs to know who the operator is.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated operator."""

    id: str


def parse_operator_keys(raw: str) -> dict[str, str]:
    """Parse ``key:userId`` pairs separated by commas.

    Example:
        >>> parse_operator_keys("abc:user-1, def:user-2")
        {'abc': 'user-1', 'def': 'user-2'}

    Raises:
        ValueError: If a pair has no user id
    """
    keys: dict[str, str] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        key, sep, user_id = pair.partition(":")
        if not sep or not key.strip() or not user_id.strip():
            raise ValueError(f"Operator API key entry {pair!r} must look like key:userId")
        keys[key.strip()] = user_id.strip()
    return keys


class APIKeyValidator:
    """Validates operator API keys and resolves them to user identities."""

    def __init__(self, api_keys: dict[str, str]) -> None:
        """Initialize validator with a mapping of API key to user id.

        Args:
            api_keys: Valid API keys and the user each one belongs to

        Raises:
            ValueError: If api_keys is empty
        """
        if not api_keys:
            raise ValueError("At least one API key must be provided")

        self.api_keys = dict(api_keys)

    def identify(self, api_key: str) -> CurrentUser | None:
        """Resolve an API key to its operator.

        Keys match exactly, without trimming or case folding.

        Returns:
            CurrentUser if the key is valid, None otherwise
        """
        user_id = self.api_keys.get(api_key)
        return CurrentUser(id=user_id) if user_id is not None else None

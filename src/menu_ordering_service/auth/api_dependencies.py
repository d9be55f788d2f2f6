"""FastAPI dependencies for operator authentication."""

from typing import Annotated

from fastapi import Header, HTTPException

from menu_ordering_service.auth.api_key_validator import APIKeyValidator, CurrentUser


def get_current_user_from_header(
    x_api_key: Annotated[str | None, Header()] = None,
    validator: APIKeyValidator | None = None,
) -> CurrentUser:
    """Resolve the X-API-Key header to the operator it was issued to.

    Args:
        x_api_key: API key from X-API-Key header (injected by FastAPI)
        validator: APIKeyValidator holding the configured keys

    Returns:
        CurrentUser: The authenticated operator

    Raises:
        HTTPException: 401 if the API key is missing or invalid
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    user = validator.identify(x_api_key) if validator else None
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid API key")

    return user

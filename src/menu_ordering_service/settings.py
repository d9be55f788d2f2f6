"""Environment-driven settings shared by the server and Lambda entry points."""

import logging
import os
from typing import Any

import boto3

from menu_ordering_service.auth.api_key_validator import parse_operator_keys

logger = logging.getLogger(__name__)

DEVELOPMENT_OPERATOR_KEYS = {"dummy-key-for-development": "dev-user"}


def env_flag(name: str, default: bool) -> bool:
    """Read a true/false environment variable."""
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes")


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    # Check for local DynamoDB endpoint (for development)
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )

    logger.info(f"Using AWS DynamoDB in region {region}")
    # Production - boto3 will use default credential chain (IAM role, env vars, etc.)
    return boto3.resource("dynamodb", region_name=region)


def get_operator_keys() -> dict[str, str]:
    """Read OPERATOR_API_KEYS, falling back to a development key.

    Raises:
        ValueError: If an entry is not a key:userId pair
    """
    api_keys = parse_operator_keys(os.getenv("OPERATOR_API_KEYS", ""))
    if not api_keys:
        logger.warning("No OPERATOR_API_KEYS configured - using development key")
        api_keys = dict(DEVELOPMENT_OPERATOR_KEYS)
    return api_keys


def public_base_url() -> str:
    return os.getenv("PUBLIC_BASE_URL", "http://localhost:8001")


def order_write_attempts() -> int:
    return int(os.getenv("ORDER_WRITE_ATTEMPTS", "3"))


def cart_session_limit() -> int:
    return int(os.getenv("CART_SESSION_LIMIT", "10000"))


def cart_idle_seconds() -> float:
    return float(os.getenv("CART_IDLE_SECONDS", "7200"))

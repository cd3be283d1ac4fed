"""
DynamoDB client initialization.

This module contains *only* the store connection setup. It does not read the
environment: callers pass a `DynamoDBSettings` value built once at process
entry (see `api.settings`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DynamoDBSettings:
    """Connection settings for the chargeback table."""

    region: str = "us-east-1"
    table_name: str = "chargebacks"
    endpoint: Optional[str] = None  # DynamoDB Local, e.g. http://localhost:8000
    timeout_seconds: float = 5.0


def create_dynamodb_client(settings: DynamoDBSettings) -> Any:
    """
    Build a low-level DynamoDB client.

    Every call made through the client is bounded by `timeout_seconds` for
    both connecting and reading. Automatic retries are disabled; retry policy
    belongs to whatever operates the service.
    """

    config = Config(
        region_name=settings.region,
        connect_timeout=settings.timeout_seconds,
        read_timeout=settings.timeout_seconds,
        retries={"total_max_attempts": 1, "mode": "standard"},
    )

    kwargs: dict[str, Any] = {"config": config}
    if settings.endpoint:
        kwargs["endpoint_url"] = settings.endpoint

    return boto3.client("dynamodb", **kwargs)


def verify_table_access(client: Any, table_name: str) -> None:
    """
    Check that the table exists and is reachable with the current credentials.

    Raises:
        RuntimeError: If DescribeTable fails for any reason
    """

    logger.info("Testing DynamoDB connection table_name=%s", table_name)
    try:
        client.describe_table(TableName=table_name)
    except (ClientError, BotoCoreError) as exc:
        logger.error("DynamoDB connection test failed table_name=%s error=%s", table_name, exc)
        raise RuntimeError(f"table '{table_name}' not accessible: {exc}") from exc

    logger.info("DynamoDB connection test successful table_name=%s", table_name)


__all__ = ["DynamoDBSettings", "create_dynamodb_client", "verify_table_access"]

"""
Application settings.

Settings are read from the environment exactly once, at process entry, and
passed explicitly to the components that need them. Nothing below the API
layer reads environment variables.

Environment variables (all optional):
- PORT, HOST: HTTP bind address (default 0.0.0.0:8080)
- AWS_REGION: DynamoDB region (default us-east-1)
- DYNAMODB_ENDPOINT: endpoint override, e.g. DynamoDB Local
- DYNAMODB_TABLE: table name (default chargebacks; CHARGEBACK_TABLE_NAME also accepted)
- DYNAMODB_TIMEOUT_SECONDS: per-call connect/read timeout (default 5)
- CHARGEBACK_STORE: "dynamodb" (default) or "memory"
- LOG_LEVEL: logging level (default INFO)
- APP_VERSION: version reported by /health
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from api import __version__
from repositories.client import DynamoDBSettings

logger = logging.getLogger(__name__)

SERVICE_NAME = "chargeback-api"
STORE_DYNAMODB = "dynamodb"
STORE_MEMORY = "memory"
_STORES = {STORE_DYNAMODB, STORE_MEMORY}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@dataclass(frozen=True, slots=True)
class Settings:
    port: int = 8080
    host: str = "0.0.0.0"
    dynamodb: DynamoDBSettings = field(default_factory=DynamoDBSettings)
    store: str = STORE_DYNAMODB
    log_level: str = "INFO"
    service_name: str = SERVICE_NAME
    version: str = __version__


def _get(env: Mapping[str, str], key: str, default: str = "") -> str:
    value = env.get(key, "")
    return value.strip() if value and value.strip() else default


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    When `env` is omitted, a `.env` file next to the project root is loaded
    first and then `os.environ` is used.

    Raises:
        ValueError: A numeric variable cannot be parsed
    """

    if env is None:
        load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")
        env = os.environ

    try:
        port = int(_get(env, "PORT", "8080"))
        timeout = float(_get(env, "DYNAMODB_TIMEOUT_SECONDS", "5"))
    except ValueError as exc:
        raise ValueError(f"invalid numeric setting: {exc}") from exc

    table = _get(env, "DYNAMODB_TABLE") or _get(env, "CHARGEBACK_TABLE_NAME", "chargebacks")

    return Settings(
        port=port,
        host=_get(env, "HOST", "0.0.0.0"),
        dynamodb=DynamoDBSettings(
            region=_get(env, "AWS_REGION", "us-east-1"),
            table_name=table,
            endpoint=_get(env, "DYNAMODB_ENDPOINT") or None,
            timeout_seconds=timeout,
        ),
        store=_get(env, "CHARGEBACK_STORE", STORE_DYNAMODB).lower(),
        log_level=_get(env, "LOG_LEVEL", "INFO").upper(),
        version=_get(env, "APP_VERSION", __version__),
    )


def validate_settings(settings: Settings, env: Optional[Mapping[str, str]] = None) -> None:
    """
    Reject settings the service cannot start with.

    Raises:
        ValueError: Describing the first invalid setting
    """

    if not 0 < settings.port < 65536:
        raise ValueError("port must be between 1 and 65535")
    if settings.store not in _STORES:
        raise ValueError(
            f"CHARGEBACK_STORE must be one of {sorted(_STORES)}, got '{settings.store}'"
        )
    if settings.store == STORE_DYNAMODB:
        if not settings.dynamodb.region:
            raise ValueError("AWS region is required")
        if not settings.dynamodb.table_name:
            raise ValueError("DynamoDB table name is required")
        if settings.dynamodb.timeout_seconds <= 0:
            raise ValueError("DYNAMODB_TIMEOUT_SECONDS must be positive")

        env = os.environ if env is None else env
        if not settings.dynamodb.endpoint and not (
            env.get("AWS_ACCESS_KEY_ID") or env.get("AWS_PROFILE")
        ):
            logger.warning(
                "No explicit AWS credentials found; relying on IAM roles or instance profile"
            )


def configure_logging(level: str) -> None:
    """Install a single stream handler on the root logger."""

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT, force=True)


__all__ = [
    "Settings",
    "load_settings",
    "validate_settings",
    "configure_logging",
    "SERVICE_NAME",
    "STORE_DYNAMODB",
    "STORE_MEMORY",
]

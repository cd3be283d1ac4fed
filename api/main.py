"""
Chargeback API - Main Application.

`create_app` wires settings, repository, service and routers together.
`create_app_from_env` reads settings from the environment and is the uvicorn
factory; tests call `create_app` with an explicit repository.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import HealthResponse
from api.settings import (
    STORE_MEMORY,
    Settings,
    configure_logging,
    load_settings,
    validate_settings,
)
from repositories.chargeback_repository import ChargebackRepository
from repositories.client import create_dynamodb_client, verify_table_access
from repositories.dynamodb_chargeback_repository import DynamoDBChargebackRepository
from repositories.memory_chargeback_repository import InMemoryChargebackRepository
from services.chargeback_service import ChargebackService

logger = logging.getLogger(__name__)


def build_repository(settings: Settings) -> ChargebackRepository:
    """
    Build the repository selected by settings.

    For DynamoDB the table is checked with DescribeTable first; an unreachable
    table aborts startup.
    """
    if settings.store == STORE_MEMORY:
        logger.warning("Using in-memory chargeback store; data is lost on restart")
        return InMemoryChargebackRepository()

    client = create_dynamodb_client(settings.dynamodb)
    verify_table_access(client, settings.dynamodb.table_name)
    return DynamoDBChargebackRepository(client, settings.dynamodb.table_name)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()))
        problems.append(f"{field}: {error.get('msg', 'invalid value')}")
    return JSONResponse(status_code=400, content={"error": "; ".join(problems)})


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[ChargebackRepository] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Application settings (default: loaded from the environment)
        repository: Repository to use instead of the one selected by settings

    Raises:
        ValueError: Settings are invalid
        RuntimeError: The DynamoDB table is not accessible
    """
    if settings is None:
        settings = load_settings()
    validate_settings(settings)

    logger.info(
        "Application starting service=%s version=%s store=%s aws_region=%s dynamodb_table=%s",
        settings.service_name,
        settings.version,
        settings.store,
        settings.dynamodb.region,
        settings.dynamodb.table_name,
    )

    if repository is None:
        repository = build_repository(settings)

    app = FastAPI(
        title="Chargeback API",
        description="REST API for opening and reviewing chargeback disputes",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.chargeback_service = ChargebackService(repository)

    # Allow all origins; the service sits behind an internal gateway.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version. Does not touch the store.
        """
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc),
            service=settings.service_name,
            version=settings.version,
        )

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Chargeback API",
            "version": settings.version,
            "docs": "/docs",
            "health": "/health"
        }

    # Import and include routers
    from api.routers import chargebacks

    app.include_router(chargebacks.router, tags=["Chargebacks"])

    return app


def create_app_from_env() -> FastAPI:
    """Factory for `uvicorn api.main:create_app_from_env --factory`."""
    settings = load_settings()
    configure_logging(settings.log_level)
    return create_app(settings)

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the LRS metrics API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.api.dependencies import ServiceContainer, build_container
from src.api.middleware import CorrelationIdMiddleware
from src.api.routes import health, metrics
from src.api.v1 import router as v1_router
from src.core.config import Settings, get_settings
from src.core.errors import (
    InstanceNotFoundError,
    LRSError,
    MetricNotFoundError,
    MetricValidationError,
)
from src.core.resilience import UNAVAILABLE_CAUSE, UNAVAILABLE_MESSAGE
from src.infrastructure.lrs import QueryFilterError
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the ServiceContainer on startup unless one was injected through
    create_app(), and releases its connections on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info(
        "Starting LRS metrics API",
        extra={"environment": settings.environment, "debug": settings.debug},
    )

    # =========================================================================
    # Startup
    # =========================================================================
    owned = app.state.container is None
    if owned:
        app.state.container = await build_container(settings)
        logger.info("Service container initialized")

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================
    container: ServiceContainer = app.state.container
    if owned:
        try:
            await container.close()
            logger.info("Connections closed")
        except (OSError, RuntimeError) as e:
            logger.warning("Error closing connections: %s", str(e))
        app.state.container = None

    logger.info("Shutting down LRS metrics API")


# =========================================================================
# Exception handlers
# =========================================================================


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    **extra: object,
) -> JSONResponse:
    body = {"detail": {"error": error, "message": message, **extra}}
    return JSONResponse(status_code=status_code, content=body)


async def metric_validation_handler(
    request: Request, exc: MetricValidationError
) -> JSONResponse:
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "validation_error",
        "Invalid metric parameters",
        fields=exc.errors,
    )


async def bad_request_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(request, status.HTTP_400_BAD_REQUEST, "bad_request", str(exc))


async def metric_not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(request, status.HTTP_404_NOT_FOUND, "not_found", str(exc))


async def lrs_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Raw LRS error text stays in the logs
    logger.warning(
        "LRS failure surfaced to client: %s (correlation_id=%s)",
        exc,
        getattr(request.state, "correlation_id", None),
    )
    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "service_unavailable",
        UNAVAILABLE_MESSAGE,
        cause=UNAVAILABLE_CAUSE,
    )


def create_app(
    settings: Settings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a new FastAPI instance with all
    middleware, routes, and configurations applied.

    Args:
        settings: Application settings (default: get_settings()).
        container: Prebuilt services. When given, the lifespan neither
            creates nor closes connections.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or (container.settings if container else get_settings())
    setup_logging(settings)

    app = FastAPI(
        title="LRS Metrics API",
        description="Learning analytics metrics computed from xAPI statements",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    # =========================================================================
    # State
    # =========================================================================
    app.state.settings = settings
    app.state.container = container

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(MetricValidationError, metric_validation_handler)
    app.add_exception_handler(InstanceNotFoundError, bad_request_handler)
    app.add_exception_handler(QueryFilterError, bad_request_handler)
    app.add_exception_handler(MetricNotFoundError, metric_not_found_handler)
    app.add_exception_handler(LRSError, lrs_error_handler)

    # =========================================================================
    # Middleware
    # =========================================================================
    app.add_middleware(CorrelationIdMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(metrics.router, tags=["Prometheus"])
    app.include_router(v1_router)

    return app

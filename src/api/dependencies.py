# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides the ServiceContainer that the application lifespan
builds once at startup, and the dependency functions endpoints use to reach
its services.

Example:
    @router.get("/metrics/{metric_id}/results")
    async def get_result(
        metric_id: str,
        service: ComputationService = Depends(get_computation_service),
        ctx: RequestContext = Depends(get_request_context),
    ):
        ...
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Annotated

import httpx
from fastapi import Depends, HTTPException, Request, status

from src.core.config import Settings
from src.core.context import RequestContext, new_correlation_id
from src.core.resilience import CircuitBreakerRegistry, FallbackHandler
from src.domains.metrics import (
    CacheAdminService,
    ComputationService,
    InstancesService,
    MetricRegistry,
    default_registry,
)
from src.infrastructure.cache import CacheService, RedisClient
from src.infrastructure.lrs import LRSClient
from src.infrastructure.telemetry import ServiceMetrics

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Every long-lived component of the service, wired together.

    Attributes:
        settings: Application settings.
        metrics: Prometheus instruments.
        redis: Redis connection owner, None when the cache is injected.
        cache: Result cache.
        clients: One LRS client per instance, in configuration order.
        breakers: Circuit breakers keyed by instance id.
        registry: Metric providers.
        computation: Metric serving orchestrator.
        instances: Instance listing service.
        cache_admin: Cache invalidation service.
        http_client: Shared HTTP client of the LRS clients.
        started_at: Monotonic start time, for uptime.
    """

    settings: Settings
    metrics: ServiceMetrics
    redis: RedisClient | None
    cache: CacheService
    clients: dict[str, LRSClient]
    breakers: CircuitBreakerRegistry
    registry: MetricRegistry
    computation: ComputationService
    instances: InstancesService
    cache_admin: CacheAdminService
    http_client: httpx.AsyncClient | None = None
    started_at: float = field(default_factory=time.monotonic)

    async def close(self) -> None:
        """Release HTTP and Redis connections."""
        for client in self.clients.values():
            await client.close()
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.redis is not None:
            await self.redis.close()


def wire_services(
    settings: Settings,
    cache: CacheService,
    clients: dict[str, LRSClient],
    metrics: ServiceMetrics,
    registry: MetricRegistry | None = None,
    redis: RedisClient | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ServiceContainer:
    """Compose the domain services from their infrastructure.

    Args:
        settings: Application settings.
        cache: Result cache.
        clients: LRS clients keyed by instance id.
        metrics: Prometheus instruments.
        registry: Metric providers (default: the built-in providers).
        redis: Redis connection owner to close on shutdown.
        http_client: Shared HTTP client to close on shutdown.

    Returns:
        The assembled container.
    """
    registry = registry or default_registry()
    breakers = CircuitBreakerRegistry(settings.circuit_breaker, metrics=metrics)
    fallback = FallbackHandler(settings.degradation, metrics=metrics)
    computation = ComputationService(
        registry,
        cache,
        clients,
        breakers,
        fallback,
        settings.cache,
        metrics=metrics,
    )
    return ServiceContainer(
        settings=settings,
        metrics=metrics,
        redis=redis,
        cache=cache,
        clients=clients,
        breakers=breakers,
        registry=registry,
        computation=computation,
        instances=InstancesService(clients),
        cache_admin=CacheAdminService(cache),
        http_client=http_client,
    )


async def build_container(settings: Settings) -> ServiceContainer:
    """Create connections and services from settings.

    An unreachable Redis does not stop startup: the cache absorbs failures
    and results are computed without caching until Redis is back.

    Raises:
        LRSConfigError: If no valid LRS instance is configured.
    """
    instances = settings.lrs.resolve_instances()
    metrics = ServiceMetrics()

    redis = RedisClient(settings.redis)
    if await redis.connect():
        logger.info("Redis connection initialized")
    else:
        logger.warning("Redis unreachable at startup; serving without cache")
    cache = CacheService(redis.redis, settings.cache, metrics=metrics)

    http_client = httpx.AsyncClient()
    clients = {
        instance.id: LRSClient(
            instance,
            max_retries=settings.lrs.max_retries,
            max_statements=settings.lrs.max_statements,
            page_limit=settings.lrs.page_limit,
            http_client=http_client,
            metrics=metrics,
        )
        for instance in instances
    }
    logger.info("Configured %d LRS instance(s): %s", len(clients), ", ".join(clients))

    return wire_services(
        settings,
        cache,
        clients,
        metrics,
        redis=redis,
        http_client=http_client,
    )


# =========================================================================
# Request Dependencies
# =========================================================================


def get_container(request: Request) -> ServiceContainer:
    """Get the service container built by the lifespan.

    Raises:
        HTTPException: 503 if the application has not finished starting.
    """
    container: ServiceContainer | None = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return container


def get_request_context(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> RequestContext:
    """Build the RequestContext from the correlation middleware's state."""
    correlation_id = getattr(request.state, "correlation_id", None) or new_correlation_id()
    return RequestContext(
        correlation_id=correlation_id,
        deadline_s=container.settings.api.request_timeout_s,
    )


def get_computation_service(
    container: ServiceContainer = Depends(get_container),
) -> ComputationService:
    return container.computation


def get_instances_service(
    container: ServiceContainer = Depends(get_container),
) -> InstancesService:
    return container.instances


def get_cache_admin(
    container: ServiceContainer = Depends(get_container),
) -> CacheAdminService:
    return container.cache_admin


def get_metric_registry(
    container: ServiceContainer = Depends(get_container),
) -> MetricRegistry:
    return container.registry


# Type aliases for cleaner endpoint signatures
Container = Annotated[ServiceContainer, Depends(get_container)]
Context = Annotated[RequestContext, Depends(get_request_context)]
Computation = Annotated[ComputationService, Depends(get_computation_service)]
Instances = Annotated[InstancesService, Depends(get_instances_service)]
CacheAdmin = Annotated[CacheAdminService, Depends(get_cache_admin)]
Registry = Annotated[MetricRegistry, Depends(get_metric_registry)]

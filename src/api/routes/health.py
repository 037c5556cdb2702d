# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoints.

This module provides health, liveness and readiness endpoints for the API.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src.api.dependencies import Container, Context

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = "1.0.0"


class ComponentHealth(BaseModel):
    """Individual component health status."""
    status: str = Field(description="Component status")
    latency_ms: float | None = Field(None, description="Response latency in ms")
    message: str | None = Field(None, description="Additional status message")


class LRSInstanceHealth(BaseModel):
    """LRS instance health with its circuit breaker state."""
    status: str = Field(description="healthy or unavailable")
    latency_ms: float | None = Field(None, description="Probe latency in ms")
    version: str | None = Field(None, description="xAPI version reported by the LRS")
    circuit: str = Field(description="Circuit breaker state")
    retry_in_ms: int | None = Field(None, description="Remaining cooldown while open")


class ComponentsHealth(BaseModel):
    """All components health status."""
    redis: ComponentHealth | None = None
    lrs: dict[str, LRSInstanceHealth] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(description="Overall health status")
    service: str = Field(description="Service name")
    timestamp: datetime = Field(description="Current server timestamp")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    components: ComponentsHealth = Field(default_factory=ComponentsHealth)


class ReadinessResponse(BaseModel):
    """Readiness check response model."""
    ready: bool = Field(description="Whether the service is ready")
    checks: dict[str, Any] = Field(description="Individual check results")


async def check_redis(container: Container) -> ComponentHealth:
    """Check the result cache's Redis connection."""
    start = time.perf_counter()
    healthy = await container.cache.is_healthy()
    latency = (time.perf_counter() - start) * 1000
    if healthy:
        return ComponentHealth(status="healthy", latency_ms=round(latency, 2))
    return ComponentHealth(status="unhealthy", message="Redis unreachable")


async def check_lrs(container: Container, ctx: Context) -> dict[str, LRSInstanceHealth]:
    """Probe every LRS instance and attach its circuit state."""
    listing = await container.instances.list_instances(ctx)
    circuits = container.breakers.snapshots()

    result: dict[str, LRSInstanceHealth] = {}
    for instance in listing.instances:
        snapshot = circuits.get(instance.id)
        result[instance.id] = LRSInstanceHealth(
            status=instance.status,
            latency_ms=instance.response_time_ms,
            version=instance.version,
            circuit=snapshot.state.value if snapshot else "closed",
            retry_in_ms=snapshot.retry_in_ms if snapshot else None,
        )
    return result


@router.get("/health", response_model=HealthResponse)
async def health_check(container: Container, ctx: Context) -> HealthResponse:
    """Check if the API is healthy with component details.

    The service is ``healthy`` when Redis and every LRS instance are,
    ``unhealthy`` when no LRS instance is reachable, and ``degraded``
    otherwise: results may then be stale or unavailable.

    Returns:
        HealthResponse with detailed status.
    """
    settings = container.settings
    now = datetime.now(timezone.utc)
    uptime = int(time.monotonic() - container.started_at)

    redis_health = await check_redis(container)
    lrs_health = await check_lrs(container, ctx)

    lrs_statuses = [i.status for i in lrs_health.values()]
    if redis_health.status == "healthy" and all(s == "healthy" for s in lrs_statuses):
        overall_status = "healthy"
    elif not any(s == "healthy" for s in lrs_statuses):
        overall_status = "unhealthy"
    else:
        overall_status = "degraded"

    if overall_status != "healthy":
        logger.warning("Health check reports %s", overall_status)

    return HealthResponse(
        status=overall_status,
        service=settings.service_name,
        timestamp=now,
        version=API_VERSION,
        environment=settings.environment,
        uptime_seconds=uptime,
        components=ComponentsHealth(redis=redis_health, lrs=lrs_health),
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Report that the process is running."""
    return {"status": "alive"}


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(container: Container, ctx: Context) -> ReadinessResponse:
    """Check if the API is ready to accept traffic.

    Ready when Redis answers and at least one LRS instance is reachable.

    Returns:
        ReadinessResponse with individual check results.
    """
    checks: dict[str, Any] = {}

    redis_health = await check_redis(container)
    checks["redis"] = {"status": redis_health.status, "latency_ms": redis_health.latency_ms}

    lrs_health = await check_lrs(container, ctx)
    checks["lrs"] = {
        instance_id: {"status": health.status, "circuit": health.circuit}
        for instance_id, health in lrs_health.items()
    }

    ready = redis_health.status == "healthy" and any(
        health.status == "healthy" for health in lrs_health.values()
    )
    return ReadinessResponse(ready=ready, checks=checks)

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Metrics API endpoints.

This module provides endpoints for dashboard metrics:
- GET / - List the metrics catalog
- GET /{metric_id} - Describe one metric
- GET /{metric_id}/results - Compute or fetch a metric result

A result is always returned with HTTP 200 once the request is valid; callers
branch on its ``status`` (fresh, degraded, unavailable).

Example:
    GET /api/v1/metrics/topic-total-score/results?userId=u1&courseId=c1&topicId=t1
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from src.api.dependencies import Computation, Context, Registry
from src.domains.metrics import (
    DashboardLevel,
    MetricCatalogItem,
    MetricParams,
    MetricResponse,
    MetricsCatalogResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=MetricsCatalogResponse,
    response_model_by_alias=True,
    summary="List available metrics",
)
async def list_metrics(
    registry: Registry,
    level: Annotated[
        DashboardLevel | None,
        Query(alias="dashboardLevel", description="Only metrics of this dashboard level"),
    ] = None,
) -> MetricsCatalogResponse:
    """List the metrics catalog.

    Returns:
        Every registered metric with its parameters and output type.
    """
    items = [MetricCatalogItem.model_validate(entry) for entry in registry.catalog(level)]
    return MetricsCatalogResponse(metrics=items, count=len(items))


@router.get(
    "/{metric_id}",
    response_model=MetricCatalogItem,
    response_model_by_alias=True,
    summary="Describe a metric",
)
async def get_metric(metric_id: str, registry: Registry) -> MetricCatalogItem:
    """Get one catalog entry.

    Raises:
        MetricNotFoundError: Mapped to 404.
    """
    return MetricCatalogItem.model_validate(registry.get(metric_id).describe())


@router.get(
    "/{metric_id}/results",
    response_model=MetricResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Get a metric result",
)
async def get_metric_results(
    metric_id: str,
    service: Computation,
    ctx: Context,
    user_id: Annotated[str | None, Query(alias="userId")] = None,
    course_id: Annotated[str | None, Query(alias="courseId")] = None,
    topic_id: Annotated[str | None, Query(alias="topicId")] = None,
    element_id: Annotated[str | None, Query(alias="elementId")] = None,
    group_id: Annotated[str | None, Query(alias="groupId")] = None,
    since: Annotated[str | None, Query(description="ISO-8601 lower bound")] = None,
    until: Annotated[str | None, Query(description="ISO-8601 upper bound")] = None,
    instance_id: Annotated[str | None, Query(alias="instanceId")] = None,
) -> MetricResponse:
    """Compute a metric, or serve it from cache.

    Raises:
        MetricNotFoundError: Mapped to 404.
        MetricValidationError: Mapped to 400.
        InstanceNotFoundError: Mapped to 400.
    """
    params = MetricParams(
        user_id=user_id,
        course_id=course_id,
        topic_id=topic_id,
        element_id=element_id,
        group_id=group_id,
        since=since,
        until=until,
        instance_id=instance_id,
    )
    response = await service.compute_metric(metric_id, params, ctx)
    if response.status != "fresh":
        logger.info(
            "Metric %s served as %s (correlation_id=%s)",
            metric_id,
            response.status,
            ctx.correlation_id,
        )
    return response

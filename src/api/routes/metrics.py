# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prometheus metrics endpoint.

Exposes the service's instruments in Prometheus format for scraping.
"""

import logging

from fastapi import APIRouter, Response

from src.api.dependencies import Container

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Get application metrics in Prometheus format.",
    responses={
        200: {
            "description": "Prometheus metrics",
            "content": {"text/plain": {}},
        },
    },
)
async def get_metrics(container: Container) -> Response:
    """Get Prometheus metrics.

    Returns metrics collected by the application including:
    - Result cache hits, misses and evictions
    - LRS query durations, errors and retries
    - Circuit breaker states and transitions
    - Graceful degradation outcomes

    Returns:
        Response with Prometheus format metrics.
    """
    return Response(
        content=container.metrics.render(),
        media_type=container.metrics.content_type,
    )

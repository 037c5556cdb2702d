# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Administrative endpoints.

- POST /cache/invalidate - Invalidate cached results
- POST /circuits/reset - Close every LRS circuit breaker

Example:
    POST /api/v1/admin/cache/invalidate
    {"metricId": "course-completion"}
"""

import logging

from fastapi import APIRouter, status

from src.api.dependencies import CacheAdmin, Container, Context
from src.domains.metrics import CacheInvalidateRequest, CacheInvalidateResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/cache/invalidate",
    response_model=CacheInvalidateResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Invalidate cached results",
)
async def invalidate_cache(
    request: CacheInvalidateRequest,
    service: CacheAdmin,
    ctx: Context,
) -> CacheInvalidateResponse:
    """Delete cache entries by key, pattern, everything, or key components."""
    result = await service.invalidate(request, ctx)
    logger.info(
        "Cache invalidation removed %d entries (correlation_id=%s)",
        result.invalidated_count,
        ctx.correlation_id,
    )
    return result


@router.post(
    "/circuits/reset",
    status_code=status.HTTP_200_OK,
    summary="Reset circuit breakers",
)
async def reset_circuits(container: Container) -> dict[str, list[str]]:
    """Force every LRS circuit breaker closed."""
    await container.breakers.reset_all()
    names = sorted(container.breakers.snapshots())
    logger.info("Reset %d circuit breaker(s)", len(names))
    return {"reset": names}

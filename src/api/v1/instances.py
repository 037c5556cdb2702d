# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LRS instances API endpoints.

- GET / - List configured LRS instances with their health
"""

import logging

from fastapi import APIRouter

from src.api.dependencies import Context, Instances
from src.domains.metrics import InstancesResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=InstancesResponse,
    response_model_by_alias=True,
    summary="List LRS instances",
)
async def list_instances(service: Instances, ctx: Context) -> InstancesResponse:
    """List every configured instance, probed concurrently.

    Credentials and endpoints are never included.
    """
    return await service.list_instances(ctx)

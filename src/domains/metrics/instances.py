# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LRS instance listing with health status."""

import asyncio
from collections.abc import Mapping

from src.core.context import RequestContext
from src.domains.metrics.schemas import InstanceResponse, InstancesResponse
from src.infrastructure.lrs.client import LRSClient
from src.infrastructure.lrs.models import InstanceHealth
from src.utils.logging import get_logger

logger = get_logger(__name__)


class InstancesService:
    """Reports every configured LRS instance with a live health probe."""

    def __init__(self, clients: Mapping[str, LRSClient]) -> None:
        self._clients = dict(clients)

    async def list_instances(self, context: RequestContext | None = None) -> InstancesResponse:
        """Probe all instances concurrently.

        Probes never raise, so one unreachable store does not hide the
        others. Instances keep their configuration order.
        """
        ctx = context or RequestContext()
        clients = list(self._clients.values())
        results = await asyncio.gather(
            *(client.get_instance_health(ctx) for client in clients)
        )

        instances = [
            self._to_response(client, health)
            for client, health in zip(clients, results, strict=True)
        ]
        unhealthy = [i.id for i in instances if i.status != "healthy"]
        if unhealthy:
            logger.warning("lrs_instances_unhealthy", instances=unhealthy, **ctx.log_fields())
        return InstancesResponse(instances=instances)

    @staticmethod
    def _to_response(client: LRSClient, health: InstanceHealth) -> InstanceResponse:
        return InstanceResponse(
            id=client.instance_id,
            name=client.instance.name,
            status="healthy" if health.healthy else "unavailable",
            response_time_ms=health.response_time_ms,
            version=health.version,
        )

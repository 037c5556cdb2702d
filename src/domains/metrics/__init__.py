# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Metrics domain.

This package turns xAPI statements into dashboard metrics:
- Provider contract, registry and the built-in course, topic and element
  providers
- Statement scoping and best-attempt selection
- ComputationService: cache-aside serving with circuit breaking and
  stale-data fallback
- Instance listing and administrative cache invalidation

Usage:
    from src.domains.metrics import ComputationService, MetricParams, default_registry

    service = ComputationService(
        default_registry(), cache, clients, breakers, fallback, settings.cache
    )
    response = await service.compute_metric(
        "topic-total-score",
        MetricParams(user_id="u1", course_id="c1", topic_id="t1"),
        ctx,
    )
"""

from src.domains.metrics.cache_admin import CacheAdminService
from src.domains.metrics.contract import (
    DashboardLevel,
    MetricParams,
    MetricProvider,
    MetricResult,
    ValidationResult,
)
from src.domains.metrics.instances import InstancesService
from src.domains.metrics.providers import BUILTIN_PROVIDERS, default_registry
from src.domains.metrics.registry import MetricRegistry
from src.domains.metrics.schemas import (
    CacheInvalidateRequest,
    CacheInvalidateResponse,
    InstanceResponse,
    InstancesResponse,
    MetricCatalogItem,
    MetricResponse,
    MetricsCatalogResponse,
)
from src.domains.metrics.service import ComputationService

__all__ = [
    # Services
    "ComputationService",
    "InstancesService",
    "CacheAdminService",
    # Contract
    "DashboardLevel",
    "MetricParams",
    "MetricProvider",
    "MetricResult",
    "ValidationResult",
    "MetricRegistry",
    "BUILTIN_PROVIDERS",
    "default_registry",
    # Schemas
    "MetricResponse",
    "MetricCatalogItem",
    "MetricsCatalogResponse",
    "InstanceResponse",
    "InstancesResponse",
    "CacheInvalidateRequest",
    "CacheInvalidateResponse",
]

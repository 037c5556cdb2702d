# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.
Each module provides a FastAPI router for a specific area.

Modules:
    metrics: Metrics catalog and results.
    instances: Configured LRS instances and their health.
    admin: Cache invalidation and circuit breaker reset.
"""

from fastapi import APIRouter

from src.api.v1 import admin, instances, metrics

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
router.include_router(instances.router, prefix="/instances", tags=["Instances"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])

__all__ = ["router"]

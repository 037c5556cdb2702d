# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Metrics API schemas.

Request and response bodies of the metrics, instances and admin endpoints.
Field names are snake_case in Python and camelCase on the wire.

A metric result always comes back with HTTP 200. Callers branch on
``status``:

- fresh: computed now or served from an unexpired cache entry
- degraded: the LRS is unavailable, a stale cached value is served
- unavailable: the LRS is unavailable and nothing is cached; value is null
"""

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator
from pydantic.alias_generators import to_camel

ResultStatus = Literal["fresh", "degraded", "unavailable"]

_PATTERN_CHARS = re.compile(r"^[A-Za-z0-9:*?\[\]%=,._-]+$")


class CamelModel(BaseModel):
    """Base for wire models with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """JSON-compatible dict with wire names, unset optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MetricResponse(CamelModel):
    """Result of one metric request."""

    metric_id: str = Field(description="Metric identifier")
    value: Any = Field(default=None, description="Scalar, array or null")
    timestamp: str = Field(description="When the value was computed (ISO-8601)")
    computation_time: int = Field(default=0, description="Request handling time in ms")
    from_cache: bool = Field(default=False, description="Served from cache")
    status: ResultStatus = Field(default="fresh", description="fresh, degraded or unavailable")
    metadata: dict[str, Any] | None = Field(default=None, description="Supporting figures")
    instance_id: str | None = Field(default=None, description="LRS instance the data came from")
    warning: str | None = Field(default=None, description="Set when stale data is served")
    error: str | None = Field(default=None, description="User-safe message when unavailable")
    cause: str | None = Field(default=None, description="Machine-readable unavailability cause")
    age: int | None = Field(default=None, description="Age of stale data in seconds")
    cached_at: str | None = Field(default=None, description="When stale data was cached")
    data_available: bool | None = Field(default=None, description="False when value is null")

    @model_serializer(mode="wrap")
    def _keep_value(self, handler: Any) -> dict[str, Any]:
        # value is part of every result, null included
        data = handler(self)
        data.setdefault("value", None)
        return data


class MetricCatalogItem(CamelModel):
    id: str
    dashboard_level: str
    title: str
    description: str
    version: str
    required_params: list[str]
    optional_params: list[str]
    output_type: str
    example: dict[str, Any] | None = None


class MetricsCatalogResponse(CamelModel):
    metrics: list[MetricCatalogItem]
    count: int


class InstanceResponse(CamelModel):
    id: str = Field(description="Instance identifier", examples=["hs-ke"])
    name: str = Field(description="Human-readable name")
    status: Literal["healthy", "unavailable"] = Field(description="Health status")
    response_time_ms: float | None = Field(default=None, description="Health probe round trip")
    version: str | None = Field(default=None, description="xAPI version reported by the LRS")


class InstancesResponse(CamelModel):
    instances: list[InstanceResponse]


class CacheInvalidateRequest(CamelModel):
    """Cache invalidation request.

    Exactly one selector must be given: a single ``key``, a glob
    ``pattern``, ``all``, or any of ``metricId``/``instanceId``/``scope``
    from which a pattern is built.
    """

    key: str | None = Field(default=None, description="Single cache key")
    pattern: str | None = Field(default=None, description="Redis glob pattern")
    all: bool | None = Field(default=None, description="Invalidate every cache entry")
    metric_id: str | None = Field(default=None, description="Invalidate one metric")
    instance_id: str | None = Field(default=None, description="Invalidate one LRS instance")
    scope: str | None = Field(default=None, description="Invalidate one scope")

    @model_validator(mode="after")
    def _exactly_one_selector(self) -> "CacheInvalidateRequest":
        selectors = [
            self.key is not None,
            self.pattern is not None,
            bool(self.all),
            any(v is not None for v in (self.metric_id, self.instance_id, self.scope)),
        ]
        if sum(selectors) != 1:
            raise ValueError(
                "exactly one of key, pattern, all or metricId/instanceId/scope must be given"
            )
        if self.pattern is not None and not _PATTERN_CHARS.match(self.pattern):
            raise ValueError("pattern contains characters outside keys and glob syntax")
        return self


class CacheInvalidateResponse(CamelModel):
    status: Literal["success"] = "success"
    invalidated_count: int
    pattern: str | None = None
    message: str
    timestamp: str

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Graceful degradation when the LRS cannot be used.

When a store call fails, or the circuit is open, the computation service
asks the FallbackHandler for the best answer it can still give:

1. Stale cache: a previously cached result, even if logically expired,
   returned as ``degraded`` with its age.
2. Nothing cached: an ``unavailable`` result with a null value and a fixed,
   user-safe message.

Messages are fixed phrases; exception text never reaches callers.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from src.core.context import RequestContext
from src.utils.datetime import age_seconds, format_iso, try_parse_iso, utc_now
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.core.config.settings import DegradationSettings
    from src.infrastructure.telemetry.metrics import ServiceMetrics

logger = get_logger(__name__)

STALE_WARNING = "stale data"
UNAVAILABLE_MESSAGE = "Data currently unavailable; please try again later"
UNAVAILABLE_CAUSE = "STORE_UNAVAILABLE"


@dataclass(frozen=True)
class FallbackResult:
    """Outcome of the degradation strategy.

    Attributes:
        status: degraded (stale cache served) or unavailable.
        value: Stale value, or None.
        data_available: Whether value carries data.
        metadata: Metadata of the stale result, if any.
        warning: Set when stale data is served.
        error: Fixed user-safe message when nothing could be served.
        cause: Machine-readable cause code when unavailable.
        cached_at: When the stale value was computed (ISO-8601).
        age: Age of the stale value in seconds.
    """

    status: Literal["degraded", "unavailable"]
    value: Any = None
    data_available: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    warning: str | None = None
    error: str | None = None
    cause: str | None = None
    cached_at: str | None = None
    age: int | None = None

    @property
    def from_cache(self) -> bool:
        return self.status == "degraded"


class FallbackHandler:
    """Builds degraded or unavailable results from what the cache still holds."""

    def __init__(
        self,
        settings: "DegradationSettings",
        metrics: "ServiceMetrics | None" = None,
    ) -> None:
        self.settings = settings
        self._metrics = metrics

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    def resolve(
        self,
        metric_id: str,
        cached: dict[str, Any] | None,
        context: RequestContext | None = None,
    ) -> FallbackResult:
        """Pick the fallback for a failed computation.

        Args:
            metric_id: Metric being served.
            cached: The cache entry read for the request, fresh or stale.
            context: Request context for log correlation.

        Returns:
            A degraded result when a usable entry exists and cache fallback
            is enabled, otherwise an unavailable result.
        """
        ctx = context or RequestContext()
        log = logger.bind(metric_id=metric_id, **ctx.log_fields())

        if self.settings.cache_fallback and isinstance(cached, dict) and "value" in cached:
            cached_at = try_parse_iso(cached.get("cachedAt")) or utc_now()
            age = age_seconds(cached_at)
            log.warning("serving_stale_result", age_s=age)
            self._record(metric_id, "cache_fallback")
            return FallbackResult(
                status="degraded",
                value=cached["value"],
                data_available=True,
                metadata=dict(cached.get("metadata") or {}),
                warning=STALE_WARNING,
                cached_at=format_iso(cached_at),
                age=age,
            )

        log.warning("metric_unavailable", cause=UNAVAILABLE_CAUSE)
        self._record(metric_id, "unavailable")
        return FallbackResult(
            status="unavailable",
            error=UNAVAILABLE_MESSAGE,
            cause=UNAVAILABLE_CAUSE,
        )

    def _record(self, metric_id: str, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_degradation(metric_id, outcome)

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Metric computation service.

ComputationService serves one metric request end to end:

1. Look up the provider (unknown id: MetricNotFoundError).
2. Build the cache key from metric, instance, scope and filters.
3. Read the cache. An entry younger than the ``results`` TTL is fresh and is
   returned without touching the LRS.
4. Otherwise validate the parameters and resolve the LRS instance
   (MetricValidationError / InstanceNotFoundError).
5. Ask the instance's circuit breaker. When it admits the call, fetch the
   statements (bounded by the request deadline), narrow them to the scope,
   compute, and write the result through to the cache.
6. When the LRS fails or the circuit is open, serve the stale cache entry
   as ``degraded`` or an ``unavailable`` result with a null value.

Results are written with a physical TTL of the ``results`` TTL plus the
stale grace period, so logically expired entries stay readable for the
fallback. Task cancellation propagates without touching the breaker's
failure count or the cache.

Example:
    service = ComputationService(registry, cache, clients, breakers, fallback, settings.cache)
    response = await service.compute_metric(
        "course-completion",
        MetricParams(course_id="c1"),
        RequestContext(deadline_s=30),
    )
    if response.status != "fresh":
        ...
"""

import asyncio
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from src.core.context import RequestContext
from src.core.errors import (
    InstanceNotFoundError,
    LRSConnectionError,
    LRSError,
    LRSServerError,
    LRSTimeoutError,
)
from src.domains.metrics.contract import FilterValue, MetricParams, MetricProvider
from src.domains.metrics.registry import MetricRegistry
from src.domains.metrics.schemas import MetricResponse
from src.domains.metrics.scoping import filter_statements
from src.infrastructure.cache.keys import DEFAULT_VERSION, build_cache_key
from src.infrastructure.lrs.client import LRSClient
from src.infrastructure.lrs.models import Statement
from src.infrastructure.lrs.query import QueryFilters
from src.utils.datetime import age_seconds, format_iso, try_parse_iso, utc_now
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.core.config.settings import CacheSettings
    from src.core.resilience import CircuitBreakerRegistry, FallbackHandler
    from src.infrastructure.cache.service import CacheService
    from src.infrastructure.telemetry.metrics import ServiceMetrics

logger = get_logger(__name__)

CACHED_AT_FIELD = "cachedAt"


def metric_scope(params: MetricParams) -> str:
    """Scope segment of the cache key: the broadest id given wins."""
    if params.course_id:
        return "course"
    if params.topic_id:
        return "topic"
    if params.element_id:
        return "element"
    return "global"


def metric_filters(params: MetricParams) -> dict[str, FilterValue]:
    """Filter segment of the cache key."""
    filters: dict[str, FilterValue] = {}
    for name in ("courseId", "topicId", "elementId", "userId", "groupId", "since", "until"):
        value = params.param(name)
        if value:
            filters[name] = value
    if params.filters:
        filters.update(params.filters)
    return filters


class ComputationService:
    """Cache-aside metric serving with circuit breaking and graceful degradation.

    Attributes:
        registry: Metric providers.
        default_instance_id: Instance used when a request names none.
    """

    def __init__(
        self,
        registry: MetricRegistry,
        cache: "CacheService",
        clients: Mapping[str, LRSClient],
        breakers: "CircuitBreakerRegistry",
        fallback: "FallbackHandler",
        settings: "CacheSettings",
        metrics: "ServiceMetrics | None" = None,
    ) -> None:
        """Initialize the computation service.

        Args:
            registry: Metric providers.
            cache: Cache service for results.
            clients: One LRS client per configured instance id, in
                configuration order. The first is the default.
            breakers: Circuit breakers, one per instance.
            fallback: Degradation strategy.
            settings: Cache TTL settings.
            metrics: Prometheus instruments; None disables recording.
        """
        if not clients:
            raise ValueError("at least one LRS client is required")
        self.registry = registry
        self._cache = cache
        self._clients = dict(clients)
        self._breakers = breakers
        self._fallback = fallback
        self._settings = settings
        self._metrics = metrics
        self.default_instance_id = next(iter(self._clients))

    @property
    def instance_ids(self) -> list[str]:
        return list(self._clients)

    def cache_key(self, metric_id: str, params: MetricParams) -> str:
        instance_id = params.instance_id or self.default_instance_id
        return build_cache_key(
            metric_id,
            instance_id,
            metric_scope(params),
            metric_filters(params),
            DEFAULT_VERSION,
        )

    async def compute_metric(
        self,
        metric_id: str,
        params: MetricParams,
        context: RequestContext | None = None,
    ) -> MetricResponse:
        """Serve one metric result.

        Args:
            metric_id: Registered metric id.
            params: Request parameters.
            context: Correlation id and deadline of the request.

        Returns:
            A fresh, degraded or unavailable result.

        Raises:
            MetricNotFoundError: Unknown metric id.
            MetricValidationError: Invalid parameters.
            InstanceNotFoundError: Unknown instanceId.
            LRSError: The LRS failed and graceful degradation is disabled.
        """
        ctx = context or RequestContext()
        started = time.perf_counter()
        provider = self.registry.get(metric_id)
        instance_id = params.instance_id or self.default_instance_id
        cache_key = self.cache_key(metric_id, params)
        log = logger.bind(metric_id=metric_id, instance_id=instance_id, **ctx.log_fields())

        cached = await self._cache.get(cache_key)
        fresh = self._fresh_response(cached)
        if fresh is not None:
            if self._metrics is not None:
                self._metrics.record_cache_hit(metric_id)
            log.info("metric_served_from_cache", cache_key=cache_key)
            return fresh.model_copy(
                update={"from_cache": True, "computation_time": self._elapsed_ms(started)}
            )

        if self._metrics is not None:
            self._metrics.record_cache_miss(metric_id)
        provider.check_params(params)
        client = self._client(instance_id)
        breaker = self._breakers.get(instance_id)

        if not await breaker.allow_request():
            log.warning("lrs_circuit_open", cache_key=cache_key)
            error = LRSConnectionError("circuit open", instance_id=instance_id)
            return self._degrade(metric_id, instance_id, cached, error, started, ctx)

        try:
            statements = await self._fetch(client, provider, params, ctx)
        except LRSError as e:
            await breaker.record_failure()
            log.warning("lrs_query_failed", error_type=e.error_type, error=str(e))
            return self._degrade(metric_id, instance_id, cached, e, started, ctx)
        except asyncio.CancelledError:
            breaker.release_trial()
            raise
        except Exception as e:
            # anything else on the store path still settles the breaker
            await breaker.record_failure()
            log.exception("lrs_query_crashed", error_type=type(e).__name__)
            error = LRSServerError(
                f"unexpected store failure: {type(e).__name__}", instance_id=instance_id
            )
            error.__cause__ = e
            return self._degrade(metric_id, instance_id, cached, error, started, ctx)
        await breaker.record_success()

        response = self._compute(provider, params, statements, instance_id, started)
        entry = {**response.to_payload(), CACHED_AT_FIELD: format_iso(utc_now())}
        await self._cache.set(
            cache_key,
            entry,
            ttl=self._settings.ttl_results + self._settings.stale_grace_seconds,
            category="results",
        )
        log.info(
            "metric_computed",
            statements=len(statements),
            computation_time_ms=response.computation_time,
        )
        return response

    def _client(self, instance_id: str) -> LRSClient:
        try:
            return self._clients[instance_id]
        except KeyError:
            raise InstanceNotFoundError(instance_id) from None

    def build_query(self, params: MetricParams, client: LRSClient) -> QueryFilters:
        """LRS-side filters: the time window, and the learner when resolvable."""
        home_page = client.instance.agent_home_page
        if params.user_id and home_page:
            return QueryFilters.for_actor(
                home_page, params.user_id, since=params.since, until=params.until
            )
        return QueryFilters(since=params.since, until=params.until)

    async def _fetch(
        self,
        client: LRSClient,
        provider: MetricProvider,
        params: MetricParams,
        ctx: RequestContext,
    ) -> list[Statement]:
        filters = self.build_query(params, client)
        try:
            async with asyncio.timeout(ctx.deadline_s):
                statements = await client.query_statements(filters, context=ctx)
        except TimeoutError as e:
            raise LRSTimeoutError(
                f"request deadline of {ctx.deadline_s}s exceeded",
                instance_id=client.instance_id,
            ) from e
        return filter_statements(statements, params, provider.verbs)

    def _compute(
        self,
        provider: MetricProvider,
        params: MetricParams,
        statements: list[Statement],
        instance_id: str,
        started: float,
    ) -> MetricResponse:
        compute_started = time.perf_counter()
        try:
            result = provider.compute(params, statements)
        except Exception:
            if self._metrics is not None:
                self._metrics.record_computation_error(provider.id)
            logger.exception("metric_computation_failed", metric_id=provider.id)
            raise
        if self._metrics is not None:
            self._metrics.observe_computation(provider.id, time.perf_counter() - compute_started)

        return MetricResponse(
            metric_id=result.metric_id,
            value=result.value,
            timestamp=result.computed_iso,
            computation_time=self._elapsed_ms(started),
            from_cache=False,
            status="fresh",
            metadata=result.metadata,
            instance_id=instance_id,
        )

    def _fresh_response(self, cached: Any) -> MetricResponse | None:
        """The cached response if the entry is younger than the results TTL."""
        if not isinstance(cached, dict):
            return None
        cached_at = try_parse_iso(cached.get(CACHED_AT_FIELD))
        if cached_at is None or age_seconds(cached_at) > self._settings.ttl_results:
            return None
        payload = {k: v for k, v in cached.items() if k != CACHED_AT_FIELD}
        try:
            return MetricResponse.model_validate(payload)
        except ValidationError:
            logger.warning("cache_entry_invalid", fields=sorted(payload))
            return None

    def _degrade(
        self,
        metric_id: str,
        instance_id: str,
        cached: Any,
        error: LRSError,
        started: float,
        ctx: RequestContext,
    ) -> MetricResponse:
        if not self._fallback.enabled:
            raise error

        outcome = self._fallback.resolve(
            metric_id, cached if isinstance(cached, dict) else None, ctx
        )
        timestamp = None
        if outcome.from_cache and isinstance(cached, dict):
            timestamp = cached.get("timestamp")
        return MetricResponse(
            metric_id=metric_id,
            value=outcome.value,
            timestamp=timestamp or format_iso(utc_now()),
            computation_time=self._elapsed_ms(started),
            from_cache=outcome.from_cache,
            status=outcome.status,
            metadata=outcome.metadata or None,
            instance_id=instance_id,
            warning=outcome.warning,
            error=outcome.error,
            cause=outcome.cause,
            age=outcome.age,
            cached_at=outcome.cached_at,
            data_available=outcome.data_available,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)

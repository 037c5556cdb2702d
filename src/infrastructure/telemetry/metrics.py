# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prometheus metrics for the metrics-serving pipeline.

Metrics Collected:
- {ns}_cache_hits_total / {ns}_cache_misses_total: result cache lookups by metric
- {ns}_cache_evictions_total: keys removed by delete or pattern invalidation
- {ns}_cache_operation_duration_seconds: Redis command latency by operation
- {ns}_lrs_query_duration_seconds: statement queries by instance and outcome
- {ns}_lrs_errors_total / {ns}_lrs_retries_total: failed and retried LRS calls
- {ns}_lrs_instance_healthy / {ns}_lrs_health_response_seconds: last probe
- {ns}_circuit_breaker_state: 0 closed, 1 half-open, 2 open
- {ns}_circuit_breaker_transitions_total / _failures_total / _successes_total
- {ns}_degraded_responses_total: degraded and unavailable results by metric
- {ns}_metric_computation_duration_seconds / _errors_total

Usage:
    metrics = ServiceMetrics()
    metrics.record_cache_hit("course-completion")
    body = metrics.render()

Each ServiceMetrics owns its CollectorRegistry unless one is passed in, so
several instances (one per test, for example) never collide.
"""

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

CIRCUIT_STATE_VALUES = {"closed": 0, "half_open": 1, "open": 2}

FAST_BUCKETS = [0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
SLOW_BUCKETS = [0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]


class ServiceMetrics:
    """Prometheus instruments shared by cache, LRS client and orchestrator."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        namespace: str = "lrs_metrics",
    ) -> None:
        """Initialize the metric instruments.

        Args:
            registry: Prometheus registry (default: a private registry).
            namespace: Metrics namespace prefix.
        """
        self.registry = registry if registry is not None else CollectorRegistry()
        self.namespace = namespace

        # Cache
        self.cache_hits = Counter(
            f"{namespace}_cache_hits_total",
            "Result cache hits",
            ["metric_id"],
            registry=self.registry,
        )
        self.cache_misses = Counter(
            f"{namespace}_cache_misses_total",
            "Result cache misses",
            ["metric_id"],
            registry=self.registry,
        )
        self.cache_evictions = Counter(
            f"{namespace}_cache_evictions_total",
            "Cache keys removed",
            ["operation"],
            registry=self.registry,
        )
        self.cache_operation_duration = Histogram(
            f"{namespace}_cache_operation_duration_seconds",
            "Redis operation duration",
            ["operation", "outcome"],
            buckets=FAST_BUCKETS,
            registry=self.registry,
        )

        # LRS
        self.lrs_query_duration = Histogram(
            f"{namespace}_lrs_query_duration_seconds",
            "LRS statement query duration",
            ["instance_id", "outcome"],
            buckets=SLOW_BUCKETS,
            registry=self.registry,
        )
        self.lrs_errors = Counter(
            f"{namespace}_lrs_errors_total",
            "Failed LRS requests",
            ["instance_id", "error_type"],
            registry=self.registry,
        )
        self.lrs_retries = Counter(
            f"{namespace}_lrs_retries_total",
            "Retried LRS page fetches",
            ["instance_id"],
            registry=self.registry,
        )
        self.lrs_healthy = Gauge(
            f"{namespace}_lrs_instance_healthy",
            "Last health probe result (1 healthy, 0 unhealthy)",
            ["instance_id"],
            registry=self.registry,
        )
        self.lrs_health_response = Gauge(
            f"{namespace}_lrs_health_response_seconds",
            "Last health probe response time",
            ["instance_id"],
            registry=self.registry,
        )

        # Circuit breaker
        self.circuit_state = Gauge(
            f"{namespace}_circuit_breaker_state",
            "Circuit breaker state (0 closed, 1 half-open, 2 open)",
            ["name"],
            registry=self.registry,
        )
        self.circuit_transitions = Counter(
            f"{namespace}_circuit_breaker_transitions_total",
            "Circuit breaker state transitions",
            ["name", "from_state", "to_state"],
            registry=self.registry,
        )
        self.circuit_failures = Counter(
            f"{namespace}_circuit_breaker_failures_total",
            "Failures recorded by circuit breakers",
            ["name"],
            registry=self.registry,
        )
        self.circuit_successes = Counter(
            f"{namespace}_circuit_breaker_successes_total",
            "Successes recorded by circuit breakers",
            ["name"],
            registry=self.registry,
        )

        # Orchestration
        self.degraded_responses = Counter(
            f"{namespace}_degraded_responses_total",
            "Results served in degraded or unavailable state",
            ["metric_id", "status"],
            registry=self.registry,
        )
        self.computation_duration = Histogram(
            f"{namespace}_metric_computation_duration_seconds",
            "Metric provider compute duration",
            ["metric_id"],
            buckets=FAST_BUCKETS,
            registry=self.registry,
        )
        self.computation_errors = Counter(
            f"{namespace}_metric_computation_errors_total",
            "Metric provider compute failures",
            ["metric_id"],
            registry=self.registry,
        )

        logger.debug("Service metrics initialized with namespace: %s", namespace)

    # ========== Cache ==========

    def record_cache_hit(self, metric_id: str) -> None:
        self.cache_hits.labels(metric_id=metric_id).inc()

    def record_cache_miss(self, metric_id: str) -> None:
        self.cache_misses.labels(metric_id=metric_id).inc()

    def record_cache_eviction(self, operation: str, count: int = 1) -> None:
        if count > 0:
            self.cache_evictions.labels(operation=operation).inc(count)

    def observe_cache_operation(self, operation: str, duration: float, success: bool) -> None:
        self.cache_operation_duration.labels(
            operation=operation,
            outcome="success" if success else "error",
        ).observe(duration)

    # ========== LRS ==========

    def observe_lrs_query(self, instance_id: str, duration: float, success: bool) -> None:
        self.lrs_query_duration.labels(
            instance_id=instance_id,
            outcome="success" if success else "error",
        ).observe(duration)

    def record_lrs_error(self, instance_id: str, error_type: str) -> None:
        self.lrs_errors.labels(instance_id=instance_id, error_type=error_type).inc()

    def record_lrs_retry(self, instance_id: str) -> None:
        self.lrs_retries.labels(instance_id=instance_id).inc()

    def set_lrs_health(self, instance_id: str, healthy: bool, response_time_ms: float) -> None:
        self.lrs_healthy.labels(instance_id=instance_id).set(1 if healthy else 0)
        self.lrs_health_response.labels(instance_id=instance_id).set(response_time_ms / 1000)

    # ========== Circuit breaker ==========

    def set_circuit_state(self, name: str, state: str) -> None:
        self.circuit_state.labels(name=name).set(CIRCUIT_STATE_VALUES[state])

    def record_circuit_transition(self, name: str, from_state: str, to_state: str) -> None:
        self.circuit_transitions.labels(
            name=name,
            from_state=from_state,
            to_state=to_state,
        ).inc()
        self.set_circuit_state(name, to_state)

    def record_circuit_failure(self, name: str) -> None:
        self.circuit_failures.labels(name=name).inc()

    def record_circuit_success(self, name: str) -> None:
        self.circuit_successes.labels(name=name).inc()

    # ========== Orchestration ==========

    def record_degradation(self, metric_id: str, status: str) -> None:
        self.degraded_responses.labels(metric_id=metric_id, status=status).inc()

    def observe_computation(self, metric_id: str, duration: float) -> None:
        self.computation_duration.labels(metric_id=metric_id).observe(duration)

    def record_computation_error(self, metric_id: str) -> None:
        self.computation_errors.labels(metric_id=metric_id).inc()

    def render(self) -> bytes:
        """Serialize the registry in the Prometheus text format."""
        return generate_latest(self.registry)

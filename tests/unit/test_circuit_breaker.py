# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the circuit breaker state machine."""

import pytest

from src.core.config import CircuitBreakerSettings
from src.core.resilience import CircuitBreaker, CircuitBreakerRegistry, CircuitState
from src.infrastructure.telemetry import ServiceMetrics


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def breaker(clock: FakeClock) -> CircuitBreaker:
    return CircuitBreaker("hs-ke", threshold=3, cooldown_ms=30000, clock=clock)


async def trip(breaker: CircuitBreaker) -> None:
    for _ in range(breaker.threshold):
        await breaker.record_failure()


class TestClosed:
    """Tests for the closed state."""

    async def test_allows_requests(self, breaker: CircuitBreaker) -> None:
        """Test that a fresh breaker admits calls."""
        assert breaker.state is CircuitState.CLOSED
        assert await breaker.allow_request() is True

    async def test_opens_at_threshold(self, breaker: CircuitBreaker) -> None:
        """Test that consecutive failures reaching the threshold open the circuit."""
        await breaker.record_failure()
        await breaker.record_failure()
        assert breaker.state is CircuitState.CLOSED

        await breaker.record_failure()

        assert breaker.state is CircuitState.OPEN
        assert await breaker.allow_request() is False

    async def test_success_resets_failure_count(self, breaker: CircuitBreaker) -> None:
        """Test that failures must be consecutive."""
        await breaker.record_failure()
        await breaker.record_failure()
        await breaker.record_success()
        await breaker.record_failure()
        await breaker.record_failure()

        assert breaker.state is CircuitState.CLOSED


class TestOpen:
    """Tests for cooldown and the half-open trial."""

    async def test_rejects_during_cooldown(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        """Test that no call passes before the cooldown ends."""
        await trip(breaker)
        clock.advance(20)

        assert await breaker.allow_request() is False
        assert breaker.snapshot().retry_in_ms == 10000

    async def test_half_open_after_cooldown(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        """Test that exactly one trial is admitted after the cooldown."""
        await trip(breaker)
        clock.advance(30)

        assert await breaker.allow_request() is True
        assert breaker.state is CircuitState.HALF_OPEN
        assert await breaker.allow_request() is False

    async def test_trial_success_closes(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        """Test that a successful trial closes the circuit."""
        await trip(breaker)
        clock.advance(30)
        await breaker.allow_request()

        await breaker.record_success()

        assert breaker.state is CircuitState.CLOSED
        assert breaker.snapshot().consecutive_failures == 0

    async def test_trial_failure_reopens(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        """Test that a failed trial restarts the cooldown."""
        await trip(breaker)
        clock.advance(30)
        await breaker.allow_request()

        await breaker.record_failure()

        assert breaker.state is CircuitState.OPEN
        assert breaker.snapshot().retry_in_ms == 30000

    async def test_released_trial_can_be_retried(
        self, breaker: CircuitBreaker, clock: FakeClock
    ) -> None:
        """Test that an abandoned trial frees its slot."""
        await trip(breaker)
        clock.advance(30)
        assert await breaker.allow_request() is True

        breaker.release_trial()

        assert breaker.state is CircuitState.HALF_OPEN
        assert await breaker.allow_request() is True

    async def test_release_outside_half_open_is_noop(self, breaker: CircuitBreaker) -> None:
        """Test that release_trial leaves a closed breaker alone."""
        breaker.release_trial()

        assert breaker.state is CircuitState.CLOSED
        assert await breaker.allow_request() is True

    async def test_reset_closes(self, breaker: CircuitBreaker) -> None:
        """Test the admin reset."""
        await trip(breaker)

        await breaker.reset()

        assert breaker.state is CircuitState.CLOSED
        assert breaker.snapshot().retry_in_ms is None


class TestMetrics:
    """Tests for breaker instrumentation."""

    async def test_state_gauge_and_transitions(self, clock: FakeClock) -> None:
        """Test that the state gauge follows transitions."""
        metrics = ServiceMetrics()
        breaker = CircuitBreaker("hs-ke", threshold=1, clock=clock, metrics=metrics)

        await breaker.record_failure()

        assert metrics.registry.get_sample_value(
            "lrs_metrics_circuit_breaker_state", {"name": "hs-ke"}
        ) == 2.0
        assert metrics.registry.get_sample_value(
            "lrs_metrics_circuit_breaker_transitions_total",
            {"name": "hs-ke", "from_state": "closed", "to_state": "open"},
        ) == 1.0


class TestCircuitBreakerRegistry:
    """Tests for per-instance breakers."""

    async def test_one_breaker_per_instance(self, clock: FakeClock) -> None:
        """Test that breakers are created once and isolated per name."""
        registry = CircuitBreakerRegistry(CircuitBreakerSettings(threshold=1), clock=clock)

        assert registry.get("hs-ke") is registry.get("hs-ke")
        await registry.get("hs-ke").record_failure()

        assert registry.get("hs-ke").state is CircuitState.OPEN
        assert registry.get("hs-aug").state is CircuitState.CLOSED

    async def test_reset_all(self, clock: FakeClock) -> None:
        """Test that every breaker is closed again."""
        registry = CircuitBreakerRegistry(CircuitBreakerSettings(threshold=1), clock=clock)
        await registry.get("a").record_failure()
        await registry.get("b").record_failure()

        await registry.reset_all()

        assert {s.state for s in registry.snapshots().values()} == {CircuitState.CLOSED}

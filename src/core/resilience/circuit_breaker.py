# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Circuit breaker guarding calls to one LRS instance.

State machine::

    CLOSED    --[consecutive failures >= threshold]-->  OPEN
    OPEN      --[cooldown elapsed]------------------->  HALF_OPEN
    HALF_OPEN --[half_open_requests successes]------->  CLOSED
    HALF_OPEN --[any failure]------------------------>  OPEN

State is guarded by an asyncio.Lock because concurrent requests against the
same failing instance race to update it. The clock is injected so cooldowns
can be tested without waiting.

Example:
    registry = CircuitBreakerRegistry(settings.circuit_breaker)
    breaker = registry.get("hs-ke")
    if await breaker.allow_request():
        try:
            statements = await client.query_statements(filters)
        except LRSError:
            await breaker.record_failure()
        else:
            await breaker.record_success()
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.core.config.settings import CircuitBreakerSettings
    from src.infrastructure.telemetry.metrics import ServiceMetrics

logger = get_logger(__name__)

Clock = Callable[[], float]


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitSnapshot:
    """Point-in-time view of a breaker for health output.

    Attributes:
        name: Breaker name (the LRS instance id).
        state: Current state.
        consecutive_failures: Failures since the last success.
        retry_in_ms: Remaining cooldown while open, else None.
    """

    name: str
    state: CircuitState
    consecutive_failures: int
    retry_in_ms: int | None = None


class CircuitBreaker:
    """Consecutive-failure circuit breaker with a half-open trial window.

    Attributes:
        name: Breaker name, used in logs and metrics labels.
        threshold: Consecutive failures that open the circuit.
        cooldown_s: Time the circuit stays open before a trial request.
        half_open_requests: Trial requests admitted while half-open, and
            successes needed to close again.
    """

    def __init__(
        self,
        name: str,
        threshold: int = 5,
        cooldown_ms: int = 30000,
        half_open_requests: int = 1,
        clock: Clock = time.monotonic,
        metrics: "ServiceMetrics | None" = None,
    ) -> None:
        self.name = name
        self.threshold = threshold
        self.cooldown_s = cooldown_ms / 1000
        self.half_open_requests = half_open_requests
        self._clock = clock
        self._metrics = metrics
        self._lock = asyncio.Lock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._half_open_attempts = 0
        self._half_open_successes = 0
        self._opened_at: float | None = None

        if metrics is not None:
            metrics.set_circuit_state(name, self._state.value)

    @property
    def state(self) -> CircuitState:
        return self._state

    async def allow_request(self) -> bool:
        """Decide whether a call may go through.

        Moves an open circuit to half-open once the cooldown has elapsed and
        counts the request against the half-open trial budget.

        Returns:
            False while the circuit is open or the trial budget is spent.
        """
        async with self._lock:
            if self._state is CircuitState.OPEN and self._cooldown_elapsed():
                self._transition(CircuitState.HALF_OPEN)

            if self._state is CircuitState.OPEN:
                logger.debug(
                    "circuit_rejected",
                    circuit=self.name,
                    retry_in_ms=self._retry_in_ms(),
                )
                return False

            if self._state is CircuitState.HALF_OPEN:
                if self._half_open_attempts >= self.half_open_requests:
                    return False
                self._half_open_attempts += 1
            return True

    async def record_success(self) -> None:
        async with self._lock:
            if self._metrics is not None:
                self._metrics.record_circuit_success(self.name)
            if self._state is CircuitState.HALF_OPEN:
                self._half_open_successes += 1
                if self._half_open_successes >= self.half_open_requests:
                    self._transition(CircuitState.CLOSED)
            else:
                self._consecutive_failures = 0

    async def record_failure(self) -> None:
        async with self._lock:
            if self._metrics is not None:
                self._metrics.record_circuit_failure(self.name)
            self._consecutive_failures += 1

            if self._state is CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif (
                self._state is CircuitState.CLOSED
                and self._consecutive_failures >= self.threshold
            ):
                self._transition(CircuitState.OPEN)

    def release_trial(self) -> None:
        """Return a half-open trial slot whose call never finished.

        Used when a request is cancelled after allow_request() admitted it,
        so an abandoned trial cannot keep the circuit half-open forever.
        """
        if self._state is CircuitState.HALF_OPEN and self._half_open_attempts > 0:
            self._half_open_attempts -= 1

    async def reset(self) -> None:
        """Force the circuit closed (admin action)."""
        async with self._lock:
            self._transition(CircuitState.CLOSED)

    def snapshot(self) -> CircuitSnapshot:
        return CircuitSnapshot(
            name=self.name,
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            retry_in_ms=self._retry_in_ms() if self._state is CircuitState.OPEN else None,
        )

    def _cooldown_elapsed(self) -> bool:
        return self._opened_at is not None and (
            self._clock() - self._opened_at >= self.cooldown_s
        )

    def _retry_in_ms(self) -> int:
        if self._opened_at is None:
            return 0
        remaining = self.cooldown_s - (self._clock() - self._opened_at)
        return max(0, int(remaining * 1000))

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        if old_state is new_state:
            return
        self._state = new_state

        if new_state is CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state is CircuitState.HALF_OPEN:
            self._half_open_attempts = 0
            self._half_open_successes = 0
        else:
            self._consecutive_failures = 0
            self._opened_at = None

        log = logger.warning if new_state is CircuitState.OPEN else logger.info
        log(
            "circuit_state_changed",
            circuit=self.name,
            from_state=old_state.value,
            to_state=new_state.value,
            consecutive_failures=self._consecutive_failures,
        )
        if self._metrics is not None:
            self._metrics.set_circuit_state(self.name, new_state.value)
            self._metrics.record_circuit_transition(
                self.name, old_state.value, new_state.value
            )


class CircuitBreakerRegistry:
    """Creates and holds one breaker per LRS instance.

    The registry is owned by the computation service; there is no process
    global.
    """

    def __init__(
        self,
        settings: "CircuitBreakerSettings",
        clock: Clock = time.monotonic,
        metrics: "ServiceMetrics | None" = None,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._metrics = metrics
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        """Get or create the breaker for an instance."""
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(
                name,
                threshold=self._settings.threshold,
                cooldown_ms=self._settings.cooldown_ms,
                half_open_requests=self._settings.half_open_requests,
                clock=self._clock,
                metrics=self._metrics,
            )
            self._breakers[name] = breaker
        return breaker

    def snapshots(self) -> dict[str, CircuitSnapshot]:
        return {name: breaker.snapshot() for name, breaker in self._breakers.items()}

    async def reset_all(self) -> None:
        for breaker in self._breakers.values():
            await breaker.reset()

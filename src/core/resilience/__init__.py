# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fault tolerance for calls to Learning Record Stores.

- CircuitBreaker / CircuitBreakerRegistry: fail fast against an instance
  that keeps failing
- FallbackHandler: stale-cache or unavailable results instead of errors
"""

from src.core.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitSnapshot,
    CircuitState,
)
from src.core.resilience.fallback import (
    STALE_WARNING,
    UNAVAILABLE_CAUSE,
    UNAVAILABLE_MESSAGE,
    FallbackHandler,
    FallbackResult,
)

__all__ = [
    "STALE_WARNING",
    "UNAVAILABLE_CAUSE",
    "UNAVAILABLE_MESSAGE",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitSnapshot",
    "CircuitState",
    "FallbackHandler",
    "FallbackResult",
]

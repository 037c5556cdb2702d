# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Telemetry infrastructure.

This package provides the Prometheus instruments recorded by the cache,
the LRS client, the circuit breakers and the computation service.
"""

from src.infrastructure.telemetry.metrics import ServiceMetrics

__all__ = ["ServiceMetrics"]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Registry of metric providers keyed by metric id.

Example:
    registry = MetricRegistry()
    registry.register(course_completion)
    provider = registry.get("course-completion")
    catalog = registry.catalog()
"""

from collections.abc import Iterable, Iterator
from typing import Any

from src.core.errors import MetricNotFoundError
from src.domains.metrics.contract import DashboardLevel, MetricProvider


class MetricRegistry:
    """Maps metric ids to providers, in registration order."""

    def __init__(self, providers: Iterable[MetricProvider] = ()) -> None:
        self._providers: dict[str, MetricProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: MetricProvider) -> None:
        """Add a provider.

        Raises:
            ValueError: If a provider with the same id is registered.
        """
        if provider.id in self._providers:
            raise ValueError(f"Metric '{provider.id}' is already registered")
        self._providers[provider.id] = provider

    def get(self, metric_id: str) -> MetricProvider:
        """Look up a provider.

        Raises:
            MetricNotFoundError: If the id is unknown.
        """
        try:
            return self._providers[metric_id]
        except KeyError:
            raise MetricNotFoundError(metric_id) from None

    def catalog(self, level: DashboardLevel | None = None) -> list[dict[str, Any]]:
        return [provider.describe() for provider in self.list(level)]

    def list(self, level: DashboardLevel | None = None) -> list[MetricProvider]:
        """Registered providers, optionally only those of one dashboard level."""
        return [
            p for p in self._providers.values()
            if level is None or p.dashboard_level is level
        ]

    def __contains__(self, metric_id: object) -> bool:
        return metric_id in self._providers

    def __iter__(self) -> Iterator[MetricProvider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)

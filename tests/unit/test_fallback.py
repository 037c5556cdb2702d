# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the degradation strategy."""

from datetime import timedelta

from src.core.config import DegradationSettings
from src.core.resilience import (
    STALE_WARNING,
    UNAVAILABLE_CAUSE,
    UNAVAILABLE_MESSAGE,
    FallbackHandler,
)
from src.infrastructure.telemetry import ServiceMetrics
from src.utils.datetime import format_iso, utc_now


class TestFallbackHandler:
    """Tests for FallbackHandler.resolve."""

    def test_stale_entry_is_served_degraded(self) -> None:
        """Test that a cached entry becomes a degraded result with its age."""
        cached_at = utc_now() - timedelta(hours=2)
        handler = FallbackHandler(DegradationSettings())

        result = handler.resolve(
            "course-completion",
            {"value": 71.5, "metadata": {"n": 3}, "cachedAt": format_iso(cached_at)},
        )

        assert result.status == "degraded"
        assert result.value == 71.5
        assert result.data_available is True
        assert result.from_cache is True
        assert result.metadata == {"n": 3}
        assert result.warning == STALE_WARNING
        assert result.age >= 7200

    def test_missing_entry_is_unavailable(self) -> None:
        """Test the fixed unavailable result."""
        handler = FallbackHandler(DegradationSettings())

        result = handler.resolve("course-completion", None)

        assert result.status == "unavailable"
        assert result.value is None
        assert result.data_available is False
        assert result.error == UNAVAILABLE_MESSAGE
        assert result.cause == UNAVAILABLE_CAUSE

    def test_cache_fallback_disabled(self) -> None:
        """Test that stale data is ignored when cache fallback is off."""
        handler = FallbackHandler(DegradationSettings(cache_fallback=False))

        result = handler.resolve("m", {"value": 1, "cachedAt": format_iso(utc_now())})

        assert result.status == "unavailable"

    def test_entry_without_value_is_unusable(self) -> None:
        """Test that an entry lacking a value is not served."""
        handler = FallbackHandler(DegradationSettings())

        assert handler.resolve("m", {"metadata": {}}).status == "unavailable"

    def test_outcomes_are_counted(self) -> None:
        """Test the degradation counter labels."""
        metrics = ServiceMetrics()
        handler = FallbackHandler(DegradationSettings(), metrics=metrics)

        handler.resolve("m", None)
        handler.resolve("m", {"value": 0, "cachedAt": format_iso(utc_now())})

        for status in ("unavailable", "cache_fallback"):
            assert metrics.registry.get_sample_value(
                "lrs_metrics_degraded_responses_total", {"metric_id": "m", "status": status}
            ) == 1.0

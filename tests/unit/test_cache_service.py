# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for CacheService against an in-memory Redis."""

import json
from datetime import date

import pytest

from src.core.config import CacheSettings
from src.infrastructure.cache.service import CacheService
from src.infrastructure.telemetry import ServiceMetrics


@pytest.fixture
def metrics() -> ServiceMetrics:
    return ServiceMetrics()


@pytest.fixture
def cache(fake_redis, cache_settings: CacheSettings, metrics: ServiceMetrics) -> CacheService:
    """Provide a cache service over the in-memory Redis."""
    return CacheService(fake_redis, cache_settings, metrics=metrics)


class TestGetAndSet:
    """Tests for cache-aside reads and writes."""

    async def test_set_then_get(self, cache: CacheService) -> None:
        """Test that a stored value is read back unchanged."""
        value = {"metricId": "m", "value": 42.5, "metadata": {"n": [1, 2]}}

        assert await cache.set("cache:m:i:global:v1", value, category="results") is True
        assert await cache.get("cache:m:i:global:v1") == value

    async def test_category_ttl(self, cache: CacheService, fake_redis) -> None:
        """Test that the TTL is resolved from the category."""
        await cache.set("k1", 1, category="results")
        await cache.set("k2", 1, category="health")
        await cache.set("k3", 1)

        assert fake_redis.ttls == {"k1": 300, "k2": 60, "k3": 3600}

    async def test_explicit_ttl_wins(self, cache: CacheService, fake_redis) -> None:
        """Test that an explicit TTL overrides the category."""
        await cache.set("k", 1, ttl=86700, category="results")

        assert fake_redis.ttls["k"] == 86700

    async def test_miss_returns_none(self, cache: CacheService) -> None:
        """Test that an absent key is a miss."""
        assert await cache.get("cache:absent:i:global:v1") is None

    async def test_unreadable_entry_is_a_miss(self, cache: CacheService, fake_redis) -> None:
        """Test that corrupted JSON is treated as a miss."""
        fake_redis.store["k"] = "{not json"

        assert await cache.get("k") is None

    async def test_unserializable_value_is_not_stored(self, cache: CacheService, fake_redis) -> None:
        """Test that values JSON cannot encode are rejected."""
        circular: list = []
        circular.append(circular)

        assert await cache.set("k", circular) is False
        assert "k" not in fake_redis.store

    async def test_non_json_types_are_stringified(self, cache: CacheService, fake_redis) -> None:
        """Test that values without a JSON form are stored as text."""
        assert await cache.set("k", {"day": date(2025, 3, 1)}) is True
        assert json.loads(fake_redis.store["k"]) == {"day": "2025-03-01"}

    async def test_delete_reports_existing_keys_only(self, cache: CacheService) -> None:
        """Test that delete is True only when something was removed."""
        await cache.set("k", 1)

        assert await cache.delete("k") is True
        assert await cache.delete("k") is False


class TestRedisUnavailable:
    """Tests that Redis failures degrade instead of raising."""

    async def test_operations_absorb_failures(self, cache: CacheService, fake_redis) -> None:
        """Test every operation with Redis down."""
        await cache.set("cache:m:i:global:v1", 1)
        fake_redis.fail = True

        assert await cache.get("cache:m:i:global:v1") is None
        assert await cache.set("cache:m:i:global:v1", 2) is False
        assert await cache.delete("cache:m:i:global:v1") is False
        assert await cache.invalidate_pattern("cache:*") == 0
        assert await cache.is_healthy() is False

    async def test_failures_are_recorded(
        self, cache: CacheService, fake_redis, metrics: ServiceMetrics
    ) -> None:
        """Test that failed operations are observed with an error outcome."""
        fake_redis.fail = True
        await cache.get("k")

        sample = metrics.registry.get_sample_value(
            "lrs_metrics_cache_operation_duration_seconds_count",
            {"operation": "get", "outcome": "error"},
        )
        assert sample == 1.0


class TestInvalidatePattern:
    """Tests for SCAN-based pattern invalidation."""

    async def test_removes_only_matching_keys(self, cache: CacheService, fake_redis) -> None:
        """Test that keys outside the pattern survive."""
        for key in (
            "cache:course-completion:hs-ke:course:courseId=c1:v1",
            "cache:course-completion:hs-aug:course:courseId=c2:v1",
            "cache:course-completion:hs-ke:global:v1",
            "cache:topic-mastery:hs-ke:topic:topicId=t:v1",
            "session:other",
        ):
            await cache.set(key, 1)

        removed = await cache.invalidate_pattern("cache:course-completion:*")

        assert removed == 3
        assert sorted(fake_redis.store) == [
            "cache:topic-mastery:hs-ke:topic:topicId=t:v1",
            "session:other",
        ]

    async def test_scans_in_batches(self, cache: CacheService, fake_redis) -> None:
        """Test that SCAN is used with the batch size, never KEYS."""
        for i in range(5):
            await cache.set(f"cache:m:i:global:v{i}", i)

        removed = await cache.invalidate_pattern("cache:*")

        assert removed == 5
        assert fake_redis.scan_counts == [2]
        assert fake_redis.pipelines_executed == 3
        assert fake_redis.keys_called is False

    async def test_evictions_are_counted(
        self, cache: CacheService, metrics: ServiceMetrics
    ) -> None:
        """Test that removed keys are counted as evictions."""
        await cache.set("cache:a:i:global:v1", 1)
        await cache.set("cache:b:i:global:v1", 1)

        await cache.invalidate_pattern("cache:*")

        sample = metrics.registry.get_sample_value(
            "lrs_metrics_cache_evictions_total", {"operation": "invalidate_pattern"}
        )
        assert sample == 2.0

    async def test_no_match_removes_nothing(self, cache: CacheService) -> None:
        """Test that an unmatched pattern reports zero."""
        await cache.set("cache:a:i:global:v1", 1)

        assert await cache.invalidate_pattern("cache:zzz:*") == 0

    async def test_failure_after_first_batch_reports_zero(
        self, cache: CacheService, fake_redis, metrics: ServiceMetrics
    ) -> None:
        """Test that a connection lost between batches reports 0, not a partial count."""
        for i in range(5):
            await cache.set(f"cache:m:i:global:v{i}", i)
        fake_redis.fail_after_pipelines = 1

        removed = await cache.invalidate_pattern("cache:*")

        assert removed == 0
        assert fake_redis.pipelines_executed == 2
        # the first batch did go through
        assert len(fake_redis.store) == 3
        sample = metrics.registry.get_sample_value(
            "lrs_metrics_cache_evictions_total", {"operation": "invalidate_pattern"}
        )
        assert sample in (None, 0.0)

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Cache-aside operations over Redis.

CacheService is the only component that reads or writes cache entries.
Every operation degrades instead of raising when Redis is unavailable:
reads become misses, writes and deletes return False, pattern invalidation
returns 0 and the health probe returns False.

Every operation records a duration sample and a structured log entry;
deletions also count evicted keys.

Example:
    cache = CacheService(redis_client.redis, settings.cache, metrics)
    await cache.set("cache:course-completion:hs-ke:course:v1", payload, category="results")
    payload = await cache.get("cache:course-completion:hs-ke:course:v1")
    removed = await cache.invalidate_pattern("cache:course-completion:*")
"""

import json
import time
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError

from src.core.errors import CacheUnavailableError
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from src.core.config.settings import CacheSettings
    from src.infrastructure.telemetry.metrics import ServiceMetrics

logger = get_logger(__name__)

# Failures that mean "Redis cannot serve this right now".
_BACKEND_ERRORS = (RedisError, OSError)


class CacheService:
    """Cache-aside layer with category TTLs and pattern invalidation.

    Attributes:
        settings: TTL and batching configuration.
    """

    def __init__(
        self,
        redis: "Redis",
        settings: "CacheSettings",
        metrics: "ServiceMetrics | None" = None,
    ) -> None:
        """Initialize the cache service.

        Args:
            redis: Shared redis.asyncio client (decode_responses=True).
            settings: Cache TTL settings.
            metrics: Prometheus instruments; None disables recording.
        """
        self._redis = redis
        self.settings = settings
        self._metrics = metrics

    def _serialize(self, value: Any) -> str:
        return json.dumps(value, ensure_ascii=False, default=str)

    def _deserialize(self, raw: str | bytes) -> Any:
        return json.loads(raw)

    def _observe(self, operation: str, started: float, success: bool) -> float:
        duration = time.perf_counter() - started
        if self._metrics is not None:
            self._metrics.observe_cache_operation(operation, duration, success)
        return duration

    def _evicted(self, operation: str, count: int) -> None:
        if self._metrics is not None:
            self._metrics.record_cache_eviction(operation, count)

    async def _call(self, operation: str, coro: Any) -> Any:
        """Await a Redis command, mapping backend failures to CacheUnavailableError."""
        try:
            return await coro
        except _BACKEND_ERRORS as e:
            raise CacheUnavailableError(f"{operation} failed: {e}") from e

    # ========== Cache-aside operations ==========

    async def get(self, key: str) -> Any | None:
        """Read and deserialize a cached value.

        Args:
            key: Cache key.

        Returns:
            The cached value, or None on a miss, a deserialization failure
            or a Redis failure.
        """
        started = time.perf_counter()
        try:
            raw = await self._call("get", self._redis.get(key))
        except CacheUnavailableError as e:
            duration = self._observe("get", started, False)
            logger.warning("cache_get_failed", key=key, error=str(e), duration_s=duration)
            return None

        duration = self._observe("get", started, True)
        if raw is None:
            logger.debug("cache_miss", key=key, duration_s=duration)
            return None

        try:
            value = self._deserialize(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("cache_entry_unreadable", key=key, error=str(e))
            return None

        logger.debug("cache_hit", key=key, duration_s=duration)
        return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
        category: str | None = None,
    ) -> bool:
        """Serialize and store a value with an expiry.

        Args:
            key: Cache key.
            value: JSON-serializable value.
            ttl: Expiry in seconds; when None it is resolved from category.
            category: metrics, results or health.

        Returns:
            True if the value was stored.
        """
        expire = ttl if ttl is not None else self.settings.ttl_for(category)
        started = time.perf_counter()
        try:
            payload = self._serialize(value)
        except (TypeError, ValueError) as e:
            logger.warning("cache_value_unserializable", key=key, error=str(e))
            return False

        try:
            await self._call("set", self._redis.set(key, payload, ex=expire))
        except CacheUnavailableError as e:
            duration = self._observe("set", started, False)
            logger.warning("cache_set_failed", key=key, error=str(e), duration_s=duration)
            return False

        duration = self._observe("set", started, True)
        logger.debug("cache_set", key=key, ttl=expire, category=category, duration_s=duration)
        return True

    async def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True only if the key existed and was removed.
        """
        started = time.perf_counter()
        try:
            removed = await self._call("delete", self._redis.delete(key))
        except CacheUnavailableError as e:
            duration = self._observe("delete", started, False)
            logger.warning("cache_delete_failed", key=key, error=str(e), duration_s=duration)
            return False

        duration = self._observe("delete", started, True)
        self._evicted("delete", removed)
        logger.debug("cache_delete", key=key, removed=removed, duration_s=duration)
        return removed > 0

    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern.

        Keys are streamed with SCAN (never KEYS) and deleted in pipelined
        batches of settings.scan_batch_size. If anything fails midway the
        whole operation reports 0.

        Args:
            pattern: Redis glob pattern (``*``, ``?``, ``[...]``).

        Returns:
            Number of keys actually removed.
        """
        batch_size = self.settings.scan_batch_size
        started = time.perf_counter()
        removed = 0
        batch: list[str] = []

        try:
            async for key in self._redis.scan_iter(match=pattern, count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    removed += await self._delete_batch(batch)
                    batch = []
            if batch:
                removed += await self._delete_batch(batch)
        except _BACKEND_ERRORS as e:
            duration = self._observe("invalidate_pattern", started, False)
            logger.error(
                "cache_invalidate_failed",
                pattern=pattern,
                error=str(e),
                duration_s=duration,
            )
            return 0

        duration = self._observe("invalidate_pattern", started, True)
        self._evicted("invalidate_pattern", removed)
        logger.info("cache_invalidated", pattern=pattern, removed=removed, duration_s=duration)
        return removed

    async def _delete_batch(self, keys: list[str]) -> int:
        async with self._redis.pipeline(transaction=False) as pipe:
            for key in keys:
                pipe.delete(key)
            results = await pipe.execute()
        return sum(int(result) for result in results)

    async def is_healthy(self) -> bool:
        """Ping Redis.

        Returns:
            True if Redis answered, False otherwise.
        """
        started = time.perf_counter()
        try:
            await self._call("ping", self._redis.ping())
        except CacheUnavailableError as e:
            self._observe("ping", started, False)
            logger.warning("cache_unhealthy", error=str(e))
            return False

        self._observe("ping", started, True)
        return True

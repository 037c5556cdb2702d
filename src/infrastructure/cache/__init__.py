# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Cache infrastructure using Redis.

This package provides the Redis connection owner, the cache key codec and
the cache-aside service used by the computation pipeline.

Example:
    from src.infrastructure.cache import CacheService, RedisClient, build_cache_key

    client = RedisClient(settings.redis)
    await client.connect()
    cache = CacheService(client.redis, settings.cache)

    key = build_cache_key("course-completion", "hs-ke", "course", {"courseId": "c1"})
    await cache.set(key, result, category="results")

    await client.close()
"""

from src.infrastructure.cache.keys import (
    CACHE_PREFIX,
    DEFAULT_VERSION,
    CacheKeyParams,
    build_cache_key,
    decode_cache_key,
    encode_cache_key,
    encode_cache_key_pattern,
)
from src.infrastructure.cache.redis_client import RedisClient, RedisError
from src.infrastructure.cache.service import CacheService

__all__ = [
    "CACHE_PREFIX",
    "DEFAULT_VERSION",
    "CacheKeyParams",
    "CacheService",
    "RedisClient",
    "RedisError",
    "build_cache_key",
    "decode_cache_key",
    "encode_cache_key",
    "encode_cache_key_pattern",
]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Administrative cache invalidation.

One request selects keys in exactly one way:

- ``key``: a single cache key
- ``pattern``: a Redis glob pattern
- ``all``: every cache entry (``cache:*``)
- ``metricId`` / ``instanceId`` / ``scope``: a pattern built from key parts
"""

from src.core.context import RequestContext
from src.domains.metrics.schemas import CacheInvalidateRequest, CacheInvalidateResponse
from src.infrastructure.cache.keys import CACHE_PREFIX, SEPARATOR, encode_cache_key_pattern
from src.infrastructure.cache.service import CacheService
from src.utils.datetime import format_iso, utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)

ALL_KEYS_PATTERN = f"{CACHE_PREFIX}{SEPARATOR}*"


class CacheAdminService:
    def __init__(self, cache: CacheService) -> None:
        self._cache = cache

    async def invalidate(
        self,
        request: CacheInvalidateRequest,
        context: RequestContext | None = None,
    ) -> CacheInvalidateResponse:
        """Delete the selected entries.

        Returns:
            The number of entries removed and the pattern used, if any.
        """
        ctx = context or RequestContext()
        log = logger.bind(**ctx.log_fields())

        if request.key is not None:
            removed = 1 if await self._cache.delete(request.key) else 0
            log.info("cache_key_invalidated", key=request.key, removed=removed)
            return self._response(removed, None, f"Invalidated cache key {request.key}")

        pattern = self.pattern_for(request)
        removed = await self._cache.invalidate_pattern(pattern)
        log.info("cache_pattern_invalidated", pattern=pattern, removed=removed)
        return self._response(removed, pattern, f"Invalidated {removed} cache entries")

    @staticmethod
    def pattern_for(request: CacheInvalidateRequest) -> str:
        if request.pattern is not None:
            return request.pattern
        if request.all:
            return ALL_KEYS_PATTERN
        return encode_cache_key_pattern(
            metric_id=request.metric_id,
            instance_id=request.instance_id,
            scope=request.scope,
        )

    @staticmethod
    def _response(removed: int, pattern: str | None, message: str) -> CacheInvalidateResponse:
        return CacheInvalidateResponse(
            invalidated_count=removed,
            pattern=pattern,
            message=message,
            timestamp=format_iso(utc_now()),
        )

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Redis connection management.

This module owns the shared redis.asyncio connection pool. The pool is safe
for concurrent use by every in-flight request; CacheService is the only
component that issues commands through it.

Example:
    client = RedisClient(settings.redis)
    await client.connect()
    cache = CacheService(client.redis, settings.cache)
    ...
    await client.close()
"""

from typing import TYPE_CHECKING, Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError as BaseRedisError

if TYPE_CHECKING:
    from src.core.config.settings import RedisSettings


class RedisError(Exception):
    """Exception raised for Redis connection failures.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying Redis error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        """Initialize the Redis error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class RedisClient:
    """Owner of the Redis connection pool.

    Connections are opened lazily by the pool, so a Redis outage at startup
    does not prevent the client from being created; commands fail until the
    server is reachable again and CacheService absorbs those failures.

    Example:
        client = RedisClient(settings.redis)
        await client.connect()
        reachable = await client.ping()
        await client.close()
    """

    def __init__(self, settings: "RedisSettings") -> None:
        """Initialize the Redis client.

        Args:
            settings: Redis connection settings.
        """
        self._settings = settings
        self._pool: Optional[ConnectionPool] = None
        self._redis: Optional[Redis] = None

    async def connect(self) -> bool:
        """Create the connection pool and probe the server.

        Returns:
            True if the server answered PING, False if it is unreachable.
        """
        self._pool = ConnectionPool.from_url(
            self._settings.url,
            max_connections=self._settings.max_connections,
            socket_timeout=self._settings.socket_timeout,
            socket_connect_timeout=self._settings.socket_timeout,
            decode_responses=True,
        )
        self._redis = Redis(connection_pool=self._pool)
        return await self.ping()

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

    @property
    def redis(self) -> Redis:
        """The underlying redis.asyncio client.

        Raises:
            RedisError: If connect() has not been called.
        """
        if self._redis is None:
            raise RedisError("Redis client not connected. Call connect() first.")
        return self._redis

    async def ping(self) -> bool:
        """Check if Redis is reachable.

        Returns:
            True if Redis responds to ping, False otherwise.
        """
        try:
            await self.redis.ping()
            return True
        except (RedisError, BaseRedisError, OSError):
            return False

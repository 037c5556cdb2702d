# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the LRS
metrics service. Settings are loaded from environment variables with
sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A cached instance is provided via get_settings().

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.cache.ttl_for("results")
    300
"""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.config.lrs_instances import (
    DEFAULT_TIMEOUT_MS,
    InstanceConfig,
    legacy_instance,
    load_instances_file,
    parse_instances_json,
    parse_prefixed_env,
)
from src.core.errors import LRSConfigError

CacheCategory = Literal["metrics", "results", "health"]


class RedisSettings(BaseSettings):
    """Redis connection configuration.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password, if the server requires one.
        database: Redis database number.
        max_connections: Maximum connection pool size.
        socket_timeout: Per-command socket timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr | None = None
    database: int = 0
    max_connections: int = 10
    socket_timeout: float = 2.0

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        if self.password is not None:
            pwd = self.password.get_secret_value()
            return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"
        return f"redis://{self.host}:{self.port}/{self.database}"


class CacheSettings(BaseSettings):
    """Cache TTLs and invalidation tuning.

    Attributes:
        ttl_default: TTL in seconds when no category applies.
        ttl_metrics: TTL for catalog and metric metadata entries.
        ttl_results: TTL for computed metric results. Results older than
            this are no longer served as fresh.
        ttl_health: TTL for health probe results.
        stale_grace_seconds: Extra time a result stays physically stored
            after its TTL so it can still be served as stale data.
        scan_batch_size: Keys fetched per SCAN round trip and deleted per
            pipeline during pattern invalidation.
    """

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        extra="ignore",
    )

    ttl_default: int = Field(default=3600, ge=1)
    ttl_metrics: int = Field(default=3600, ge=1)
    ttl_results: int = Field(default=300, ge=1)
    ttl_health: int = Field(default=60, ge=1)
    stale_grace_seconds: int = Field(default=86400, ge=0)
    scan_batch_size: int = Field(default=100, ge=1)

    def ttl_for(self, category: str | None) -> int:
        """Resolve the TTL for a cache category.

        Args:
            category: One of metrics, results, health, or None.

        Returns:
            TTL in seconds; unknown categories fall back to ttl_default.
        """
        ttls = {
            "metrics": self.ttl_metrics,
            "results": self.ttl_results,
            "health": self.ttl_health,
        }
        return ttls.get(category or "", self.ttl_default)


class LRSSettings(BaseSettings):
    """Learning Record Store access configuration.

    Attributes:
        instances: JSON array of instance objects (LRS_INSTANCES).
        instances_file: YAML file listing instances (LRS_INSTANCES_FILE).
        url: Legacy single-instance endpoint (LRS_URL).
        domain: Older alias of url (LRS_DOMAIN).
        user: Legacy single-instance username.
        secret: Legacy single-instance password.
        timeout: Legacy single-instance timeout in milliseconds.
        max_statements: Cap on statements fetched for one computation.
        max_retries: Default retry budget per page fetch.
        page_limit: Page size requested by aggregate().
    """

    model_config = SettingsConfigDict(
        env_prefix="LRS_",
        extra="ignore",
    )

    instances: str | None = None
    instances_file: Path | None = None
    url: str | None = None
    domain: str | None = None
    user: str | None = None
    secret: SecretStr | None = None
    timeout: int = DEFAULT_TIMEOUT_MS
    max_statements: int = Field(default=10000, ge=1)
    max_retries: int = Field(default=3, ge=0)
    page_limit: int = Field(default=1000, ge=1, le=1000)

    def resolve_instances(self, env: Mapping[str, str] | None = None) -> list[InstanceConfig]:
        """Resolve the configured LRS instances.

        Sources are tried in order: LRS_INSTANCES, LRS_INSTANCES_FILE,
        LRS_<ID>_* variables, then the legacy single-instance variables.

        Args:
            env: Environment used for prefixed variables (default: os.environ).

        Returns:
            Non-empty list of instances.

        Raises:
            LRSConfigError: If no source is configured or one is invalid.
        """
        if self.instances:
            return parse_instances_json(self.instances)

        if self.instances_file is not None:
            return load_instances_file(self.instances_file)

        prefixed = parse_prefixed_env(os.environ if env is None else env)
        if prefixed:
            return prefixed

        endpoint = self.url or self.domain
        if endpoint and self.user:
            secret = self.secret.get_secret_value() if self.secret else ""
            return [legacy_instance(endpoint, self.user, secret, self.timeout)]

        raise LRSConfigError(
            "no LRS instances configured; set LRS_INSTANCES, LRS_INSTANCES_FILE, "
            "LRS_<ID>_ENDPOINT or LRS_URL with LRS_USER"
        )


class CircuitBreakerSettings(BaseSettings):
    """Circuit breaker configuration, applied per LRS instance.

    Attributes:
        threshold: Consecutive failures that open the circuit.
        cooldown_ms: Time the circuit stays open before a trial request.
        half_open_requests: Trial requests admitted while half-open.
    """

    model_config = SettingsConfigDict(
        env_prefix="CIRCUIT_BREAKER_",
        extra="ignore",
    )

    threshold: int = Field(default=5, ge=1)
    cooldown_ms: int = Field(default=30000, ge=0)
    half_open_requests: int = Field(default=1, ge=1)


class DegradationSettings(BaseSettings):
    """Graceful degradation switches.

    Attributes:
        enabled: Return degraded/unavailable results instead of failing.
        cache_fallback: Serve stale cache entries when the LRS is down.
    """

    model_config = SettingsConfigDict(
        env_prefix="GRACEFUL_DEGRADATION_",
        extra="ignore",
    )

    enabled: bool = True
    cache_fallback: bool = True


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        request_timeout_s: Deadline applied to LRS calls made for a request.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8080
    workers: int = 1
    request_timeout_s: float = Field(default=30.0, gt=0)


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        service_name: Name reported in logs and health responses.
        redis: Redis settings.
        cache: Cache TTL settings.
        lrs: LRS access settings.
        circuit_breaker: Circuit breaker settings.
        degradation: Graceful degradation settings.
        api: API server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    service_name: str = "lrs-metrics"

    # Subsettings - loaded with their own env prefixes
    redis: RedisSettings = Field(default_factory=RedisSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    lrs: LRSSettings = Field(default_factory=LRSSettings)
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    degradation: DegradationSettings = Field(default_factory=DegradationSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with debug enabled.
        """
        if self.environment == "production" and self.debug:
            raise ValueError(
                "Debug mode must be disabled in production. Set DEBUG=false."
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing or after changing environment variables.
    """
    get_settings.cache_clear()

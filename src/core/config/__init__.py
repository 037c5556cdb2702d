# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the LRS metrics service.

This package provides centralized configuration management:
- Settings: Pydantic-based settings loaded from environment variables
- LRS instances: JSON, YAML and environment based instance definitions

Example:
    >>> from src.core.config import get_settings
    >>> settings = get_settings()
    >>> instances = settings.lrs.resolve_instances()
"""

from src.core.config.lrs_instances import (
    BasicAuth,
    BearerAuth,
    CustomAuth,
    InstanceConfig,
    legacy_instance,
    load_instances_file,
    parse_instances_json,
    parse_prefixed_env,
)
from src.core.config.settings import (
    APISettings,
    CacheSettings,
    CircuitBreakerSettings,
    DegradationSettings,
    LRSSettings,
    RedisSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "RedisSettings",
    "CacheSettings",
    "LRSSettings",
    "CircuitBreakerSettings",
    "DegradationSettings",
    "APISettings",
    # LRS instances
    "InstanceConfig",
    "BasicAuth",
    "BearerAuth",
    "CustomAuth",
    "parse_instances_json",
    "parse_prefixed_env",
    "load_instances_file",
    "legacy_instance",
]

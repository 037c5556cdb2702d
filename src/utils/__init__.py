# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for the LRS metrics service.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
"""

from src.utils.datetime import (
    EARLIEST,
    age_seconds,
    ensure_utc,
    format_iso,
    parse_iso,
    try_parse_iso,
    utc_now,
)
from src.utils.logging import get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Datetime
    "EARLIEST",
    "utc_now",
    "ensure_utc",
    "parse_iso",
    "try_parse_iso",
    "format_iso",
    "age_seconds",
]

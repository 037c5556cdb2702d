# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""xAPI Learning Record Store access.

This package provides the statement models, the query filter builder and
the HTTP client used to pull statements from one or more LRS instances.

Example:
    from src.infrastructure.lrs import LRSClient, QueryFilters

    client = LRSClient(instance)
    statements = await client.query_statements(QueryFilters(since="2025-01-01T00:00:00Z"))
"""

from src.infrastructure.lrs.client import LRSClient, backoff_delay, context_instance_hint
from src.infrastructure.lrs.models import (
    Activity,
    ActivityDefinition,
    Actor,
    Context,
    InstanceHealth,
    Result,
    Score,
    Statement,
    Verb,
)
from src.infrastructure.lrs.query import MAX_PAGE_LIMIT, QueryFilterError, QueryFilters

__all__ = [
    "MAX_PAGE_LIMIT",
    "Activity",
    "ActivityDefinition",
    "Actor",
    "Context",
    "InstanceHealth",
    "LRSClient",
    "QueryFilterError",
    "QueryFilters",
    "Result",
    "Score",
    "Statement",
    "Verb",
    "backoff_delay",
    "context_instance_hint",
]

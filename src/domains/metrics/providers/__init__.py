# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Built-in metric providers.

Usage:
    from src.domains.metrics.providers import default_registry

    registry = default_registry()
    registry.get("topic-mastery")
"""

from src.domains.metrics.providers.course import (
    course_completion,
    course_total_score,
    learning_engagement,
)
from src.domains.metrics.providers.element import (
    element_best_attempt_date,
    element_best_attempt_score,
    element_completion_status,
    element_time_spent,
)
from src.domains.metrics.providers.topic import (
    topic_elements_best_attempts,
    topic_mastery,
    topic_total_score,
)
from src.domains.metrics.registry import MetricRegistry

BUILTIN_PROVIDERS = (
    course_completion,
    course_total_score,
    learning_engagement,
    topic_mastery,
    topic_total_score,
    topic_elements_best_attempts,
    element_best_attempt_score,
    element_best_attempt_date,
    element_completion_status,
    element_time_spent,
)


def default_registry() -> MetricRegistry:
    """A fresh registry holding every built-in provider."""
    return MetricRegistry(BUILTIN_PROVIDERS)


__all__ = [
    "BUILTIN_PROVIDERS",
    "course_completion",
    "course_total_score",
    "default_registry",
    "element_best_attempt_date",
    "element_best_attempt_score",
    "element_completion_status",
    "element_time_spent",
    "learning_engagement",
    "topic_elements_best_attempts",
    "topic_mastery",
    "topic_total_score",
]

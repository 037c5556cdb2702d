# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Element-level metrics for one learner and one learning element.

The best-attempt metrics all pick the representative statement with
select_best_attempt(); with no statements they report a null value and
``status: no_attempts``.
"""

from collections.abc import Sequence
from typing import Any

from src.domains.metrics.attempts import extract_score, is_completed, select_best_attempt
from src.domains.metrics.contract import (
    DashboardLevel,
    MetricParams,
    MetricProvider,
    MetricResult,
)
from src.domains.metrics.durations import total_duration
from src.domains.metrics.verbs import verbs_for
from src.infrastructure.lrs.models import Statement
from src.utils.datetime import format_iso, utc_now

_ELEMENT_PARAMS = ("userId", "elementId")


def _subject(params: MetricParams) -> dict[str, Any]:
    return {"userId": params.user_id, "elementId": params.element_id}


def _no_attempts(metric_id: str, params: MetricParams) -> MetricResult:
    return MetricResult(
        metric_id=metric_id,
        value=None,
        computed=utc_now(),
        metadata={"status": "no_attempts", "attemptCount": 0, **_subject(params)},
    )


def compute_best_attempt_score(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    best = select_best_attempt(statements)
    if best is None:
        return _no_attempts("element-best-attempt-score", params)
    return MetricResult(
        metric_id="element-best-attempt-score",
        value=extract_score(best),
        computed=utc_now(),
        metadata={
            "attemptCount": len(statements),
            "bestAttemptDate": format_iso(best.timestamp),
            **_subject(params),
        },
    )


def compute_best_attempt_date(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    best = select_best_attempt(statements)
    if best is None:
        return _no_attempts("element-best-attempt-date", params)
    return MetricResult(
        metric_id="element-best-attempt-date",
        value=format_iso(best.timestamp),
        computed=utc_now(),
        metadata={
            "attemptCount": len(statements),
            "bestScore": extract_score(best),
            **_subject(params),
        },
    )


def compute_completion_status(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    best = select_best_attempt(statements)
    if best is None:
        return _no_attempts("element-completion-status", params)
    return MetricResult(
        metric_id="element-completion-status",
        value=is_completed(best),
        computed=utc_now(),
        metadata={
            "attemptCount": len(statements),
            "bestAttemptDate": format_iso(best.timestamp),
            "bestScore": extract_score(best),
            **_subject(params),
        },
    )


def compute_time_spent(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    """Total seconds from ``result.duration`` across all attempts."""
    seconds, attempts = total_duration(statements)
    metadata: dict[str, Any] = {"unit": "seconds", "attemptCount": attempts, **_subject(params)}
    if params.since:
        metadata["timeRange"] = {"since": params.since, "until": params.until}
    return MetricResult(
        metric_id="element-time-spent",
        value=seconds,
        computed=utc_now(),
        metadata=metadata,
    )


element_best_attempt_score = MetricProvider(
    id="element-best-attempt-score",
    dashboard_level=DashboardLevel.ELEMENT,
    title="Element Best Attempt Score",
    description="Score of a learner's best attempt at a learning element",
    compute=compute_best_attempt_score,
    required_params=_ELEMENT_PARAMS,
    optional_params=("instanceId",),
    example={
        "params": {"userId": "user-123", "elementId": "element-42"},
        "result": {"value": 92, "metadata": {"attemptCount": 3}},
    },
    verbs=verbs_for("element-best-attempt-score"),
)

element_best_attempt_date = MetricProvider(
    id="element-best-attempt-date",
    dashboard_level=DashboardLevel.ELEMENT,
    title="Element Best Attempt Date",
    description="Date of a learner's best attempt at a learning element",
    compute=compute_best_attempt_date,
    required_params=_ELEMENT_PARAMS,
    optional_params=("instanceId",),
    example={
        "params": {"userId": "user-123", "elementId": "element-42"},
        "result": {"value": "2025-11-15T10:30:00Z", "metadata": {"bestScore": 92}},
    },
    verbs=verbs_for("element-best-attempt-date"),
)

element_completion_status = MetricProvider(
    id="element-completion-status",
    dashboard_level=DashboardLevel.ELEMENT,
    title="Element Completion Status",
    description="Whether a learner's best attempt at a learning element is complete",
    compute=compute_completion_status,
    required_params=_ELEMENT_PARAMS,
    optional_params=("instanceId",),
    example={
        "params": {"userId": "user-123", "elementId": "element-42"},
        "result": {"value": True, "metadata": {"attemptCount": 3, "bestScore": 92}},
    },
    verbs=verbs_for("element-completion-status"),
)

element_time_spent = MetricProvider(
    id="element-time-spent",
    dashboard_level=DashboardLevel.ELEMENT,
    title="Element Time Spent",
    description="Total time a learner spent on a learning element",
    compute=compute_time_spent,
    required_params=_ELEMENT_PARAMS,
    optional_params=("since", "until", "instanceId"),
    example={
        "params": {"userId": "user-123", "elementId": "element-42"},
        "result": {"value": 1800, "metadata": {"unit": "seconds", "attemptCount": 3}},
    },
    verbs=verbs_for("element-time-spent"),
)

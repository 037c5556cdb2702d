# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Course-level metrics."""

from collections.abc import Sequence

from src.domains.metrics.attempts import extract_score, group_by_element, select_best_attempt
from src.domains.metrics.contract import (
    DashboardLevel,
    MetricParams,
    MetricProvider,
    MetricResult,
)
from src.domains.metrics.durations import parse_duration
from src.domains.metrics.verbs import COMPLETION_VERBS, verbs_for
from src.infrastructure.lrs.models import Statement
from src.utils.datetime import utc_now


def _time_range(params: MetricParams) -> dict[str, str | None] | None:
    if not params.since:
        return None
    return {"since": params.since, "until": params.until}


def compute_course_completion(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    """Share of active learners (percent) with at least one completion."""
    learners: set[str] = set()
    completed: set[str] = set()
    for statement in statements:
        key = statement.actor.key
        if key is None:
            continue
        learners.add(key)
        if statement.verb.id in COMPLETION_VERBS:
            completed.add(key)

    rate = len(completed) / len(learners) * 100 if learners else 0.0
    return MetricResult(
        metric_id="course-completion",
        value=round(rate, 2),
        computed=utc_now(),
        metadata={
            "totalLearners": len(learners),
            "completedLearners": len(completed),
            "unit": "percentage",
            "courseId": params.course_id,
            "timeRange": _time_range(params),
        },
    )


def compute_learning_engagement(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    """Engagement score 0-100 from activity count and average time.

    score = min(100, activities * 2 + average minutes * 0.2)
    """
    engagement_verbs = verbs_for("learning-engagement")
    activities = [s for s in statements if s.verb.id in engagement_verbs]
    total_seconds = sum(
        parse_duration(s.result.duration) for s in activities if s.result is not None
    )
    total_minutes = total_seconds / 60
    avg_minutes = total_minutes / len(activities) if activities else 0.0
    score = min(100.0, len(activities) * 2 + avg_minutes * 0.2)

    return MetricResult(
        metric_id="learning-engagement",
        value=round(score, 2),
        computed=utc_now(),
        metadata={
            "activityCount": len(activities),
            "totalDurationMinutes": round(total_minutes, 2),
            "avgTimeMinutes": round(avg_minutes, 2),
            "unit": "score",
            "courseId": params.course_id,
            "topicId": params.topic_id,
        },
    )


course_completion = MetricProvider(
    id="course-completion",
    dashboard_level=DashboardLevel.COURSE,
    title="Course Completion Rate",
    description="Percentage of active learners who completed the course",
    compute=compute_course_completion,
    required_params=("courseId",),
    optional_params=("since", "until", "instanceId"),
    example={
        "params": {"courseId": "course-123", "since": "2025-01-01T00:00:00Z"},
        "result": {
            "value": 85.5,
            "metadata": {"totalLearners": 40, "completedLearners": 34, "unit": "percentage"},
        },
    },
    verbs=verbs_for("course-completion"),
)

learning_engagement = MetricProvider(
    id="learning-engagement",
    dashboard_level=DashboardLevel.COURSE,
    title="Learning Engagement Score",
    description="Activity volume and average time spent on learning activities",
    compute=compute_learning_engagement,
    required_params=("courseId",),
    optional_params=("topicId", "since", "until", "instanceId"),
    example={
        "params": {"courseId": "course-123", "topicId": "topic-456"},
        "result": {
            "value": 38.46,
            "metadata": {"activityCount": 18, "avgTimeMinutes": 12.3, "unit": "score"},
        },
    },
    verbs=verbs_for("learning-engagement"),
)


def compute_course_total_score(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    """Raw points over the course: each element counts its best attempt once.

    Elements without any scored attempt are left out of the total and the
    element count.
    """
    total = 0.0
    element_count = 0
    for attempts in group_by_element(statements).values():
        best = select_best_attempt(attempts)
        score = extract_score(best) if best is not None else None
        if score is None:
            continue
        total += score
        element_count += 1

    return MetricResult(
        metric_id="course-total-score",
        value=total,
        computed=utc_now(),
        metadata={
            "unit": "points",
            "elementCount": element_count,
            "avgScore": round(total / element_count, 2) if element_count else 0.0,
            "userId": params.user_id,
            "courseId": params.course_id,
            "timeRange": _time_range(params),
        },
    )


course_total_score = MetricProvider(
    id="course-total-score",
    dashboard_level=DashboardLevel.COURSE,
    title="Course Total Score",
    description="Total score earned by a learner on the learning elements of a course",
    compute=compute_course_total_score,
    required_params=("userId", "courseId"),
    optional_params=("since", "until", "instanceId"),
    example={
        "params": {"userId": "user-123", "courseId": "course-101"},
        "result": {
            "value": 850,
            "metadata": {"unit": "points", "elementCount": 12, "avgScore": 70.83},
        },
    },
    verbs=verbs_for("course-total-score"),
)

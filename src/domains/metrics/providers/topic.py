# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Topic-level metrics."""

from collections.abc import Sequence
from typing import Any

from src.domains.metrics.attempts import (
    extract_score,
    group_by_element,
    is_completed,
    select_best_attempt,
    statement_time,
)
from src.domains.metrics.contract import (
    DashboardLevel,
    MetricParams,
    MetricProvider,
    MetricResult,
)
from src.domains.metrics.verbs import verbs_for
from src.infrastructure.lrs.models import Score, Statement
from src.utils.datetime import format_iso, utc_now


def normalize_score(score: Score) -> float:
    """Score as a percentage.

    scaled * 100, else raw within [min, max], else raw / max, else raw.
    """
    if score.scaled is not None:
        return score.scaled * 100
    raw = score.raw or 0.0
    if score.raw is not None and score.min is not None and score.max is not None:
        span = score.max - score.min
        return (raw - score.min) / span * 100 if span > 0 else 0.0
    if score.raw is not None and score.max:
        return raw / score.max * 100
    return raw


def compute_topic_mastery(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    """Average normalized score of scored assessment statements."""
    scoring_verbs = verbs_for("topic-mastery")
    scored = [
        s.result for s in statements
        if s.verb.id in scoring_verbs and s.result is not None and s.result.score is not None
    ]
    scores = [normalize_score(result.score) for result in scored if result.score is not None]
    successes = sum(1 for result in scored if result.success is True)

    avg = sum(scores) / len(scores) if scores else 0.0
    success_rate = successes / len(scored) if scored else 0.0
    return MetricResult(
        metric_id="topic-mastery",
        value=round(avg, 2),
        computed=utc_now(),
        metadata={
            "avgScore": round(avg, 2),
            "attemptCount": len(scored),
            "successCount": successes,
            "successRate": round(success_rate, 4),
            "unit": "score",
            "courseId": params.course_id,
            "topicId": params.topic_id,
        },
    )


def compute_topic_total_score(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    """Sum of best-attempt scores over the topic's elements.

    Elements without any scored attempt contribute neither to the total nor
    to the element count.
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

    metadata = {
        "unit": "points",
        "elementCount": element_count,
        "avgScore": round(total / element_count, 2) if element_count else 0.0,
        "userId": params.user_id,
        "courseId": params.course_id,
        "topicId": params.topic_id,
    }
    if params.since:
        metadata["timeRange"] = {"since": params.since, "until": params.until}
    return MetricResult(
        metric_id="topic-total-score",
        value=total,
        computed=utc_now(),
        metadata=metadata,
    )


def compute_topic_elements_best_attempts(
    params: MetricParams, statements: Sequence[Statement]
) -> MetricResult:
    """Best attempt of every element in the topic, ordered by element id.

    Each entry carries the best attempt's score (None when unscored), whether
    that attempt is a completion, and the time of the latest completing
    statement of the element (None when it was never completed).
    """
    values: list[dict[str, Any]] = []
    for element_id, attempts in sorted(group_by_element(statements).items()):
        best = select_best_attempt(attempts)
        completions = [s for s in attempts if is_completed(s) and s.timestamp is not None]
        completed_at = max(completions, key=statement_time).timestamp if completions else None
        values.append({
            "elementId": element_id,
            "score": extract_score(best) if best is not None else None,
            "completionStatus": is_completed(best) if best is not None else None,
            "completedAt": format_iso(completed_at),
        })

    return MetricResult(
        metric_id="topic-elements-best-attempts",
        value=values,
        computed=utc_now(),
        metadata={
            "elementCount": len(values),
            "userId": params.user_id,
            "topicId": params.topic_id,
        },
    )


topic_mastery = MetricProvider(
    id="topic-mastery",
    dashboard_level=DashboardLevel.TOPIC,
    title="Topic Mastery Score",
    description="Average normalized score on topic assessments and success rate",
    compute=compute_topic_mastery,
    required_params=("courseId", "topicId"),
    optional_params=("since", "until", "instanceId"),
    example={
        "params": {"courseId": "course-123", "topicId": "topic-456"},
        "result": {"value": 88.1, "metadata": {"attemptCount": 12, "successRate": 0.83}},
    },
    verbs=verbs_for("topic-mastery"),
)

topic_total_score = MetricProvider(
    id="topic-total-score",
    dashboard_level=DashboardLevel.TOPIC,
    title="Topic Total Score",
    description="Total of a learner's best-attempt scores on the elements of a topic",
    compute=compute_topic_total_score,
    required_params=("userId", "courseId", "topicId"),
    optional_params=("since", "until", "instanceId"),
    example={
        "params": {"userId": "user-123", "courseId": "course-101", "topicId": "topic-5"},
        "result": {"value": 340, "metadata": {"unit": "points", "elementCount": 5}},
    },
    verbs=verbs_for("topic-total-score"),
)

topic_elements_best_attempts = MetricProvider(
    id="topic-elements-best-attempts",
    dashboard_level=DashboardLevel.ELEMENT,
    title="Topic Elements Best Attempts",
    description=(
        "For each learning element of a topic, the learner's highest-scoring attempt "
        "with its score, completion status and completion time"
    ),
    compute=compute_topic_elements_best_attempts,
    version="3.0.0",
    required_params=("userId", "topicId"),
    optional_params=("courseId", "since", "until", "instanceId"),
    output_type="array",
    example={
        "params": {"userId": "user-123", "topicId": "topic-1"},
        "result": {
            "value": [
                {"elementId": "element-1", "score": 85, "completionStatus": True,
                 "completedAt": "2026-02-04T12:00:00Z"},
                {"elementId": "element-3", "score": None, "completionStatus": False,
                 "completedAt": None},
            ],
        },
    },
    verbs=verbs_for("topic-elements-best-attempts"),
)

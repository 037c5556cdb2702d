# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""xAPI verb groups relevant to each metric.

The computation service narrows fetched statements to the verbs a metric
actually reads. Metrics missing from METRIC_VERB_MAP see every verb.
"""

COMPLETION_VERBS: tuple[str, ...] = (
    "http://adlnet.gov/expapi/verbs/completed",
    "https://wiki.haski.app/variables/xapi.completed",
    "https://wiki.haski.app/variables/services.completed",
)

ANSWER_VERBS: tuple[str, ...] = (
    "http://adlnet.gov/expapi/verbs/answered",
    "https://wiki.haski.app/variables/xapi.answered",
    "https://wiki.haski.app/variables/services.answered",
)

SCORE_VERBS: tuple[str, ...] = (
    *ANSWER_VERBS,
    *COMPLETION_VERBS,
    "http://adlnet.gov/expapi/verbs/passed",
    "http://adlnet.gov/expapi/verbs/failed",
)

ENGAGEMENT_VERBS: tuple[str, ...] = (
    "http://adlnet.gov/expapi/verbs/experienced",
    "http://activitystrea.ms/schema/1.0/open",
    "https://wiki.haski.app/variables/xapi.viewed",
    "https://wiki.haski.app/variables/xapi.interacted",
    "http://adlnet.gov/expapi/verbs/attempted",
    "https://wiki.haski.app/variables/xapi.clicked",
    "https://wiki.haski.app/variables/services.clicked",
    "https://wiki.haski.app/variables/services.changed",
    "https://wiki.haski.app/variables/services.selected",
    "https://wiki.haski.app/variables/services.pressed",
    "https://wiki.haski.app/variables/services.started",
)

# course-completion counts every active learner, so it is not narrowed
METRIC_VERB_MAP: dict[str, tuple[str, ...]] = {
    "topic-mastery": SCORE_VERBS,
    "topic-total-score": SCORE_VERBS,
    "course-total-score": SCORE_VERBS,
    "topic-elements-best-attempts": SCORE_VERBS,
    "element-best-attempt-score": SCORE_VERBS,
    "element-best-attempt-date": SCORE_VERBS,
    "element-completion-status": SCORE_VERBS,
    "learning-engagement": ENGAGEMENT_VERBS,
}


def verbs_for(metric_id: str) -> tuple[str, ...]:
    """Verbs a metric reads; empty means no narrowing."""
    return METRIC_VERB_MAP.get(metric_id, ())

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scope and time-window filtering of fetched statements.

LRS queries are only narrowed by time on the server side. Everything else
that defines a request's scope (course, topic, element, learner, verbs) is
applied here before statements reach a metric's compute function.

Courses and topics are identified through ``context.contextActivities``
parents and groupings. A caller may name them by full activity IRI or by
the short id embedded in it (``?id=10``, ``/course/math-101``,
``/topic/5``).
"""

import re
from collections.abc import Collection, Iterable
from datetime import datetime

from src.domains.metrics.attempts import statement_time
from src.domains.metrics.contract import MetricParams
from src.infrastructure.lrs.models import Activity, Statement
from src.utils.datetime import parse_iso

COURSE_ACTIVITY_TYPES = frozenset({
    "http://id.tincanapi.com/activitytype/lms/course",
    "http://id.tincanapi.com/activitytype/course",
    "http://adlnet.gov/expapi/activities/course",
})

TOPIC_ACTIVITY_TYPES = frozenset({
    "https://wiki.haski.app/functions/pages.Topic",
    "http://adlnet.gov/expapi/activities/topic",
})

_NOT_A_COURSE = ("/mod/", "/topic/", "/topics/", "/element/", "/activity/")
_COURSE_PATH = re.compile(r"/courses?/[^/]+$")
_COURSE_QUERY_ID = re.compile(r"[?&]id=(\d+)")
_COURSE_PATH_ID = re.compile(r"/courses?/([^/?#]+)")
_TOPIC_PATH_ID = re.compile(r"/topic/(\d+)")


def _context_activities(statement: Statement) -> list[Activity]:
    return statement.context_parents + statement.context_groupings


def is_course_activity(activity: Activity) -> bool:
    if not activity.id:
        return False
    if activity.definition is not None and activity.definition.type in COURSE_ACTIVITY_TYPES:
        return True
    if any(marker in activity.id for marker in _NOT_A_COURSE):
        return False
    return "/course/view.php" in activity.id or bool(_COURSE_PATH.search(activity.id))


def is_topic_activity(activity: Activity) -> bool:
    if not activity.id:
        return False
    if activity.definition is not None and activity.definition.type in TOPIC_ACTIVITY_TYPES:
        return True
    return "/topic/" in activity.id or "/topics/" in activity.id


def extract_course_ids(statement: Statement) -> list[str]:
    """Course activity ids in the statement context, deduplicated, in order."""
    ids = (a.id for a in _context_activities(statement) if is_course_activity(a))
    return list(dict.fromkeys(ids))


def extract_topic_ids(statement: Statement) -> list[str]:
    """Topic activity ids in the statement context, deduplicated, in order."""
    ids = (a.id for a in _context_activities(statement) if is_topic_activity(a))
    return list(dict.fromkeys(ids))


def extract_course_id_from_url(url: str) -> str | None:
    """Short course id from ``?id=10`` or ``/course(s)/<id>``."""
    if not url:
        return None
    if match := _COURSE_QUERY_ID.search(url):
        return match.group(1)
    if match := _COURSE_PATH_ID.search(url):
        return match.group(1)
    return None


def extract_topic_id_from_url(url: str) -> str | None:
    if not url:
        return None
    match = _TOPIC_PATH_ID.search(url)
    return match.group(1) if match else None


def matches_course(course_id: str, target: str) -> bool:
    """Compare course ids given as IRIs or short ids."""
    if not course_id or not target:
        return False
    if course_id == target:
        return True

    extracted = extract_course_id_from_url(course_id)
    extracted_target = extract_course_id_from_url(target)
    if "://" not in target and extracted == target:
        return True
    if "://" not in course_id and course_id == extracted_target:
        return True
    return extracted is not None and extracted == extracted_target


def matches_topic(topic_id: str, target: str) -> bool:
    """Compare topic ids given as IRIs or short ids."""
    if not topic_id or not target:
        return False
    if topic_id == target:
        return True
    if "://" not in target and extract_topic_id_from_url(topic_id) == target:
        return True
    return "://" not in topic_id and topic_id == extract_topic_id_from_url(target)


def matches_element(object_id: str | None, element_id: str) -> bool:
    """Element ids match the object IRI exactly or as its last path segment."""
    if not object_id:
        return False
    return object_id == element_id or object_id.rstrip("/").endswith(f"/{element_id}")


def in_scope(statement: Statement, params: MetricParams) -> bool:
    """Whether a statement belongs to the course/topic/element/learner scope."""
    if params.course_id and not any(
        matches_course(course_id, params.course_id)
        for course_id in extract_course_ids(statement)
    ):
        return False
    if params.topic_id and not any(
        matches_topic(topic_id, params.topic_id)
        for topic_id in extract_topic_ids(statement)
    ):
        return False
    if params.element_id and not matches_element(statement.object.id, params.element_id):
        return False
    if params.user_id and statement.actor.key != params.user_id:
        return False
    return True


def in_window(statement: Statement, since: datetime | None, until: datetime | None) -> bool:
    moment = statement_time(statement)
    if since is not None and moment < since:
        return False
    if until is not None and moment > until:
        return False
    return True


def filter_statements(
    statements: Iterable[Statement],
    params: MetricParams,
    verbs: Collection[str] = (),
) -> list[Statement]:
    """Narrow statements to a request's scope, time window and verbs.

    Args:
        statements: Fetched statements. Not modified.
        params: Validated request parameters.
        verbs: Verb IRIs to keep; empty keeps every verb.

    Returns:
        A new list with the matching statements, in input order.
    """
    since = parse_iso(params.since)
    until = parse_iso(params.until)
    return [
        s
        for s in statements
        if (not verbs or s.verb.id in verbs)
        and in_window(s, since, until)
        and in_scope(s, params)
    ]

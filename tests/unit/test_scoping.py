# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for scope and time-window filtering."""

import pytest

from src.domains.metrics.contract import MetricParams
from src.domains.metrics.scoping import (
    extract_course_id_from_url,
    extract_course_ids,
    extract_topic_ids,
    filter_statements,
    matches_course,
    matches_element,
    matches_topic,
)


class TestMatching:
    """Tests for id comparison helpers."""

    @pytest.mark.parametrize(
        ("course_id", "target", "expected"),
        [
            ("https://moodle.example.org/course/view.php?id=7", "7", True),
            ("https://moodle.example.org/course/view.php?id=7", "8", False),
            (
                "https://moodle.example.org/course/view.php?id=7",
                "https://other.example.org/course/view.php?id=7",
                True,
            ),
            ("https://lms.example.org/courses/math-101", "math-101", True),
            ("7", "https://moodle.example.org/course/view.php?id=7", True),
            ("", "7", False),
        ],
    )
    def test_matches_course(self, course_id: str, target: str, expected: bool) -> None:
        assert matches_course(course_id, target) is expected

    @pytest.mark.parametrize(
        ("topic_id", "target", "expected"),
        [
            ("https://moodle.example.org/course/7/topic/3", "3", True),
            ("https://moodle.example.org/course/7/topic/3", "4", False),
            ("3", "https://moodle.example.org/course/7/topic/3", True),
            ("https://a/topic/3", "https://a/topic/3", True),
        ],
    )
    def test_matches_topic(self, topic_id: str, target: str, expected: bool) -> None:
        assert matches_topic(topic_id, target) is expected

    def test_matches_element(self) -> None:
        """Test exact and last-segment element matches."""
        assert matches_element("https://lms/element/42", "https://lms/element/42")
        assert matches_element("https://lms/element/42/", "42")
        assert not matches_element("https://lms/element/142", "42")
        assert not matches_element(None, "42")

    def test_extract_course_id_from_url(self) -> None:
        assert extract_course_id_from_url("https://m/course/view.php?id=10") == "10"
        assert extract_course_id_from_url("https://m/courses/abc") == "abc"
        assert extract_course_id_from_url("https://m/other") is None


class TestContextExtraction:
    """Tests for course and topic ids found in statement context."""

    def test_course_and_topic_from_parents(self, make_stmt, urls) -> None:
        """Test that module pages are not mistaken for courses."""
        stmt = make_stmt(
            parents=[urls["topic"], "https://moodle.example.org/mod/page/view.php?id=99"],
            groupings=[urls["course"], urls["course"]],
        )

        assert extract_course_ids(stmt) == [urls["course"]]
        assert extract_topic_ids(stmt) == [urls["topic"]]

    def test_course_by_activity_type(self, make_stmt) -> None:
        """Test that an explicit course activity type is recognised."""
        stmt = make_stmt(
            context={
                "contextActivities": {
                    "grouping": [
                        {
                            "id": "https://lms.example.org/x/1",
                            "definition": {"type": "http://adlnet.gov/expapi/activities/course"},
                        }
                    ]
                }
            }
        )

        assert extract_course_ids(stmt) == ["https://lms.example.org/x/1"]


class TestFilterStatements:
    """Tests for filter_statements."""

    def test_course_scope(self, make_stmt, urls) -> None:
        """Test that only statements of the requested course remain."""
        inside = make_stmt(groupings=[urls["course"]])
        other = make_stmt(groupings=["https://moodle.example.org/course/view.php?id=8"])
        unscoped = make_stmt()

        result = filter_statements([inside, other, unscoped], MetricParams(course_id="7"))

        assert result == [inside]

    def test_learner_and_element_scope(self, make_stmt) -> None:
        keep = make_stmt(user="u1", object_id="https://lms/element/42")
        wrong_user = make_stmt(user="u2", object_id="https://lms/element/42")
        wrong_element = make_stmt(user="u1", object_id="https://lms/element/43")

        result = filter_statements(
            [keep, wrong_user, wrong_element],
            MetricParams(user_id="u1", element_id="42"),
        )

        assert result == [keep]

    def test_time_window_is_inclusive(self, make_stmt) -> None:
        """Test since/until bounds, and that undated statements fall outside."""
        statements = [
            make_stmt(timestamp="2025-01-01T00:00:00Z"),
            make_stmt(timestamp="2025-01-15T00:00:00Z"),
            make_stmt(timestamp="2025-02-01T00:00:00Z"),
            make_stmt(timestamp="2025-02-01T00:00:01Z"),
            make_stmt(timestamp=None),
        ]

        result = filter_statements(
            statements,
            MetricParams(since="2025-01-01T00:00:00Z", until="2025-02-01T00:00:00Z"),
        )

        assert result == statements[:3]

    def test_verb_narrowing(self, make_stmt, urls) -> None:
        completed = make_stmt(verb=urls["completed"])
        viewed = make_stmt(verb=urls["experienced"])

        assert filter_statements([completed, viewed], MetricParams(), [urls["completed"]]) == [
            completed
        ]
        assert filter_statements([completed, viewed], MetricParams()) == [completed, viewed]

    def test_input_is_not_modified(self, make_stmt) -> None:
        statements = [make_stmt(user="u1"), make_stmt(user="u2")]

        result = filter_statements(statements, MetricParams(user_id="u1"))

        assert len(statements) == 2
        assert result is not statements

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for xAPI query filters."""

import json

import pytest

from src.infrastructure.lrs import MAX_PAGE_LIMIT, QueryFilterError, QueryFilters


class TestQueryFilters:
    """Tests for QueryFilters."""

    def test_empty_filters_render_nothing(self) -> None:
        assert QueryFilters().to_params() == {}

    def test_renders_set_filters(self) -> None:
        """Test booleans as lowercase strings and the limit as text."""
        filters = QueryFilters(
            verb="http://adlnet.gov/expapi/verbs/completed",
            activity="https://lms/course/1",
            related_activities=True,
            ascending=False,
            since="2025-01-01T00:00:00Z",
            until="2025-02-01T00:00:00Z",
            limit=500,
            format="ids",
        )

        assert filters.to_params() == {
            "verb": "http://adlnet.gov/expapi/verbs/completed",
            "activity": "https://lms/course/1",
            "related_activities": "true",
            "ascending": "false",
            "since": "2025-01-01T00:00:00Z",
            "until": "2025-02-01T00:00:00Z",
            "limit": "500",
            "format": "ids",
        }

    def test_for_actor_serializes_agent(self) -> None:
        """Test that the agent filter is compact JSON."""
        filters = QueryFilters.for_actor("https://moodle.example.org", "u1", since="2025-01-01")

        agent = json.loads(filters.to_params()["agent"])
        assert agent == {
            "objectType": "Agent",
            "account": {"homePage": "https://moodle.example.org", "name": "u1"},
        }
        assert " " not in filters.to_params()["agent"]
        assert filters.since == "2025-01-01"

    def test_with_limit_copies(self) -> None:
        original = QueryFilters(verb="v")

        limited = original.with_limit(10)

        assert limited.limit == 10
        assert original.limit is None

    @pytest.mark.parametrize("limit", [-1, MAX_PAGE_LIMIT + 1])
    def test_limit_range(self, limit: int) -> None:
        with pytest.raises(QueryFilterError):
            QueryFilters(limit=limit)

    def test_since_after_until(self) -> None:
        with pytest.raises(QueryFilterError, match="since must not be after until"):
            QueryFilters(since="2025-02-01T00:00:00Z", until="2025-01-01T00:00:00Z")

    def test_malformed_timestamp(self) -> None:
        with pytest.raises(QueryFilterError):
            QueryFilters(since="last week")

    def test_unknown_format(self) -> None:
        with pytest.raises(QueryFilterError):
            QueryFilters(format="full")  # type: ignore[arg-type]

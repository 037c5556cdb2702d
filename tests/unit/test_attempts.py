# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for best-attempt selection and duration parsing."""

import pytest

from src.domains.metrics.attempts import (
    extract_score,
    group_by_element,
    is_completed,
    select_best_attempt,
)
from src.domains.metrics.durations import parse_duration, total_duration


class TestSelectBestAttempt:
    """Tests for select_best_attempt."""

    def test_empty_selects_nothing(self) -> None:
        """Test that no statements means no best attempt."""
        assert select_best_attempt([]) is None

    def test_highest_score_wins(self, make_stmt, urls) -> None:
        """Test that a higher score beats a more recent attempt."""
        low = make_stmt(verb=urls["answered"], score={"raw": 40}, timestamp="2025-03-03T10:00:00Z")
        high = make_stmt(verb=urls["answered"], score={"raw": 90}, timestamp="2025-03-01T10:00:00Z")

        assert select_best_attempt([low, high]) is high

    def test_score_tie_goes_to_latest(self, make_stmt, urls) -> None:
        """Test that equal scores are broken by recency."""
        older = make_stmt(verb=urls["answered"], score={"raw": 80}, timestamp="2025-03-01T10:00:00Z")
        newer = make_stmt(verb=urls["answered"], score={"raw": 80}, timestamp="2025-03-02T10:00:00Z")

        assert select_best_attempt([older, newer]) is newer

    def test_scaled_score_is_used_without_raw(self, make_stmt, urls) -> None:
        """Test the scaled fallback."""
        scaled = make_stmt(verb=urls["answered"], score={"scaled": 0.9})
        raw = make_stmt(verb=urls["answered"], score={"raw": 0.5})

        assert select_best_attempt([raw, scaled]) is scaled

    def test_scored_attempt_beats_later_completion(self, make_stmt, urls) -> None:
        """Test that any score takes precedence over completions."""
        scored = make_stmt(verb=urls["answered"], score={"raw": 10}, timestamp="2025-03-01T10:00:00Z")
        completed = make_stmt(verb=urls["completed"], timestamp="2025-03-05T10:00:00Z")

        assert select_best_attempt([completed, scored]) is scored

    def test_latest_completion_without_scores(self, make_stmt, urls) -> None:
        """Test that the most recent completion wins when nothing is scored."""
        first = make_stmt(verb=urls["completed"], timestamp="2025-03-01T10:00:00Z")
        second = make_stmt(verb=urls["completed"], timestamp="2025-03-02T10:00:00Z")
        viewed = make_stmt(verb=urls["experienced"], timestamp="2025-03-09T10:00:00Z")

        assert select_best_attempt([first, viewed, second]) is second

    def test_latest_statement_as_last_resort(self, make_stmt, urls) -> None:
        """Test the recency fallback."""
        old = make_stmt(verb=urls["experienced"], timestamp="2025-03-01T10:00:00Z")
        new = make_stmt(verb=urls["experienced"], timestamp="2025-03-02T10:00:00Z")

        assert select_best_attempt([new, old]) is new

    def test_missing_timestamp_orders_oldest(self, make_stmt, urls) -> None:
        """Test that an undated statement never beats a dated one on recency."""
        undated = make_stmt(verb=urls["experienced"], timestamp=None)
        dated = make_stmt(verb=urls["experienced"], timestamp="2020-01-01T00:00:00Z")

        assert select_best_attempt([undated, dated]) is dated

    def test_input_is_not_modified(self, make_stmt, urls) -> None:
        """Test that selection leaves the input list alone."""
        statements = [
            make_stmt(verb=urls["answered"], score={"raw": 1}),
            make_stmt(verb=urls["answered"], score={"raw": 2}),
        ]
        before = list(statements)

        select_best_attempt(statements)

        assert statements == before


class TestCompletionAndScore:
    """Tests for the attempt helpers."""

    def test_explicit_completion_flag_wins(self, make_stmt, urls) -> None:
        """Test that result.completion overrides the verb."""
        assert is_completed(make_stmt(verb=urls["completed"], completion=False)) is False
        assert is_completed(make_stmt(verb=urls["experienced"], completion=True)) is True

    def test_completion_verb_without_flag(self, make_stmt, urls) -> None:
        assert is_completed(make_stmt(verb=urls["completed"])) is True
        assert is_completed(make_stmt(verb=urls["answered"])) is False

    def test_extract_score(self, make_stmt) -> None:
        assert extract_score(make_stmt(score={"raw": 7, "scaled": 0.7})) == 7
        assert extract_score(make_stmt()) is None

    def test_group_by_element(self, make_stmt) -> None:
        """Test grouping by object id, keeping order."""
        a1 = make_stmt(object_id="https://lms/a", user="u1")
        b1 = make_stmt(object_id="https://lms/b")
        a2 = make_stmt(object_id="https://lms/a", user="u2")

        groups = group_by_element([a1, b1, a2])

        assert list(groups) == ["https://lms/a", "https://lms/b"]
        assert groups["https://lms/a"] == [a1, a2]


class TestDurations:
    """Tests for ISO-8601 duration parsing."""

    @pytest.mark.parametrize(
        ("value", "seconds"),
        [
            ("PT30S", 30.0),
            ("PT1H2M3.5S", 3723.5),
            ("P1DT1M", 86460.0),
            ("pt5m", 300.0),
            ("P1Y", 0.0),
            ("PT", 0.0),
            ("garbage", 0.0),
            ("", 0.0),
            (None, 0.0),
        ],
    )
    def test_parse_duration(self, value: str | None, seconds: float) -> None:
        assert parse_duration(value) == seconds

    def test_total_duration_counts_positive_only(self, make_stmt) -> None:
        """Test that statements without a usable duration are not counted."""
        statements = [
            make_stmt(duration="PT10M"),
            make_stmt(duration="PT0S"),
            make_stmt(),
            make_stmt(duration="PT30S"),
        ]

        assert total_duration(statements) == (630.0, 2)

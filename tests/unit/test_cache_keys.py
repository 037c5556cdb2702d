# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the cache key codec."""

import fnmatch

import pytest

from src.infrastructure.cache.keys import (
    CacheKeyParams,
    build_cache_key,
    decode_cache_key,
    encode_cache_key,
    encode_cache_key_pattern,
)


class TestEncodeCacheKey:
    """Tests for encode_cache_key and build_cache_key."""

    def test_layout_with_filters(self) -> None:
        """Test that filters are sorted by key and joined with commas."""
        key = build_cache_key(
            "course-completion",
            "hs-ke",
            "course",
            {"since": "2025-01-01", "courseId": "c1"},
        )

        assert key == "cache:course-completion:hs-ke:course:courseId=c1,since=2025-01-01:v1"

    def test_layout_without_filters(self) -> None:
        """Test that the filter segment is omitted when there are no filters."""
        assert build_cache_key("learning-engagement", "hs-ke", "global") == (
            "cache:learning-engagement:hs-ke:global:v1"
        )

    def test_empty_filters_equal_no_filters(self) -> None:
        """Test that an empty mapping encodes like None."""
        assert build_cache_key("m", "i", "course", {}) == build_cache_key("m", "i", "course")

    def test_filter_order_does_not_matter(self) -> None:
        """Test that insertion order never changes the key."""
        first = build_cache_key("m", "i", "topic", {"a": 1, "b": "x", "c": True})
        second = build_cache_key("m", "i", "topic", {"c": True, "a": 1, "b": "x"})

        assert first == second

    def test_reserved_characters_are_escaped(self) -> None:
        """Test that separators inside values cannot split the key."""
        key = build_cache_key(
            "m", "i", "course", {"courseId": "https://lms.example.org/c?id=1,2"}
        )

        assert key.count(":") == 5
        assert "%3A" in key
        assert "%2C" in key
        assert "%3D" in key

    def test_version_is_last_segment(self) -> None:
        """Test a custom key version."""
        key = encode_cache_key(CacheKeyParams("m", "i", "global", None, "v2"))

        assert key.endswith(":v2")


class TestDecodeCacheKey:
    """Tests for decode_cache_key."""

    @pytest.mark.parametrize(
        "params",
        [
            CacheKeyParams("course-completion", "hs-ke", "course", {"courseId": "c1"}),
            CacheKeyParams("m", "i", "global"),
            CacheKeyParams(
                "weird:metric",
                "hs-ke",
                "element",
                {"elementId": "https://lms/a:b,c=d%20", "userId": "u=1"},
            ),
            CacheKeyParams("m", "i", "topic", {"limit": 5, "active": False, "ratio": 0.5}),
        ],
    )
    def test_decode_inverts_encode(self, params: CacheKeyParams) -> None:
        """Test that decoding an encoded key gives the components back."""
        assert decode_cache_key(encode_cache_key(params)) == params

    def test_values_are_coerced(self) -> None:
        """Test that numeric and boolean renderings become typed values."""
        decoded = decode_cache_key("cache:m:i:course:a=true,b=42,c=1.5,d=x:v1")

        assert decoded is not None
        assert decoded.filters == {"a": True, "b": 42, "c": 1.5, "d": "x"}

    @pytest.mark.parametrize("value", [1e20, 1.5e-07, -0.5, 2.5e-300])
    def test_float_filters_round_trip(self, value: float) -> None:
        """Test that floats rendered in exponent notation decode as floats."""
        params = CacheKeyParams("m", "hs-ke", "course", {"threshold": value})

        decoded = decode_cache_key(encode_cache_key(params))

        assert decoded == params
        assert isinstance(decoded.filters["threshold"], float)

    def test_exponent_rendering_is_coerced(self) -> None:
        """Test that an exponent without a decimal point is still a float."""
        decoded = decode_cache_key("cache:m:i:course:x=1e+20,y=-3E-2:v1")

        assert decoded is not None
        assert decoded.filters == {"x": 1e20, "y": -0.03}

    @pytest.mark.parametrize(
        "key",
        [
            "session:abc",
            "cache:m:i",
            "cache:m:i:s:f:v1:extra",
            "cache:m:i:s:no-equals-sign:v1",
        ],
    )
    def test_foreign_keys_decode_to_none(self, key: str) -> None:
        """Test that keys not produced by the codec are rejected."""
        assert decode_cache_key(key) is None


class TestEncodeCacheKeyPattern:
    """Tests for encode_cache_key_pattern."""

    def test_metric_pattern(self) -> None:
        """Test that unspecified components become wildcards."""
        assert encode_cache_key_pattern(metric_id="course-completion") == (
            "cache:course-completion:*:*:*"
        )

    def test_instance_and_version_pattern(self) -> None:
        """Test that a version without filters absorbs the filter segment."""
        assert encode_cache_key_pattern(instance_id="hs-ke", version="v1") == "cache:*:hs-ke:*:*v1"

    def test_pattern_matches_keys_with_and_without_filters(self) -> None:
        """Test that a metric pattern selects every key of that metric."""
        pattern = encode_cache_key_pattern(metric_id="topic-mastery")
        with_filters = build_cache_key("topic-mastery", "hs-ke", "topic", {"topicId": "t1"})
        without_filters = build_cache_key("topic-mastery", "hs-aug", "global")
        other = build_cache_key("course-completion", "hs-ke", "course", {"courseId": "c"})

        assert fnmatch.fnmatchcase(with_filters, pattern)
        assert fnmatch.fnmatchcase(without_filters, pattern)
        assert not fnmatch.fnmatchcase(other, pattern)

    def test_pattern_with_filters(self) -> None:
        """Test that explicit filters are encoded like in keys."""
        pattern = encode_cache_key_pattern(
            metric_id="m", filters={"userId": "u1", "courseId": "c1"}
        )

        assert pattern == "cache:m:*:*:courseId=c1,userId=u1:*"
        assert fnmatch.fnmatchcase(
            build_cache_key("m", "hs-ke", "course", {"courseId": "c1", "userId": "u1"}),
            pattern,
        )

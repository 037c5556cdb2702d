# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Cache key encoding for metric results.

Key layout::

    cache:{metricId}:{instanceId}:{scope}:{k1=v1,k2=v2}:{version}

The filter segment is left out when there are no filters. Filter pairs are
sorted by key so the same filters always give the same key. The characters
``%``, ``:``, ``,`` and ``=`` are percent-encoded in every segment, which
keeps keys splittable and makes decode_cache_key the exact inverse of
encode_cache_key.

Filter values are rendered as text: booleans as ``true``/``false``, numbers
with str() (floats may use exponent notation). Decoding turns those renderings
back into bool, int and float, so a filter value that is a string looking
like a number or a boolean does not survive a round trip.

Example:
    >>> encode_cache_key(CacheKeyParams("course-completion", "hs-ke", "course",
    ...                                 {"courseId": "c1", "since": "2025-01-01"}))
    'cache:course-completion:hs-ke:course:courseId=c1,since=2025-01-01:v1'
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import unquote

CACHE_PREFIX = "cache"
DEFAULT_VERSION = "v1"
SEPARATOR = ":"

FilterValue = str | int | float | bool

_NUMBER = re.compile(r"^-?\d+(\.\d+)?([eE][+-]?\d+)?$")
_RESERVED = (("%", "%25"), (":", "%3A"), (",", "%2C"), ("=", "%3D"))


@dataclass(frozen=True)
class CacheKeyParams:
    """Components of a result cache key.

    Attributes:
        metric_id: Metric identifier.
        instance_id: LRS instance the result was computed from.
        scope: Dashboard scope (course, topic, element, global).
        filters: Filter values; an empty mapping is normalized to None.
        version: Key schema version.
    """

    metric_id: str
    instance_id: str
    scope: str
    filters: Mapping[str, FilterValue] | None = field(default=None)
    version: str = DEFAULT_VERSION

    def __post_init__(self) -> None:
        if not self.filters:
            object.__setattr__(self, "filters", None)
        else:
            object.__setattr__(self, "filters", dict(self.filters))


def _escape(value: str) -> str:
    for char, encoded in _RESERVED:
        value = value.replace(char, encoded)
    return value


def _render(value: FilterValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _coerce(value: str) -> FilterValue:
    if value == "true":
        return True
    if value == "false":
        return False
    if _NUMBER.match(value):
        return float(value) if any(c in value for c in ".eE") else int(value)
    return value


def encode_filters(filters: Mapping[str, FilterValue]) -> str:
    """Encode filters as ``k1=v1,k2=v2`` sorted by key."""
    return ",".join(
        f"{_escape(key)}={_escape(_render(filters[key]))}" for key in sorted(filters)
    )


def encode_cache_key(params: CacheKeyParams) -> str:
    """Encode key components into a cache key.

    Args:
        params: Key components.

    Returns:
        The cache key string.
    """
    segments = [
        CACHE_PREFIX,
        _escape(params.metric_id),
        _escape(params.instance_id),
        _escape(params.scope),
    ]
    if params.filters:
        segments.append(encode_filters(params.filters))
    segments.append(_escape(params.version))
    return SEPARATOR.join(segments)


def build_cache_key(
    metric_id: str,
    instance_id: str,
    scope: str,
    filters: Mapping[str, FilterValue] | None = None,
    version: str = DEFAULT_VERSION,
) -> str:
    """Keyword form of encode_cache_key."""
    return encode_cache_key(CacheKeyParams(metric_id, instance_id, scope, filters, version))


def encode_cache_key_pattern(
    metric_id: str | None = None,
    instance_id: str | None = None,
    scope: str | None = None,
    filters: Mapping[str, FilterValue] | None = None,
    version: str | None = None,
) -> str:
    """Build a Redis glob pattern matching keys with the given components.

    Unspecified components become ``*``. When filters are not given, the
    optional filter segment is absorbed by the wildcard, so the pattern
    matches keys with and without filters.

    Example:
        >>> encode_cache_key_pattern(metric_id="course-completion")
        'cache:course-completion:*:*:*'
        >>> encode_cache_key_pattern(instance_id="hs-ke", version="v1")
        'cache:*:hs-ke:*:*v1'
    """
    segments = [
        CACHE_PREFIX,
        _escape(metric_id) if metric_id else "*",
        _escape(instance_id) if instance_id else "*",
        _escape(scope) if scope else "*",
    ]
    if filters:
        segments.append(encode_filters(filters))
        segments.append(_escape(version) if version else "*")
    else:
        # "*" spans the filter segment and its separator when present
        segments.append(f"*{_escape(version)}" if version else "*")
    return SEPARATOR.join(segments)


def decode_cache_key(key: str) -> CacheKeyParams | None:
    """Decode a cache key back into its components.

    Args:
        key: A key produced by encode_cache_key.

    Returns:
        The components, or None if the key does not start with the cache
        prefix or has the wrong number of segments.
    """
    segments = key.split(SEPARATOR)
    if segments[0] != CACHE_PREFIX or len(segments) not in (5, 6):
        return None

    metric_id, instance_id, scope = (unquote(s) for s in segments[1:4])
    version = unquote(segments[-1])

    filters: dict[str, FilterValue] | None = None
    if len(segments) == 6:
        filters = {}
        for pair in segments[4].split(","):
            raw_key, sep, raw_value = pair.partition("=")
            if not sep:
                return None
            filters[unquote(raw_key)] = _coerce(unquote(raw_value))

    return CacheKeyParams(metric_id, instance_id, scope, filters, version)

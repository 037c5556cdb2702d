# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for the LRS metrics service.

All datetimes handled by the pipeline are timezone-aware UTC. xAPI
timestamps arrive as ISO-8601 strings, usually with a ``Z`` suffix, and
results are emitted the same way.

Usage:
    from src.utils.datetime import utc_now, parse_iso, format_iso

    computed = format_iso(utc_now())        # "2025-11-15T10:30:00.123000Z"
    ts = parse_iso("2025-11-15T10:30:00Z")
"""

from datetime import datetime, timezone

# Ordering key for values without a timestamp: older than anything real.
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Naive datetimes are assumed to be UTC; aware ones are converted.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str | None) -> datetime | None:
    """Parse an ISO-8601 string into a UTC datetime.

    Args:
        iso_string: ISO-8601 string, ``Z`` suffix accepted.

    Returns:
        UTC datetime, or None for None/empty input.

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    if not iso_string:
        return None

    dt = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    return ensure_utc(dt)


def try_parse_iso(iso_string: str | None) -> datetime | None:
    """Like parse_iso, but returns None for malformed input."""
    try:
        return parse_iso(iso_string)
    except ValueError:
        return None


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO-8601 UTC with a ``Z`` suffix."""
    if dt is None:
        return None

    dt_utc = ensure_utc(dt)
    return dt_utc.isoformat().replace("+00:00", "Z")


def age_seconds(since: datetime, now: datetime | None = None) -> int:
    """Whole seconds elapsed since a moment, never negative.

    Args:
        since: The earlier moment.
        now: Reference time (default: current UTC time).
    """
    reference = ensure_utc(now) if now is not None else utc_now()
    return max(0, int((reference - ensure_utc(since)).total_seconds()))

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ISO-8601 durations as found in xAPI ``result.duration``."""

import re
from collections.abc import Iterable

from src.infrastructure.lrs.models import Statement

_NUMBER = r"(\d+(?:\.\d+)?)"
_DURATION = re.compile(
    rf"^P(?:{_NUMBER}D)?(?:T(?:{_NUMBER}H)?(?:{_NUMBER}M)?(?:{_NUMBER}S)?)?$"
)


def parse_duration(value: str | None) -> float:
    """Convert an ISO-8601 duration into seconds.

    Day, hour, minute and second designators are supported; anything else
    (including year/month durations, whose length is ambiguous) counts as 0.

    Example:
        >>> parse_duration("PT1H2M3.5S")
        3723.5
        >>> parse_duration("garbage")
        0.0
    """
    if not value:
        return 0.0
    match = _DURATION.match(value.strip().upper())
    if match is None or value.strip().upper() in ("P", "PT"):
        return 0.0
    days, hours, minutes, seconds = (float(part or 0) for part in match.groups())
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


def total_duration(statements: Iterable[Statement]) -> tuple[float, int]:
    """Sum the durations of statements.

    Returns:
        Total seconds and the number of statements that had a positive
        duration.
    """
    total = 0.0
    counted = 0
    for statement in statements:
        if statement.result is None:
            continue
        seconds = parse_duration(statement.result.duration)
        if seconds > 0:
            total += seconds
            counted += 1
    return total, counted

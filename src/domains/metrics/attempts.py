# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Best-attempt selection over repeated attempts at one learning element.

Given every statement of one learner for one element, exactly one statement
represents the learner's result:

1. If any statement has a numeric score (``result.score.raw``, falling back
   to ``result.score.scaled``), the highest score wins; ties go to the most
   recent statement.
2. Otherwise, if any statement is a completion (``result.completion`` is
   true, or the completion flag is absent and the verb is a completion
   verb), the most recent completion wins.
3. Otherwise the most recent statement wins.

Empty input selects nothing; callers skip the element entirely. A statement
without a timestamp orders as the oldest possible moment.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime

from src.domains.metrics.verbs import COMPLETION_VERBS
from src.infrastructure.lrs.models import Statement
from src.utils.datetime import EARLIEST, ensure_utc


def extract_score(statement: Statement) -> float | None:
    """Raw score, else scaled score, else None."""
    if statement.result is None or statement.result.score is None:
        return None
    score = statement.result.score
    if score.raw is not None:
        return score.raw
    return score.scaled


def is_completed(statement: Statement) -> bool:
    """Whether the statement records a completion.

    An explicit ``result.completion`` flag is authoritative; without it the
    verb decides.
    """
    if statement.result is not None and statement.result.completion is not None:
        return statement.result.completion
    return statement.verb.id in COMPLETION_VERBS


def statement_time(statement: Statement) -> datetime:
    """Ordering timestamp; missing timestamps sort oldest."""
    return ensure_utc(statement.timestamp) or EARLIEST


def select_best_attempt(statements: Sequence[Statement]) -> Statement | None:
    """Select the statement representing a learner's best attempt.

    Args:
        statements: All statements of one learner for one element. Not
            modified.

    Returns:
        The best attempt, or None for empty input.
    """
    if not statements:
        return None

    scored = [(s, extract_score(s)) for s in statements]
    scored = [(s, score) for s, score in scored if score is not None]
    if scored:
        best, _ = max(scored, key=lambda pair: (pair[1], statement_time(pair[0])))
        return best

    completed = [s for s in statements if is_completed(s)]
    return max(completed or statements, key=statement_time)


def group_by_element(statements: Iterable[Statement]) -> dict[str, list[Statement]]:
    """Group statements by object id, keeping input order within groups."""
    groups: dict[str, list[Statement]] = {}
    for statement in statements:
        if statement.object.id:
            groups.setdefault(statement.object.id, []).append(statement)
    return groups

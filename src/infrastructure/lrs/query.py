# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""xAPI statement query filters.

QueryFilters is an immutable description of one statement query; it is
turned into the query string of ``GET {endpoint}/statements`` by
to_params().

Example:
    >>> filters = QueryFilters(verb="http://adlnet.gov/expapi/verbs/completed",
    ...                        since="2025-01-01T00:00:00Z", limit=500)
    >>> filters.to_params()["limit"]
    '500'
"""

import json
from dataclasses import dataclass, replace
from typing import Any, Literal

from src.utils.datetime import parse_iso

MAX_PAGE_LIMIT = 1000

StatementFormat = Literal["ids", "exact", "canonical"]


class QueryFilterError(ValueError):
    """Raised when query filters cannot form a valid xAPI query."""


def _bool(value: bool) -> str:
    return "true" if value else "false"


@dataclass(frozen=True)
class QueryFilters:
    """Filters of an xAPI statement query.

    Attributes:
        agent: Agent object (serialized as JSON).
        verb: Verb IRI.
        activity: Activity IRI.
        registration: Registration UUID.
        related_activities: Also match context activities.
        related_agents: Also match agents in other statement roles.
        since: Only statements stored after this ISO-8601 timestamp.
        until: Only statements stored at or before this timestamp.
        limit: Page size, 0 (server default) to 1000.
        format: ids, exact or canonical.
        attachments: Request attachments.
        ascending: Oldest first.
    """

    agent: dict[str, Any] | None = None
    verb: str | None = None
    activity: str | None = None
    registration: str | None = None
    related_activities: bool | None = None
    related_agents: bool | None = None
    since: str | None = None
    until: str | None = None
    limit: int | None = None
    format: StatementFormat | None = None
    attachments: bool | None = None
    ascending: bool | None = None

    def __post_init__(self) -> None:
        if self.limit is not None and not 0 <= self.limit <= MAX_PAGE_LIMIT:
            raise QueryFilterError(f"limit must be between 0 and {MAX_PAGE_LIMIT}")
        if self.format is not None and self.format not in ("ids", "exact", "canonical"):
            raise QueryFilterError("format must be one of ids, exact, canonical")
        try:
            since = parse_iso(self.since)
            until = parse_iso(self.until)
        except ValueError as e:
            raise QueryFilterError(f"since/until must be ISO-8601 timestamps: {e}") from e
        if since and until and since > until:
            raise QueryFilterError("since must not be after until")

    @classmethod
    def for_actor(cls, home_page: str, user_id: str, **kwargs: Any) -> "QueryFilters":
        """Filters selecting one learner account."""
        agent = {"objectType": "Agent", "account": {"homePage": home_page, "name": user_id}}
        return cls(agent=agent, **kwargs)

    def with_limit(self, limit: int) -> "QueryFilters":
        """Copy with another page size."""
        return replace(self, limit=limit)

    def to_params(self) -> dict[str, str]:
        """Render as xAPI query parameters, omitting unset filters."""
        params: dict[str, str] = {}
        if self.agent:
            params["agent"] = json.dumps(self.agent, separators=(",", ":"))
        if self.verb:
            params["verb"] = self.verb
        if self.activity:
            params["activity"] = self.activity
        if self.registration:
            params["registration"] = self.registration
        if self.related_activities is not None:
            params["related_activities"] = _bool(self.related_activities)
        if self.related_agents is not None:
            params["related_agents"] = _bool(self.related_agents)
        if self.since:
            params["since"] = self.since
        if self.until:
            params["until"] = self.until
        if self.limit:
            params["limit"] = str(self.limit)
        if self.format:
            params["format"] = self.format
        if self.attachments is not None:
            params["attachments"] = _bool(self.attachments)
        if self.ascending is not None:
            params["ascending"] = _bool(self.ascending)
        return params

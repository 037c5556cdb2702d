# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""xAPI data models.

Statements are parsed into frozen pydantic models. Fields the pipeline does
not interpret are kept (extra="allow") so nothing the LRS sent is lost when a
statement is serialized again. Wire names are camelCase (contextActivities,
homePage); Python attributes are snake_case.

Example:
    >>> stmt = Statement.model_validate(payload)
    >>> stmt.verb.id
    'http://adlnet.gov/expapi/verbs/completed'
    >>> tagged = stmt.tagged("hs-ke")
    >>> tagged.instance_id
    'hs-ke'
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class XAPIModel(BaseModel):
    """Base for xAPI objects: immutable, lenient about unknown fields."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)


class Account(XAPIModel):
    home_page: str | None = Field(default=None, alias="homePage")
    name: str | None = None


class Actor(XAPIModel):
    """Agent or Group performing the statement."""

    object_type: str | None = Field(default=None, alias="objectType")
    name: str | None = None
    mbox: str | None = None
    mbox_sha1sum: str | None = None
    openid: str | None = None
    account: Account | None = None

    @property
    def key(self) -> str | None:
        """Stable learner identifier: account name, then mbox, then others."""
        if self.account is not None and self.account.name:
            return self.account.name
        return self.mbox or self.openid or self.mbox_sha1sum


class Verb(XAPIModel):
    id: str
    display: dict[str, str] | None = None


class ActivityDefinition(XAPIModel):
    name: dict[str, str] | None = None
    description: dict[str, str] | None = None
    type: str | None = None
    more_info: str | None = Field(default=None, alias="moreInfo")
    extensions: dict[str, Any] | None = None

    def label(self, *languages: str) -> str | None:
        """First available name among the given language tags."""
        if not self.name:
            return None
        for language in languages or ("en", "en-US"):
            if self.name.get(language):
                return self.name[language]
        return None


class Activity(XAPIModel):
    """Statement object or context activity."""

    object_type: str | None = Field(default=None, alias="objectType")
    id: str | None = None
    definition: ActivityDefinition | None = None


class Score(XAPIModel):
    scaled: float | None = None
    raw: float | None = None
    min: float | None = None
    max: float | None = None


class Result(XAPIModel):
    score: Score | None = None
    success: bool | None = None
    completion: bool | None = None
    response: str | None = None
    duration: str | None = None
    extensions: dict[str, Any] | None = None


class ContextActivities(XAPIModel):
    parent: list[Activity] | None = None
    grouping: list[Activity] | None = None
    category: list[Activity] | None = None
    other: list[Activity] | None = None

    @field_validator("parent", "grouping", "category", "other", mode="before")
    @classmethod
    def _wrap_single(cls, value: Any) -> Any:
        # xAPI 1.0.0 allowed a single object instead of an array
        if isinstance(value, dict):
            return [value]
        return value


class Context(XAPIModel):
    registration: str | None = None
    context_activities: ContextActivities | None = Field(
        default=None, alias="contextActivities"
    )
    revision: str | None = None
    platform: str | None = None
    language: str | None = None
    extensions: dict[str, Any] | None = None


class Statement(XAPIModel):
    """An xAPI statement as fetched from an LRS.

    ``instance_id`` is set by the client that fetched the statement and is
    the authoritative origin of the record.
    """

    id: str | None = None
    actor: Actor
    verb: Verb
    object: Activity
    result: Result | None = None
    context: Context | None = None
    timestamp: datetime | None = None
    stored: datetime | None = None
    version: str | None = None
    instance_id: str | None = Field(default=None, alias="instanceId")

    def tagged(self, instance_id: str) -> "Statement":
        """Return a copy tagged with the originating instance id."""
        return self.model_copy(update={"instance_id": instance_id})

    @property
    def context_parents(self) -> list[Activity]:
        if self.context and self.context.context_activities:
            return list(self.context.context_activities.parent or [])
        return []

    @property
    def context_groupings(self) -> list[Activity]:
        if self.context and self.context.context_activities:
            return list(self.context.context_activities.grouping or [])
        return []

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to the xAPI JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class InstanceHealth:
    """Outcome of an LRS health probe.

    Attributes:
        instance_id: Probed instance.
        healthy: Whether the LRS is reachable.
        response_time_ms: Round-trip time of the probe.
        version: xAPI version reported by /about, if any.
        error: Short description of the failure, if unhealthy.
    """

    instance_id: str
    healthy: bool
    response_time_ms: float
    version: str | None = None
    error: str | None = None

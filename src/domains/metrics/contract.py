# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Metric computation contract.

A metric is a MetricProvider record: static metadata plus two plain
functions. ``compute(params, statements)`` is pure. It performs no I/O and
does not modify its arguments, and the statements it receives are already
narrowed to the request's scope and time window by the computation service.
``validate(params)`` adds metric-specific checks on top of the generic
required-parameter and time-window checks run by validate_params().

Example:
    provider = MetricProvider(
        id="element-time-spent",
        dashboard_level=DashboardLevel.ELEMENT,
        title="Element Time Spent",
        description="Total time a learner spent on an element",
        required_params=("userId", "elementId"),
        compute=compute_element_time_spent,
    )
    result = provider.validate_params(params)
    if result.ok:
        metric = provider.compute(params, statements)
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.core.errors import MetricValidationError
from src.infrastructure.lrs.models import Statement
from src.utils.datetime import format_iso, parse_iso

FilterValue = str | int | float | bool
OutputType = Literal["scalar", "array"]


class DashboardLevel(str, Enum):
    COURSE = "course"
    TOPIC = "topic"
    ELEMENT = "element"


class MetricParams(BaseModel):
    """Caller-supplied parameters of one metric request.

    Field names are snake_case in Python and camelCase on the wire
    (``userId``, ``courseId``, ...).
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    user_id: str | None = None
    course_id: str | None = None
    topic_id: str | None = None
    element_id: str | None = None
    group_id: str | None = None
    since: str | None = None
    until: str | None = None
    instance_id: str | None = None
    filters: dict[str, FilterValue] | None = Field(default=None)

    def param(self, name: str) -> Any:
        """Value of a parameter by wire name (``courseId``) or field name."""
        for field_name, info in type(self).model_fields.items():
            if name in (field_name, info.alias):
                return getattr(self, field_name)
        raise KeyError(name)


@dataclass(frozen=True)
class MetricResult:
    """Output of one computation.

    Attributes:
        metric_id: Metric that produced the value.
        value: Scalar, list, or None when there is nothing to report.
        computed: Computation time (UTC).
        metadata: Supporting figures (counts, units, echoed params).
    """

    metric_id: str
    value: Any
    computed: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def computed_iso(self) -> str:
        return format_iso(self.computed) or ""


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of parameter validation.

    Attributes:
        invalid_fields: Message per offending parameter; empty when valid.
    """

    invalid_fields: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.invalid_fields

    @classmethod
    def valid(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def invalid(cls, **fields: str) -> "ValidationResult":
        return cls(dict(fields))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        # first message per field wins
        return ValidationResult({**other.invalid_fields, **self.invalid_fields})


ComputeFn = Callable[[MetricParams, Sequence[Statement]], MetricResult]
ValidateFn = Callable[[MetricParams], ValidationResult]


def check_time_window(params: MetricParams) -> ValidationResult:
    """since/until must be ISO-8601, and since must not be after until."""
    errors: dict[str, str] = {}
    bounds: dict[str, datetime | None] = {}
    for name in ("since", "until"):
        try:
            bounds[name] = parse_iso(getattr(params, name))
        except ValueError:
            errors[name] = "must be an ISO-8601 timestamp"
            bounds[name] = None

    since, until = bounds["since"], bounds["until"]
    if since is not None and until is not None and since > until:
        errors["since"] = "since timestamp must not be after until timestamp"
    return ValidationResult(errors)


@dataclass(frozen=True)
class MetricProvider:
    """A registered metric.

    Attributes:
        id: Unique metric id (kebab-case).
        dashboard_level: Dashboard the metric belongs to.
        title: Display title.
        description: What the metric measures.
        compute: Pure computation function.
        version: Metric formula version.
        required_params: Wire names of mandatory parameters.
        optional_params: Wire names of optional parameters.
        output_type: scalar or array.
        example: Example params and result for the catalog.
        verbs: Verb IRIs the metric reads; empty means every verb.
        validate: Extra metric-specific validation, if any.
    """

    id: str
    dashboard_level: DashboardLevel
    title: str
    description: str
    compute: ComputeFn
    version: str = "1.0.0"
    required_params: tuple[str, ...] = ()
    optional_params: tuple[str, ...] = ()
    output_type: OutputType = "scalar"
    example: dict[str, Any] | None = None
    verbs: tuple[str, ...] = ()
    validate: ValidateFn | None = None

    def validate_params(self, params: MetricParams) -> ValidationResult:
        """Run required-parameter, time-window and metric-specific checks."""
        missing = {
            name: f"{name} is required for {self.id}"
            for name in self.required_params
            if not params.param(name)
        }
        result = ValidationResult(missing).merge(check_time_window(params))
        if self.validate is not None:
            result = result.merge(self.validate(params))
        return result

    def check_params(self, params: MetricParams) -> None:
        """Validate and raise on failure.

        Raises:
            MetricValidationError: Naming every invalid parameter.
        """
        result = self.validate_params(params)
        if not result.ok:
            raise MetricValidationError(result.invalid_fields)

    def describe(self) -> dict[str, Any]:
        """Catalog entry (wire naming)."""
        entry: dict[str, Any] = {
            "id": self.id,
            "dashboardLevel": self.dashboard_level.value,
            "title": self.title,
            "description": self.description,
            "version": self.version,
            "requiredParams": list(self.required_params),
            "optionalParams": list(self.optional_params),
            "outputType": self.output_type,
        }
        if self.example is not None:
            entry["example"] = self.example
        return entry

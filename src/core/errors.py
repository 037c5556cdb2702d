# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy for the metrics pipeline.

Statement-store failures are classified by how the client reacts to them:
timeouts, connection failures, rate limiting and server errors are retried,
authentication and other client errors are not. None of them reach API
callers directly; the computation service turns them into degraded or
unavailable results.

Caller-facing errors (validation, unknown metric, unknown instance) surface
as request failures.

Example:
    >>> try:
    ...     await client.query_statements(filters)
    ... except LRSError as e:
    ...     if e.retriable:
    ...         ...
"""


class LRSError(Exception):
    """Base exception for Learning Record Store failures.

    Attributes:
        message: Human-readable error description.
        instance_id: LRS instance the request was sent to.
        status_code: HTTP status code, if a response was received.
        retriable: Whether the failure may succeed on retry.
    """

    retriable: bool = False

    def __init__(
        self,
        message: str,
        instance_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Initialize the LRS error.

        Args:
            message: Human-readable error description.
            instance_id: LRS instance the request was sent to.
            status_code: HTTP status code, if a response was received.
        """
        super().__init__(message)
        self.message = message
        self.instance_id = instance_id
        self.status_code = status_code

    @property
    def error_type(self) -> str:
        """Short label used for metrics and logs."""
        return "unknown"

    def __str__(self) -> str:
        """Return string representation of the error."""
        parts = [self.message]
        if self.instance_id:
            parts.append(f"instance={self.instance_id}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        return " ".join(parts)


class LRSTimeoutError(LRSError):
    """The LRS did not answer within the configured timeout."""

    retriable = True

    @property
    def error_type(self) -> str:
        return "timeout"


class LRSConnectionError(LRSError):
    """The LRS could not be reached (DNS failure, refused connection)."""

    retriable = True

    @property
    def error_type(self) -> str:
        return "connection"


class LRSAuthError(LRSError):
    """The LRS rejected the credentials (HTTP 401 or 403)."""

    @property
    def error_type(self) -> str:
        return "auth"


class LRSRateLimitedError(LRSError):
    """The LRS is throttling requests (HTTP 429)."""

    retriable = True

    @property
    def error_type(self) -> str:
        return "rate_limited"


class LRSServerError(LRSError):
    """The LRS answered with a 5xx status."""

    retriable = True

    @property
    def error_type(self) -> str:
        return "server"


class LRSClientError(LRSError):
    """The LRS rejected the request with a 4xx status other than 401/403/429."""

    @property
    def error_type(self) -> str:
        return "client"


class MetricValidationError(Exception):
    """Raised when metric parameters are missing or invalid.

    Attributes:
        fields: Names of the offending parameters.
        errors: Human-readable message per field.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        """Initialize the validation error.

        Args:
            errors: Mapping of parameter name to error description.
        """
        self.errors = dict(errors)
        self.fields = sorted(self.errors)
        detail = "; ".join(f"{name}: {self.errors[name]}" for name in self.fields)
        super().__init__(f"Invalid metric parameters: {detail}")


class MetricNotFoundError(Exception):
    """Raised when a metric id is not registered."""

    def __init__(self, metric_id: str) -> None:
        self.metric_id = metric_id
        super().__init__(f"Metric with id '{metric_id}' not found in catalog")


class InstanceNotFoundError(Exception):
    """Raised when a request names an LRS instance that is not configured."""

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__(f"LRS instance '{instance_id}' is not configured")


class CacheUnavailableError(Exception):
    """Raised inside the cache layer when Redis cannot serve a request.

    This never leaves CacheService; it is caught there and mapped to a
    miss, a False, or a zero count.
    """


class LRSConfigError(Exception):
    """Raised when LRS instance configuration is invalid."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid LRS configuration: {reason}")

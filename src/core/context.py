# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Per-request context passed explicitly through the pipeline.

The context carries the correlation id used for cross-system tracing and an
optional deadline. It is created at the API boundary and handed to the
computation service, the LRS client and every log call that belongs to the
request.
"""

from dataclasses import dataclass, field
from uuid import uuid4

CORRELATION_HEADER = "X-Correlation-ID"


def new_correlation_id() -> str:
    """Generate a fresh correlation id."""
    return str(uuid4())


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped values threaded through each call.

    Attributes:
        correlation_id: Identifier propagated to the LRS and to logs.
        deadline_s: Seconds the store call may take before it is abandoned.
            None disables the deadline.
    """

    correlation_id: str = field(default_factory=new_correlation_id)
    deadline_s: float | None = None

    def log_fields(self) -> dict[str, str]:
        """Fields bound onto loggers for this request."""
        return {"correlation_id": self.correlation_id}

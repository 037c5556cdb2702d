# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Correlation id middleware.

Reads the X-Correlation-ID header of an incoming request, or generates a
new id when it is missing, stores it in request.state for the request
context dependency, and echoes it on the response.

Example:
    GET /api/v1/metrics/course-completion/results?courseId=c1
    X-Correlation-ID: 5b0c...

    HTTP/1.1 200 OK
    X-Correlation-ID: 5b0c...
"""

import logging
import re
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.context import CORRELATION_HEADER, new_correlation_id

logger = logging.getLogger(__name__)

# Printable token without whitespace, bounded so it is safe to log and forward
_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attaches a correlation id to every request and response."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        """Resolve the correlation id and echo it back.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware/handler.

        Returns:
            HTTP response carrying the X-Correlation-ID header.
        """
        incoming = request.headers.get(CORRELATION_HEADER)
        if incoming and _VALID_ID.match(incoming):
            correlation_id = incoming
        else:
            if incoming:
                logger.debug("Replacing malformed correlation id")
            correlation_id = new_correlation_id()

        request.state.correlation_id = correlation_id
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

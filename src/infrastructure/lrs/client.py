# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""HTTP client for one xAPI Learning Record Store.

The client speaks the xAPI statement query protocol:

- ``GET {endpoint}/statements`` with query filters, paginated through the
  ``more`` path returned in each page
- ``GET {endpoint}/about`` as a lightweight health check

Every page fetch is retried with exponential backoff (100ms doubling, capped
at 500ms) when the failure is retriable: timeouts, connection errors, HTTP
429 and 5xx. Other 4xx responses abort at once. When retries run out the
typed error of the last attempt is raised; partial results are never
returned.

Every statement returned is tagged with the configured instance id. Hints
about the origin found inside the statement context are only compared and
logged; the configuration always wins.

Example:
    client = LRSClient(instance, metrics=metrics)
    statements = await client.query_statements(
        QueryFilters(verb="http://adlnet.gov/expapi/verbs/completed"),
        context=RequestContext(),
    )
    health = await client.get_instance_health()
    await client.close()
"""

import asyncio
import base64
import re
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import httpx
from pydantic import ValidationError

from src.core.config.lrs_instances import BasicAuth, BearerAuth, InstanceConfig
from src.core.context import CORRELATION_HEADER, RequestContext
from src.core.errors import (
    LRSAuthError,
    LRSClientError,
    LRSConnectionError,
    LRSError,
    LRSRateLimitedError,
    LRSServerError,
    LRSTimeoutError,
)
from src.infrastructure.lrs.models import InstanceHealth, Statement
from src.infrastructure.lrs.query import MAX_PAGE_LIMIT, QueryFilters
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.infrastructure.telemetry.metrics import ServiceMetrics

logger = get_logger(__name__)

XAPI_VERSION = "1.0.3"
HASKI_EXTENSION = "https://wiki.haski.app/"

RETRY_BASE_DELAY_S = 0.1
RETRY_MAX_DELAY_S = 0.5

_INSTANCE_NAME = re.compile(r"HS-([A-Z]+)", re.IGNORECASE)

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int) -> float:
    """Delay before retry number ``attempt + 1``, in seconds.

    Example:
        >>> [backoff_delay(a) for a in range(4)]
        [0.1, 0.2, 0.4, 0.5]
    """
    return min(RETRY_BASE_DELAY_S * 2**attempt, RETRY_MAX_DELAY_S)


def context_instance_hint(statement: Statement) -> str | None:
    """Origin hint embedded in a statement's context, if any.

    Sources, first match wins: the HASKI context extension ``domain``, a
    parent activity named like ``HS-KE`` (mapped to ``hs-ke``), then
    ``context.platform``.
    """
    context = statement.context
    if context is None:
        return None

    extension = (context.extensions or {}).get(HASKI_EXTENSION)
    if isinstance(extension, dict) and isinstance(extension.get("domain"), str):
        if extension["domain"]:
            return extension["domain"].lower()

    parents = statement.context_parents
    if parents and parents[0].definition is not None:
        name = (parents[0].definition.name or {}).get("en")
        if name and (match := _INSTANCE_NAME.search(name)):
            return f"hs-{match.group(1).lower()}"

    if context.platform:
        return context.platform.lower()
    return None


class LRSClient:
    """Statement query client bound to one configured LRS instance.

    Attributes:
        instance: Static configuration of the LRS.
        max_retries: Retries per page fetch after the first attempt.
        max_statements: Default cap for query_statements().
        page_limit: Default page size for aggregate().
    """

    def __init__(
        self,
        instance: InstanceConfig,
        *,
        max_retries: int = 3,
        max_statements: int = 10000,
        page_limit: int = MAX_PAGE_LIMIT,
        http_client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
        metrics: "ServiceMetrics | None" = None,
    ) -> None:
        """Initialize the client.

        Args:
            instance: LRS instance configuration.
            max_retries: Default retry budget, overridden by the instance's
                own max_retries when set.
            max_statements: Default statement cap per query.
            page_limit: Default page size for aggregate().
            http_client: Shared AsyncClient. One is created (and owned) when
                omitted.
            sleep: Coroutine used for backoff waits.
            metrics: Prometheus instruments; None disables recording.
        """
        self.instance = instance
        self.max_retries = (
            instance.max_retries if instance.max_retries is not None else max_retries
        )
        self.max_statements = max_statements
        self.page_limit = page_limit
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=instance.timeout_seconds)
        self._sleep = sleep
        self._metrics = metrics

    @property
    def instance_id(self) -> str:
        return self.instance.id

    async def close(self) -> None:
        """Close the underlying HTTP client if this client created it."""
        if self._owns_client:
            await self._client.aclose()

    # ========== Public operations ==========

    async def query_statements(
        self,
        filters: QueryFilters | None = None,
        max_statements: int | None = None,
        context: RequestContext | None = None,
    ) -> list[Statement]:
        """Fetch statements matching the filters, following pagination.

        Args:
            filters: xAPI query filters; None queries everything.
            max_statements: Cap on returned statements (default from
                the client configuration).
            context: Request context carrying the correlation id.

        Returns:
            Tagged statements, at most max_statements of them.

        Raises:
            LRSError: If a page fetch fails after retries.
        """
        ctx = context or RequestContext()
        log = logger.bind(instance_id=self.instance_id, **ctx.log_fields())
        cap = max_statements if max_statements is not None else self.max_statements
        filters = filters or QueryFilters()

        started = time.perf_counter()
        statements: list[Statement] = []
        url: str | None = f"{self.instance.endpoint}/statements"
        params: dict[str, str] | None = filters.to_params()
        pages = 0

        try:
            while url is not None and len(statements) < cap:
                payload = await self._fetch_page(url, params, ctx)
                page, more = self._parse_page(payload, log)
                pages += 1
                statements.extend(self._tag(statement, log) for statement in page)
                if not page:
                    break
                url = self._more_url(more) if more else None
                # the continuation path already encodes the query
                params = None
        except LRSError:
            self._observe_query(started, False)
            raise

        duration = self._observe_query(started, True)
        truncated = len(statements) > cap
        log.debug(
            "lrs_query_completed",
            pages=pages,
            statements=min(len(statements), cap),
            truncated=truncated,
            duration_s=duration,
        )
        return statements[:cap]

    async def aggregate(
        self,
        filters: QueryFilters | None = None,
        context: RequestContext | None = None,
    ) -> int:
        """Approximate count of matching statements from a single page.

        xAPI has no count operation; the result is bounded by the page
        limit (filters.limit, default page_limit). Use query_statements()
        for exact counts.

        Raises:
            LRSError: If the page fetch fails after retries.
        """
        ctx = context or RequestContext()
        log = logger.bind(instance_id=self.instance_id, **ctx.log_fields())
        filters = filters or QueryFilters()
        if not filters.limit:
            filters = filters.with_limit(self.page_limit)

        started = time.perf_counter()
        try:
            payload = await self._fetch_page(
                f"{self.instance.endpoint}/statements", filters.to_params(), ctx
            )
        except LRSError:
            self._observe_query(started, False)
            raise
        self._observe_query(started, True)

        page, _ = self._parse_page(payload, log)
        return len(page)

    async def get_instance_health(
        self, context: RequestContext | None = None
    ) -> InstanceHealth:
        """Probe ``GET {endpoint}/about``.

        2xx answers are healthy. 401 and 403 are also reported healthy: the
        LRS is reachable, only the credentials are rejected. Any other
        status or a transport failure is unhealthy. Never raises.
        """
        ctx = context or RequestContext()
        log = logger.bind(instance_id=self.instance_id, **ctx.log_fields())
        started = time.perf_counter()

        try:
            response = await self._client.get(
                f"{self.instance.endpoint}/about",
                headers=self._headers(ctx),
                timeout=self.instance.timeout_seconds,
            )
        except httpx.HTTPError as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            log.warning("lrs_health_check_failed", error=str(e))
            return self._health(False, elapsed_ms, error=type(e).__name__)

        elapsed_ms = (time.perf_counter() - started) * 1000
        status = response.status_code

        if response.is_success:
            return self._health(True, elapsed_ms, version=self._about_version(response))
        if status in (401, 403):
            log.warning("lrs_health_auth_rejected", status_code=status)
            return self._health(True, elapsed_ms, version=XAPI_VERSION)

        log.warning("lrs_health_check_failed", status_code=status)
        return self._health(False, elapsed_ms, error=f"HTTP {status}")

    # ========== Internals ==========

    def _headers(self, ctx: RequestContext) -> dict[str, str]:
        headers = {
            "X-Experience-API-Version": XAPI_VERSION,
            "Accept": "application/json",
            "Content-Type": "application/json",
            CORRELATION_HEADER: ctx.correlation_id,
        }
        auth = self.instance.auth
        if isinstance(auth, BasicAuth):
            raw = f"{auth.username}:{auth.password.get_secret_value()}".encode()
            headers["Authorization"] = f"Basic {base64.b64encode(raw).decode('ascii')}"
        elif isinstance(auth, BearerAuth):
            headers["Authorization"] = f"Bearer {auth.token.get_secret_value()}"
        else:
            headers.update(auth.headers)
        return headers

    async def _fetch_page(
        self,
        url: str,
        params: dict[str, str] | None,
        ctx: RequestContext,
    ) -> dict[str, Any]:
        """GET one page, retrying retriable failures with backoff."""
        log = logger.bind(instance_id=self.instance_id, **ctx.log_fields())

        attempt = 0
        while True:
            try:
                return await self._request(url, params, ctx)
            except LRSError as e:
                if self._metrics is not None:
                    self._metrics.record_lrs_error(self.instance_id, e.error_type)
                if not e.retriable or attempt >= self.max_retries:
                    log.warning(
                        "lrs_request_failed",
                        url=url,
                        attempts=attempt + 1,
                        error_type=e.error_type,
                        error=str(e),
                    )
                    raise

                delay = backoff_delay(attempt)
                log.info(
                    "lrs_request_retry",
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay_s=delay,
                    error_type=e.error_type,
                )
                if self._metrics is not None:
                    self._metrics.record_lrs_retry(self.instance_id)
                await self._sleep(delay)
                attempt += 1

    async def _request(
        self,
        url: str,
        params: dict[str, str] | None,
        ctx: RequestContext,
    ) -> dict[str, Any]:
        """Single GET, mapping every failure onto the LRSError taxonomy."""
        try:
            response = await self._client.get(
                url,
                params=params,
                headers=self._headers(ctx),
                timeout=self.instance.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise LRSTimeoutError(
                f"LRS request timed out after {self.instance.timeout_ms}ms",
                instance_id=self.instance_id,
            ) from e
        except httpx.TransportError as e:
            raise LRSConnectionError(
                f"LRS connection error: {type(e).__name__}",
                instance_id=self.instance_id,
            ) from e

        status = response.status_code
        if status in (401, 403):
            raise LRSAuthError(
                "LRS rejected the credentials", instance_id=self.instance_id, status_code=status
            )
        if status == 429:
            raise LRSRateLimitedError(
                "LRS rate limit exceeded", instance_id=self.instance_id, status_code=status
            )
        if status >= 500:
            raise LRSServerError(
                "LRS server error", instance_id=self.instance_id, status_code=status
            )
        if status >= 400:
            raise LRSClientError(
                "LRS rejected the request", instance_id=self.instance_id, status_code=status
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise LRSServerError(
                "LRS returned a body that is not JSON",
                instance_id=self.instance_id,
                status_code=status,
            ) from e
        if not isinstance(payload, dict):
            raise LRSServerError(
                "LRS returned an unexpected statement result",
                instance_id=self.instance_id,
                status_code=status,
            )
        return payload

    def _parse_page(
        self, payload: dict[str, Any], log: Any
    ) -> tuple[list[Statement], str | None]:
        """Split a StatementResult into parsed statements and the ``more`` path.

        Statements that fail validation are skipped with a warning.

        Raises:
            LRSServerError: If ``statements`` is present but not a list.
        """
        raw_statements = payload.get("statements")
        if raw_statements is None:
            raw_statements = []
        if not isinstance(raw_statements, list):
            raise LRSServerError(
                "LRS returned a malformed statement result",
                instance_id=self.instance_id,
            )

        statements: list[Statement] = []
        for raw in raw_statements:
            try:
                statements.append(Statement.model_validate(raw))
            except ValidationError as e:
                log.warning(
                    "lrs_statement_skipped",
                    statement_id=raw.get("id") if isinstance(raw, dict) else None,
                    errors=e.error_count(),
                )
        more = payload.get("more")
        return statements, more if isinstance(more, str) and more else None

    def _more_url(self, more: str) -> str:
        """Resolve a ``more`` path against the endpoint's origin."""
        if more.startswith(("http://", "https://")):
            return more
        origin = urlsplit(self.instance.endpoint)
        return f"{origin.scheme}://{origin.netloc}/{more.lstrip('/')}"

    def _tag(self, statement: Statement, log: Any) -> Statement:
        hint = context_instance_hint(statement)
        if hint is not None and hint != self.instance_id:
            log.warning(
                "lrs_instance_hint_mismatch",
                context_instance_id=hint,
                statement_id=statement.id,
            )
        return statement.tagged(self.instance_id)

    def _about_version(self, response: httpx.Response) -> str:
        try:
            about = response.json()
        except ValueError:
            return XAPI_VERSION
        versions = about.get("version") if isinstance(about, dict) else None
        if isinstance(versions, list) and versions:
            return str(versions[0])
        if isinstance(versions, str) and versions:
            return versions
        return XAPI_VERSION

    def _health(
        self,
        healthy: bool,
        elapsed_ms: float,
        version: str | None = None,
        error: str | None = None,
    ) -> InstanceHealth:
        if self._metrics is not None:
            self._metrics.set_lrs_health(self.instance_id, healthy, elapsed_ms)
        return InstanceHealth(
            instance_id=self.instance_id,
            healthy=healthy,
            response_time_ms=round(elapsed_ms, 2),
            version=version,
            error=error,
        )

    def _observe_query(self, started: float, success: bool) -> float:
        duration = time.perf_counter() - started
        if self._metrics is not None:
            self._metrics.observe_lrs_query(self.instance_id, duration, success)
        return duration

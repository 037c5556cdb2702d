# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- An in-memory Redis double for cache tests
- xAPI statement builders
- LRS instance configurations and settings
"""

import fnmatch
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.api.dependencies import ServiceContainer, wire_services
from src.core.config import (
    CacheSettings,
    CircuitBreakerSettings,
    DegradationSettings,
    InstanceConfig,
    Settings,
)
from src.infrastructure.cache import CacheService
from src.infrastructure.lrs import LRSClient
from src.infrastructure.lrs.models import Statement
from src.infrastructure.telemetry import ServiceMetrics

COMPLETED = "http://adlnet.gov/expapi/verbs/completed"
ANSWERED = "http://adlnet.gov/expapi/verbs/answered"
EXPERIENCED = "http://adlnet.gov/expapi/verbs/experienced"
SCORED = "http://adlnet.gov/expapi/verbs/scored"

COURSE_URL = "https://moodle.example.org/course/view.php?id=7"
TOPIC_URL = "https://moodle.example.org/course/7/topic/3"


# =============================================================================
# Redis Double
# =============================================================================


class FakePipeline:
    """Pipeline recording DEL commands, executed in one go."""

    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self._keys: list[str] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    def delete(self, key: str) -> None:
        self._keys.append(key)

    async def execute(self) -> list[int]:
        self._redis.pipelines_executed += 1
        self._redis._check()
        limit = self._redis.fail_after_pipelines
        if limit is not None and self._redis.pipelines_executed > limit:
            raise RedisConnectionError("connection reset")
        return [1 if self._redis.store.pop(key, None) is not None else 0 for key in self._keys]


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (decode_responses=True).

    Supports the commands CacheService issues. Setting ``fail`` makes every
    command raise a redis ConnectionError. Setting ``fail_after_pipelines``
    makes every pipeline after that many executions raise instead.
    """

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = False
        self.scan_counts: list[int | None] = []
        self.pipelines_executed = 0
        self.fail_after_pipelines: int | None = None
        self.keys_called = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    async def ping(self) -> bool:
        self._check()
        return True

    async def keys(self, pattern: str = "*") -> list[str]:
        self.keys_called = True
        return [key for key in self.store if fnmatch.fnmatchcase(key, pattern)]

    async def scan_iter(self, match: str | None = None, count: int | None = None) -> AsyncIterator[str]:
        self._check()
        self.scan_counts.append(count)
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Provide an empty in-memory Redis."""
    return FakeRedis()


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def instance_config() -> InstanceConfig:
    """Provide a single LRS instance with basic auth."""
    return InstanceConfig.model_validate(
        {
            "id": "hs-ke",
            "name": "HS Kempten",
            "endpoint": "https://lrs.example.org/xapi/",
            "timeoutMs": 2000,
            "auth": {"type": "basic", "key": "user", "secret": "pass"},
        }
    )


@pytest.fixture
def cache_settings() -> CacheSettings:
    return CacheSettings(ttl_results=300, stale_grace_seconds=86400, scan_batch_size=2)


@pytest.fixture
def settings(cache_settings: CacheSettings) -> Settings:
    """Provide settings independent of the environment."""
    return Settings(
        cache=cache_settings,
        circuit_breaker=CircuitBreakerSettings(threshold=5, cooldown_ms=30000),
        degradation=DegradationSettings(enabled=True, cache_fallback=True),
    )


# =============================================================================
# Statement Builders
# =============================================================================


def make_statement(
    user: str = "u1",
    verb: str = COMPLETED,
    object_id: str = "https://moodle.example.org/mod/h5pactivity/view.php?id=11",
    timestamp: str | None = "2025-03-01T10:00:00Z",
    score: dict[str, float] | None = None,
    success: bool | None = None,
    completion: bool | None = None,
    duration: str | None = None,
    parents: list[str] | None = None,
    groupings: list[str] | None = None,
    object_type: str | None = None,
    **extra: Any,
) -> Statement:
    """Build a parsed statement with the fields metric tests care about."""
    raw: dict[str, Any] = {
        "actor": {"objectType": "Agent", "account": {"homePage": "https://moodle.example.org", "name": user}},
        "verb": {"id": verb},
        "object": {"objectType": "Activity", "id": object_id},
    }
    if object_type is not None:
        raw["object"]["definition"] = {"type": object_type}
    result: dict[str, Any] = {}
    if score is not None:
        result["score"] = score
    if success is not None:
        result["success"] = success
    if completion is not None:
        result["completion"] = completion
    if duration is not None:
        result["duration"] = duration
    if result:
        raw["result"] = result
    if parents or groupings:
        raw["context"] = {
            "contextActivities": {
                "parent": [{"id": p} for p in parents or []],
                "grouping": [{"id": g} for g in groupings or []],
            }
        }
    if timestamp is not None:
        raw["timestamp"] = timestamp
    raw.update(extra)
    return Statement.model_validate(raw)


@pytest.fixture
def make_stmt() -> Any:
    """Provide the statement builder."""
    return make_statement


@pytest.fixture
def urls() -> dict[str, str]:
    """Provide course and topic activity IRIs plus common verbs."""
    return {
        "course": COURSE_URL,
        "topic": TOPIC_URL,
        "completed": COMPLETED,
        "answered": ANSWERED,
        "experienced": EXPERIENCED,
        "scored": SCORED,
    }


# =============================================================================
# LRS Double and Service Wiring
# =============================================================================


class FakeLRS:
    """httpx.MockTransport handler standing in for one LRS.

    Serves ``statements`` from /statements and a version from /about. With
    ``down`` set every request fails with a connection error. ``calls``
    counts statement requests only.
    """

    def __init__(self) -> None:
        self.statements: list[Statement] = []
        self.down = False
        self.calls = 0
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            if not request.url.path.endswith("/about"):
                self.calls += 1
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path.endswith("/about"):
            return httpx.Response(200, json={"version": ["1.0.3"]})
        self.calls += 1
        self.requests.append(request)
        return httpx.Response(
            200, json={"statements": [s.to_wire() for s in self.statements], "more": ""}
        )


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def fake_lrs() -> FakeLRS:
    return FakeLRS()


@pytest.fixture
def lrs_factory() -> type[FakeLRS]:
    """Provide the FakeLRS class for tests needing several stores."""
    return FakeLRS


@pytest.fixture
def make_container(
    settings: Settings,
    fake_redis: FakeRedis,
    instance_config: InstanceConfig,
    fake_lrs: FakeLRS,
) -> Callable[..., ServiceContainer]:
    """Build a ServiceContainer over the in-memory Redis and fake LRSs.

    Without arguments there is one instance (``hs-ke``) served by
    ``fake_lrs``. Pass ``instances`` as (config, handler) pairs for more.
    """

    def build(
        settings: Settings = settings,
        instances: list[tuple[InstanceConfig, Callable[..., Any]]] | None = None,
    ) -> ServiceContainer:
        metrics = ServiceMetrics()
        clients = {
            instance.id: LRSClient(
                instance,
                max_retries=0,
                http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
                sleep=no_sleep,
                metrics=metrics,
            )
            for instance, handler in instances or [(instance_config, fake_lrs)]
        }
        cache = CacheService(fake_redis, settings.cache, metrics=metrics)
        return wire_services(settings, cache, clients, metrics)

    return build


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )

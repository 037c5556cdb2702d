# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LRS instance configuration.

Instances are static configuration loaded once at startup. They can be given
in four forms, tried in this order:

1. LRS_INSTANCES: a JSON array of instance objects
2. LRS_INSTANCES_FILE: a YAML file with an ``instances:`` list
3. Prefixed variables: LRS_<ID>_ENDPOINT, LRS_<ID>_AUTH_TYPE, ...
4. Legacy single instance: LRS_URL (or LRS_DOMAIN) + LRS_USER + LRS_SECRET

Example:
    >>> instances = parse_instances_json(
    ...     '[{"id": "hs-ke", "name": "HS Kempten", '
    ...     '"endpoint": "https://lrs.example.org/xapi", '
    ...     '"auth": {"type": "bearer", "token": "t"}}]'
    ... )
    >>> instances[0].timeout_ms
    10000
"""

import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any, Literal, Union

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from src.core.errors import LRSConfigError

logger = logging.getLogger(__name__)

INSTANCE_ID_PATTERN = r"^[a-z0-9-]+$"
DEFAULT_TIMEOUT_MS = 10000
LEGACY_INSTANCE_ID = "default"

_PREFIXED_ENDPOINT = re.compile(r"^LRS_([A-Z0-9_]+)_ENDPOINT$")


class BasicAuth(BaseModel):
    """HTTP Basic credentials. ``key``/``secret`` are accepted as aliases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["basic"] = "basic"
    username: str = Field(validation_alias=AliasChoices("username", "key"))
    password: SecretStr = Field(validation_alias=AliasChoices("password", "secret"))


class BearerAuth(BaseModel):
    """Bearer token credentials."""

    model_config = ConfigDict(frozen=True)

    type: Literal["bearer"] = "bearer"
    token: SecretStr


class CustomAuth(BaseModel):
    """Arbitrary headers sent verbatim with every request."""

    model_config = ConfigDict(frozen=True)

    type: Literal["custom"] = "custom"
    headers: dict[str, str]

    @field_validator("headers")
    @classmethod
    def _require_headers(cls, value: dict[str, str]) -> dict[str, str]:
        if not value:
            raise ValueError("custom auth needs at least one header")
        return value


LRSAuth = Annotated[Union[BasicAuth, BearerAuth, CustomAuth], Field(discriminator="type")]


class InstanceConfig(BaseModel):
    """Static configuration of one Learning Record Store.

    The ``id`` is the only source of truth for tagging statements fetched
    from this store.

    Attributes:
        id: Unique lowercase identifier.
        name: Human-readable label.
        endpoint: xAPI base URL, without trailing slash.
        timeout_ms: Per-request timeout in milliseconds.
        max_retries: Retry budget per page fetch. None uses the global default.
        auth: Credentials used to build the Authorization header.
        agent_home_page: Account homePage of learners in this store. When set,
            user-scoped queries are narrowed on the LRS side.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(pattern=INSTANCE_ID_PATTERN)
    name: str
    endpoint: str
    timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        ge=1000,
        validation_alias=AliasChoices("timeout_ms", "timeoutMs"),
    )
    max_retries: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("max_retries", "maxRetries"),
    )
    auth: LRSAuth
    agent_home_page: str | None = Field(
        default=None,
        validation_alias=AliasChoices("agent_home_page", "agentHomePage"),
    )

    @field_validator("endpoint")
    @classmethod
    def _normalize_endpoint(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http(s) URL")
        return value.rstrip("/")

    @property
    def timeout_seconds(self) -> float:
        """Timeout in seconds, as httpx expects it."""
        return self.timeout_ms / 1000

    def redacted(self) -> dict[str, Any]:
        """Describe the instance for logs without credentials."""
        return {
            "id": self.id,
            "name": self.name,
            "endpoint": self.endpoint,
            "timeout_ms": self.timeout_ms,
            "auth_type": self.auth.type,
        }


def _validate_instances(raw: Any, source: str) -> list[InstanceConfig]:
    """Validate a list of raw instance mappings.

    Raises:
        LRSConfigError: If the list is empty, an entry is invalid, or two
            entries share an id.
    """
    if not isinstance(raw, list):
        raise LRSConfigError(f"{source} must be a list of instances")
    if not raw:
        raise LRSConfigError(f"{source} must configure at least one instance")

    instances: list[InstanceConfig] = []
    seen: set[str] = set()
    for entry in raw:
        try:
            instance = InstanceConfig.model_validate(entry)
        except ValidationError as e:
            raise LRSConfigError(f"invalid instance in {source}: {e}") from e
        if instance.id in seen:
            raise LRSConfigError(
                f"duplicate LRS instance id '{instance.id}'; ids must be unique"
            )
        seen.add(instance.id)
        instances.append(instance)
    return instances


def parse_instances_json(payload: str) -> list[InstanceConfig]:
    """Parse the LRS_INSTANCES JSON array.

    Args:
        payload: JSON text.

    Returns:
        Validated instance configurations in declaration order.

    Raises:
        LRSConfigError: If the JSON or any instance is invalid.
    """
    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as e:
        raise LRSConfigError(f"LRS_INSTANCES is not valid JSON: {e}") from e
    return _validate_instances(raw, "LRS_INSTANCES")


def load_instances_file(path: Path) -> list[InstanceConfig]:
    """Load instances from a YAML file with a top-level ``instances`` list.

    Raises:
        LRSConfigError: If the file is missing, unreadable or invalid.
    """
    if not path.is_file():
        raise LRSConfigError(f"instances file '{path}' does not exist")

    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise LRSConfigError(f"cannot read instances file '{path}': {e}") from e
    except yaml.YAMLError as e:
        raise LRSConfigError(f"invalid YAML in '{path}': {e}") from e

    if not isinstance(parsed, dict) or "instances" not in parsed:
        raise LRSConfigError(f"'{path}' must be a mapping with an 'instances' list")
    return _validate_instances(parsed["instances"], str(path))


def _parse_custom_headers(value: str) -> dict[str, str]:
    headers: dict[str, str] = {}
    for pair in value.split(","):
        name, _, header_value = pair.partition(":")
        if name.strip() and header_value.strip():
            headers[name.strip()] = header_value.strip()
    return headers


def parse_prefixed_env(env: Mapping[str, str]) -> list[InstanceConfig]:
    """Build instances from LRS_<ID>_* variables.

    ``LRS_HS_KE_ENDPOINT`` declares instance ``hs-ke``; its siblings are
    ``_NAME``, ``_TIMEOUT_MS``, ``_AUTH_TYPE``, ``_USERNAME``/``_PASSWORD``
    (or ``_KEY``/``_SECRET``), ``_TOKEN`` and ``_HEADERS`` (``k:v,k2:v2``).

    Returns:
        Instances sorted by id, or an empty list if none are declared.

    Raises:
        LRSConfigError: If a declared instance is incomplete.
    """
    env_ids = sorted({m.group(1) for key in env if (m := _PREFIXED_ENDPOINT.match(key))})
    raw: list[dict[str, Any]] = []

    for env_id in env_ids:
        instance_id = env_id.lower().replace("_", "-")
        prefix = f"LRS_{env_id}_"
        auth_type = env.get(f"{prefix}AUTH_TYPE")

        if auth_type == "basic":
            username = env.get(f"{prefix}USERNAME") or env.get(f"{prefix}KEY")
            password = env.get(f"{prefix}PASSWORD") or env.get(f"{prefix}SECRET")
            if not (username and password):
                raise LRSConfigError(
                    f"missing credentials for '{instance_id}': set {prefix}USERNAME "
                    f"and {prefix}PASSWORD or {prefix}KEY and {prefix}SECRET"
                )
            auth: dict[str, Any] = {"type": "basic", "username": username, "password": password}
        elif auth_type == "bearer":
            token = env.get(f"{prefix}TOKEN")
            if not token:
                raise LRSConfigError(f"missing {prefix}TOKEN for '{instance_id}'")
            auth = {"type": "bearer", "token": token}
        elif auth_type == "custom":
            headers = _parse_custom_headers(env.get(f"{prefix}HEADERS", ""))
            if not headers:
                raise LRSConfigError(
                    f"{prefix}HEADERS for '{instance_id}' must look like 'key:value,key2:value2'"
                )
            auth = {"type": "custom", "headers": headers}
        else:
            raise LRSConfigError(
                f"{prefix}AUTH_TYPE for '{instance_id}' must be basic, bearer or custom"
            )

        raw.append({
            "id": instance_id,
            "name": env.get(f"{prefix}NAME") or instance_id,
            "endpoint": env[f"{prefix}ENDPOINT"],
            "timeout_ms": env.get(f"{prefix}TIMEOUT_MS") or DEFAULT_TIMEOUT_MS,
            "auth": auth,
        })

    if not raw:
        return []
    return _validate_instances(raw, "LRS_<ID>_* variables")


def legacy_instance(
    endpoint: str,
    username: str,
    password: str,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> InstanceConfig:
    """Build the single ``default`` instance from the legacy variables."""
    return _validate_instances(
        [{
            "id": LEGACY_INSTANCE_ID,
            "name": "Default LRS",
            "endpoint": endpoint,
            "timeout_ms": timeout_ms,
            "auth": {"type": "basic", "username": username, "password": password},
        }],
        "legacy LRS variables",
    )[0]

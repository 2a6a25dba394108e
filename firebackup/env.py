# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

These helpers read the process environment exactly once at startup and
turn it into the immutable AgentConfig and RuntimeEnvironment values that
the rest of the agent receives by reference.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Mapping

from firebackup.config import (
    DEFAULT_CONTROLLER_DOMAIN,
    DEFAULT_FUNCTION_NAME,
    DEFAULT_REGION,
    DEFAULT_STORAGE_ENDPOINT,
    AgentConfig,
    RuntimeEnvironment,
)
from firebackup.errors import (
    explain_incomplete_runtime_env,
    explain_invalid_debug_env,
    explain_missing_password_env,
    explain_missing_token_env,
)
from firebackup.exceptions import ConfigurationError, IncompleteEnvironment


def _parse_bool(name: str, value: str | None, default: bool | None) -> bool | None:
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    if name == "FIREBACKUP_DEBUG":
        raise ConfigurationError(explain_invalid_debug_env(value))
    raise ConfigurationError(f"Invalid {name} value: {value!r}")


def _parse_allowlist(value: str | None) -> List[str] | None:
    if not value:
        return None
    buckets = [b.strip() for b in value.split(",") if b.strip()]
    return buckets or None


def _first(environ: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def has_agent_config(environ: Mapping[str, str] | None = None) -> bool:
    """
    Check whether the agent is configured at all.

    Returns False when neither the token nor the password is set, which
    is the signal to run the no-op handler instead of the agent.
    """
    environ = os.environ if environ is None else environ
    return bool(environ.get("FIREBACKUP_TOKEN") or environ.get("FIREBACKUP_PASSWORD"))


def create_config_from_env(environ: Mapping[str, str] | None = None) -> AgentConfig:
    """
    Create an AgentConfig from environment variables.

    Required:
        - FIREBACKUP_TOKEN: Controller token
        - FIREBACKUP_PASSWORD: Admin password

    Optional environment variables:
        - FIREBACKUP_DOMAIN: Controller domain (default: backupfire.dev)
        - FIREBACKUP_ALLOWLIST: Comma-separated bucket ids
        - FIREBACKUP_DEBUG: 'true' | 'false' (default: false)
        - FIREBACKUP_FUNCTION_NAME: Expected function name (default: backupfire)
        - FIREBACKUP_TEMP_DIR: Directory for staging exports
        - FIREBACKUP_STORAGE_ENDPOINT: S3-compatible storage endpoint
        - FIREBACKUP_STORAGE_ACCESS_KEY_ID / FIREBACKUP_STORAGE_SECRET_ACCESS_KEY:
          HMAC key pair of a service account with access to the buckets.
          Required by the Cloud Storage endpoint unless the standard
          AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY variables hold it
        - FIREBACKUP_STORAGE_REGION: Storage region name (default: auto)
        - FIREBACKUP_STORAGE_LIFECYCLE: 'true' | 'false', manage retention with S3
          lifecycle rules (default: only on endpoints other than Cloud Storage)
        - FIREBACKUP_PING: 'true' | 'false' (default: true)
    """
    environ = os.environ if environ is None else environ

    token = environ.get("FIREBACKUP_TOKEN")
    if not token:
        raise ConfigurationError(explain_missing_token_env())

    password = environ.get("FIREBACKUP_PASSWORD")
    if not password:
        raise ConfigurationError(explain_missing_password_env())

    temp_dir_env = environ.get("FIREBACKUP_TEMP_DIR")
    kwargs = {}
    if temp_dir_env:
        kwargs["temp_dir"] = Path(temp_dir_env)

    return AgentConfig(
        controller_token=token,
        admin_password=password,
        controller_domain=environ.get("FIREBACKUP_DOMAIN") or DEFAULT_CONTROLLER_DOMAIN,
        buckets_allowlist=_parse_allowlist(environ.get("FIREBACKUP_ALLOWLIST")),
        debug=_parse_bool("FIREBACKUP_DEBUG", environ.get("FIREBACKUP_DEBUG"), False),
        function_name=environ.get("FIREBACKUP_FUNCTION_NAME") or DEFAULT_FUNCTION_NAME,
        storage_endpoint_url=environ.get("FIREBACKUP_STORAGE_ENDPOINT")
        or DEFAULT_STORAGE_ENDPOINT,
        storage_access_key_id=environ.get("FIREBACKUP_STORAGE_ACCESS_KEY_ID") or None,
        storage_secret_access_key=environ.get("FIREBACKUP_STORAGE_SECRET_ACCESS_KEY") or None,
        storage_region=environ.get("FIREBACKUP_STORAGE_REGION") or "auto",
        storage_lifecycle=_parse_bool(
            "FIREBACKUP_STORAGE_LIFECYCLE", environ.get("FIREBACKUP_STORAGE_LIFECYCLE"), None
        ),
        ping_enabled=_parse_bool("FIREBACKUP_PING", environ.get("FIREBACKUP_PING"), True),
        **kwargs,
    )


def resolve_runtime_env(environ: Mapping[str, str] | None = None) -> RuntimeEnvironment:
    """
    Resolve the identity of the running function instance.

    Older runtimes set GCP_PROJECT and FUNCTION_NAME, newer ones
    GCLOUD_PROJECT / GOOGLE_CLOUD_PROJECT and FUNCTION_TARGET / K_SERVICE.

    Raises:
        IncompleteEnvironment: If project id, function name or region is unknown
    """
    environ = os.environ if environ is None else environ

    region = _first(environ, "FUNCTION_REGION") or DEFAULT_REGION
    project_id = _first(environ, "GCP_PROJECT", "GCLOUD_PROJECT", "GOOGLE_CLOUD_PROJECT")
    function_name = _first(environ, "FUNCTION_NAME", "FUNCTION_TARGET", "K_SERVICE")

    missing = [
        name
        for name, value in (
            ("project_id", project_id),
            ("function_name", function_name),
            ("region", region),
        )
        if not value
    ]
    if missing:
        raise IncompleteEnvironment(
            explain_incomplete_runtime_env(missing),
            details={
                "region": region,
                "project_id": project_id,
                "function_name": function_name,
            },
        )

    return RuntimeEnvironment(
        region=region,
        project_id=project_id,
        function_name=function_name,
    )

# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup entry point.

Run with:
    uvicorn --factory firebackup.main:build_app

Environment variables:
    FIREBACKUP_TOKEN: Controller token (required)
    FIREBACKUP_PASSWORD: Admin password (required)
    FIREBACKUP_ALLOWLIST: Comma-separated buckets the agent may write to
    FIREBACKUP_DEBUG: Print debug messages
    FIREBACKUP_STORAGE_ENDPOINT: S3-compatible storage endpoint (default: Cloud Storage)
    FIREBACKUP_STORAGE_ACCESS_KEY_ID / FIREBACKUP_STORAGE_SECRET_ACCESS_KEY:
        HMAC key pair for the storage endpoint. Cloud Storage only accepts
        HMAC keys on its S3-compatible endpoint, the function identity is
        not used for uploads.
    FIREBACKUP_STORAGE_LIFECYCLE: Manage bucket retention with S3 lifecycle
        rules (default: off for Cloud Storage, on for other endpoints)
    GOOGLE_CLOUD_PROJECT / FUNCTION_TARGET / FUNCTION_REGION: Runtime identity
"""

import os
from typing import Mapping

import structlog
from fastapi import FastAPI

from firebackup.env import create_config_from_env, has_agent_config, resolve_runtime_env
from firebackup.exceptions import ConfigurationError, IncompleteEnvironment
from firebackup.integrations.fastapi import create_app, create_dummy_app
from firebackup.log import configure_logging

logger = structlog.get_logger()


def build_app(environ: Mapping[str, str] | None = None) -> FastAPI:
    """
    Build the agent app from the process environment.

    Falls back to the no-op app when:
    - the agent is not configured at all
    - the function is deployed under another name
    - the runtime environment is incomplete
    - the agent is configured with missing or invalid values
    """
    environ = os.environ if environ is None else environ

    if not has_agent_config(environ):
        configure_logging()
        logger.warning(
            "agent_not_configured",
            message="FIREBACKUP_TOKEN is not set, running a dummy handler instead of the agent",
        )
        return create_dummy_app()

    try:
        config = create_config_from_env(environ)
    except ConfigurationError as e:
        configure_logging()
        logger.warning(
            "agent_misconfigured",
            error=e.message,
            message="Running a dummy handler instead of the agent",
            **e.details,
        )
        return create_dummy_app()
    configure_logging(config.debug)

    try:
        runtime_env = resolve_runtime_env(environ)
    except IncompleteEnvironment as e:
        logger.warning(
            "runtime_environment_incomplete",
            message="Running a dummy handler instead of the agent",
            **e.details,
        )
        return create_dummy_app()

    if runtime_env.function_name != config.function_name:
        logger.debug(
            "function_name_mismatch",
            expected=config.function_name,
            actual=runtime_env.function_name,
            message="Running a dummy handler instead of the agent",
        )
        return create_dummy_app()

    logger.debug(
        "agent_initializing",
        options=config.redacted(),
        project_id=runtime_env.project_id,
        region=runtime_env.region,
        function_name=runtime_env.function_name,
    )
    return create_app(config, runtime_env)

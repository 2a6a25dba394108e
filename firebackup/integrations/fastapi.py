# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup FastAPI Integration - The HTTP surface of the agent.

This module provides:
- Controller token and admin password checks
- Backup and status endpoints for users and Firestore
- Storage (bucket and retention) endpoints
- Lifespan management (state, initialization ping)
- The no-op app used when the agent cannot run
"""

import asyncio
import secrets
from contextlib import asynccontextmanager
from typing import Any, Dict, List

import structlog
from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from firebackup import __version__
from firebackup.config import AgentConfig, RuntimeEnvironment
from firebackup.core import (
    AgentState,
    backup_firestore,
    backup_users,
    check_firestore_backup_status,
    initialize_agent_state,
    shutdown_agent_state,
)
from firebackup.exceptions import (
    ExportFailure,
    PolicyViolation,
    RetentionUnsupported,
    StorageError,
)
from firebackup.gate import AllowlistPolicy, Rejected, RequestKind, admit
from firebackup.operation import encode_operation
from firebackup.ping import schedule_initialization_ping
from firebackup.storage import create_storage, list_storage, update_storage_retention

logger = structlog.get_logger()

ADMIN_PASSWORD_HEADER = "X-Admin-Password"

# Security
security = HTTPBearer(auto_error=False)


def get_agent_config(request: Request) -> AgentConfig:
    """Agent configuration of the app serving the request."""
    return request.app.state.firebackup_config


async def verify_controller_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    config: AgentConfig = Depends(get_agent_config),
) -> bool:
    """
    Verify the controller token from the Authorization header.

    Requests must include: Authorization: Bearer <controller token>

    Raises:
        HTTPException: If the token is missing or invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Authorization header required",
        )

    if not secrets.compare_digest(credentials.credentials, config.controller_token):
        raise HTTPException(
            status_code=403,
            detail="Invalid controller token",
        )

    return True


async def verify_admin_password(
    password: str | None = Header(default=None, alias=ADMIN_PASSWORD_HEADER),
    config: AgentConfig = Depends(get_agent_config),
) -> bool:
    """
    Verify the admin password required by destructive operations.

    Raises:
        HTTPException: If the password is missing or invalid
    """
    if not password or not secrets.compare_digest(password, config.admin_password):
        raise HTTPException(
            status_code=403,
            detail="Invalid admin password",
        )

    return True


def get_agent_state(app: FastAPI) -> AgentState:
    """
    Get the agent state from a FastAPI app.

    Raises:
        RuntimeError: If the agent is not initialized
    """
    state = getattr(app.state, "firebackup_state", None)
    if not state:
        raise RuntimeError("Agent not initialized. Use create_app() and run its lifespan.")
    return state


def _admit_or_raise(
    kind: RequestKind,
    body: Any,
    policy: AllowlistPolicy,
    database_name: str | None = None,
) -> Any:
    result = admit(kind, body, policy, database_name)

    if isinstance(result, Rejected):
        status_code = 403 if isinstance(result.error, PolicyViolation) else 400
        logger.warning(
            "request_rejected",
            kind=kind.value,
            reason=result.reason,
            details=result.error.details,
        )
        raise HTTPException(
            status_code=status_code,
            detail={"error": result.reason, **result.error.details},
        )

    return result.request


def register_agent_routes(
    app: FastAPI,
    config: AgentConfig,
    runtime_env: RuntimeEnvironment,
) -> None:
    """
    Register the agent endpoints on a FastAPI app.

    All endpoints require the controller token; storage changes also
    require the admin password.

    Args:
        app: FastAPI application
        config: Agent configuration
        runtime_env: Resolved runtime environment
    """
    policy = AllowlistPolicy.from_buckets(config.buckets_allowlist)

    @app.post("/users", dependencies=[Depends(verify_controller_token)])
    async def backup_users_endpoint(body: Any = Body(default=None)) -> dict:
        """Back up Firebase Authentication users."""
        request = _admit_or_raise(RequestKind.USERS_BACKUP, body, policy)
        operation = await backup_users(config, get_agent_state(app), runtime_env, request)
        return encode_operation(operation)

    @app.post("/firestore", dependencies=[Depends(verify_controller_token)])
    async def backup_firestore_endpoint(body: Any = Body(default=None)) -> dict:
        """Start a Firestore backup."""
        request = _admit_or_raise(RequestKind.FIRESTORE_BACKUP, body, policy)
        operation = await backup_firestore(config, get_agent_state(app), runtime_env, request)
        return encode_operation(operation)

    @app.get("/firestore/status", dependencies=[Depends(verify_controller_token)])
    async def firestore_status_endpoint(
        operation_id: str | None = Query(default=None, alias="operationId"),
    ) -> dict:
        """Check the status of a Firestore backup."""
        query = {"operationId": operation_id} if operation_id is not None else {}
        request = _admit_or_raise(
            RequestKind.FIRESTORE_STATUS, query, policy, runtime_env.database_name
        )
        try:
            operation = await check_firestore_backup_status(get_agent_state(app), request)
        except ExportFailure as e:
            raise HTTPException(status_code=502, detail={"error": e.message})
        return encode_operation(operation)

    @app.get("/storage", dependencies=[Depends(verify_controller_token)])
    async def list_storage_endpoint() -> List[Dict[str, Any]]:
        """List buckets available for backups."""
        try:
            return await list_storage(config, get_agent_state(app)["s3_session"], policy)
        except StorageError as e:
            raise HTTPException(status_code=502, detail={"error": e.message})

    @app.post(
        "/storage",
        status_code=201,
        dependencies=[Depends(verify_controller_token), Depends(verify_admin_password)],
    )
    async def create_storage_endpoint(body: Any = Body(default=None)) -> Dict[str, Any]:
        """Create a bucket with an optional retention policy."""
        request = _admit_or_raise(RequestKind.STORAGE_CREATE, body, policy)
        try:
            return await create_storage(
                config,
                get_agent_state(app)["s3_session"],
                request.storage_id,
                request.location,
                request.retention_days,
            )
        except RetentionUnsupported as e:
            raise HTTPException(status_code=501, detail={"error": e.message, **e.details})
        except StorageError as e:
            raise HTTPException(status_code=502, detail={"error": e.message, **e.details})

    @app.put(
        "/storage/{storage_id}",
        dependencies=[Depends(verify_controller_token), Depends(verify_admin_password)],
    )
    async def update_storage_endpoint(
        storage_id: str,
        body: Any = Body(default=None),
    ) -> Dict[str, Any]:
        """Change the retention policy of a bucket."""
        merged = {**body, "storageId": storage_id} if isinstance(body, dict) else body
        request = _admit_or_raise(RequestKind.STORAGE_UPDATE, merged, policy)
        try:
            return await update_storage_retention(
                config,
                get_agent_state(app)["s3_session"],
                request.storage_id,
                request.retention_days,
            )
        except RetentionUnsupported as e:
            raise HTTPException(status_code=501, detail={"error": e.message, **e.details})
        except StorageError as e:
            raise HTTPException(status_code=502, detail={"error": e.message, **e.details})


def create_app(
    config: AgentConfig,
    runtime_env: RuntimeEnvironment,
    state: AgentState | None = None,
) -> FastAPI:
    """
    Create the agent application.

    When state is None it is initialized by the app lifespan, which also
    sends the initialization ping.

    Args:
        config: Agent configuration
        runtime_env: Resolved runtime environment
        state: Pre-built runtime state (clients), mostly for tests

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def agent_lifespan(app: FastAPI):
        logger.info(
            "agent_starting",
            project_id=runtime_env.project_id,
            function_name=runtime_env.function_name,
            region=runtime_env.region,
        )

        owns_state = app.state.firebackup_state is None
        if owns_state:
            app.state.firebackup_state = await initialize_agent_state(config, runtime_env)

        if config.ping_enabled:
            app.state.firebackup_ping = schedule_initialization_ping(config, runtime_env)

        logger.info("agent_started", agent_url=runtime_env.agent_url)

        try:
            yield
        finally:
            logger.info("agent_stopping")
            ping = getattr(app.state, "firebackup_ping", None)
            if ping is not None and not ping.done():
                ping.cancel()
                try:
                    await ping
                except asyncio.CancelledError:
                    pass
            if owns_state:
                await shutdown_agent_state(app.state.firebackup_state)
                app.state.firebackup_state = None
            logger.info("agent_stopped")

    app = FastAPI(
        title="Firebackup Agent",
        description="Backs up Firestore and Firebase Authentication on behalf of the controller",
        version=__version__,
        lifespan=agent_lifespan,
    )
    app.state.firebackup_config = config
    app.state.firebackup_runtime_env = runtime_env
    app.state.firebackup_state = state
    app.state.firebackup_ping = None

    # Allow requests from the controller web app
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_agent_routes(app, config, runtime_env)
    return app


def create_dummy_app() -> FastAPI:
    """
    Create a no-op app that answers every request with an empty 200.

    Used when the agent is not configured or cannot determine its
    runtime environment.
    """
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route(
        "/{path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
        include_in_schema=False,
    )
    async def noop(path: str) -> Response:
        return Response(status_code=200)

    return app

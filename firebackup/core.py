# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup Core - Backup pipelines.

This module coordinates the components for one backup request:
export, verify, upload, then resolve the stage outcomes into one
Operation. Every stage reports failure as a value, so a pipeline always
ends with a terminal (or, for documents, pending) Operation and the
staged artifact already removed.
"""

from datetime import datetime, UTC
from typing import Any, TypedDict

import structlog

from firebackup.artifacts import temporary_artifact, verify_artifact
from firebackup.config import AgentConfig, RuntimeEnvironment
from firebackup.exceptions import ExportFailure
from firebackup.exporters import check_documents_export, start_export
from firebackup.exporters.documents import output_uri
from firebackup.gate import FirestoreBackupRequest, FirestoreStatusRequest, UsersBackupRequest
from firebackup.operation import (
    ExportOutcome,
    Operation,
    OperationKind,
    VerifiedMetrics,
    resolve_operation,
)
from firebackup.storage import upload_artifact

logger = structlog.get_logger()


class AgentState(TypedDict):
    """Runtime clients shared by all requests."""

    s3_session: Any  # aiobotocore session
    firebase_app: Any  # firebase_admin.App
    firestore_admin: Any  # FirestoreAdminAsyncClient, created on first use
    owns_firebase_app: bool


async def initialize_agent_state(
    config: AgentConfig, runtime_env: RuntimeEnvironment
) -> AgentState:
    """
    Initialize runtime clients.

    The Firestore admin client resolves credentials when constructed, so
    it is created lazily by get_firestore_admin().

    Args:
        config: Agent configuration
        runtime_env: Resolved runtime environment

    Returns:
        Initialized AgentState dictionary
    """
    import firebase_admin
    from aiobotocore.session import get_session

    config.temp_dir.mkdir(parents=True, exist_ok=True)

    owns_app = False
    try:
        app = firebase_admin.get_app()
    except ValueError:
        app = firebase_admin.initialize_app(options={"projectId": runtime_env.project_id})
        owns_app = True

    logger.debug("agent_state_initialized", project_id=runtime_env.project_id)

    return AgentState(
        s3_session=get_session(),
        firebase_app=app,
        firestore_admin=None,
        owns_firebase_app=owns_app,
    )


def get_firestore_admin(state: AgentState) -> Any:
    """Return the Firestore admin client, creating it on first use."""
    if state["firestore_admin"] is None:
        from google.cloud.firestore_admin_v1 import FirestoreAdminAsyncClient

        state["firestore_admin"] = FirestoreAdminAsyncClient()
    return state["firestore_admin"]


async def backup_users(
    config: AgentConfig,
    state: AgentState,
    runtime_env: RuntimeEnvironment,
    request: UsersBackupRequest,
) -> Operation:
    """
    Back up Firebase Authentication users to request.storage_id/request.path.

    1. Export users to a temporary artifact
    2. Count the records in the artifact
    3. Upload the artifact to the bucket
    4. Resolve the outcomes (the artifact is removed before returning)

    Args:
        config: Agent configuration
        state: Runtime state
        runtime_env: Resolved runtime environment
        request: Admitted users backup request

    Returns:
        Terminal Operation (completed or failed)
    """
    started_at = datetime.now(UTC)
    logger.info(
        "users_backup_started",
        storage_id=request.storage_id,
        path=request.path,
    )

    export = None
    verify = None
    upload = None

    try:
        async with temporary_artifact(config.temp_dir, request.path) as artifact:
            export = await start_export(
                OperationKind.IDENTITIES,
                request,
                artifact,
                runtime_env.project_id,
                firebase_app=state["firebase_app"],
            )

            if export.ok:
                verify = await verify_artifact(artifact, OperationKind.IDENTITIES)

                if isinstance(verify, VerifiedMetrics):
                    upload = await upload_artifact(
                        config,
                        state["s3_session"],
                        artifact,
                        request.storage_id,
                        request.path,
                    )
    except OSError as e:
        if export is not None:
            raise
        # The staging directory is unusable, nothing was exported
        logger.error("artifact_reservation_failed", temp_dir=str(config.temp_dir), error=str(e))
        export = ExportOutcome.failed(str(e))

    operation = resolve_operation(
        OperationKind.IDENTITIES, started_at, export, verify, upload
    )

    logger.info(
        "users_backup_finished",
        storage_id=request.storage_id,
        path=request.path,
        state=operation.state.value,
        count=operation.count,
        size=operation.size,
        reason=operation.reason,
    )
    return operation


async def backup_firestore(
    config: AgentConfig,
    state: AgentState,
    runtime_env: RuntimeEnvironment,
    request: FirestoreBackupRequest,
) -> Operation:
    """
    Start a Firestore export and report its first observed status.

    The export usually outlives the request, so the result is typically
    pending; the controller follows up with check_firestore_backup_status().

    Returns:
        Pending Operation with the platform operation id, or a terminal one
    """
    started_at = datetime.now(UTC)
    logger.info(
        "firestore_backup_started",
        storage_id=request.storage_id,
        path=request.path,
        collections=request.collections or [],
    )

    client = get_firestore_admin(state)
    export = await start_export(
        OperationKind.DOCUMENTS,
        request,
        output_uri(request.storage_id, request.path),
        runtime_env.project_id,
        firestore_admin=client,
        database_name=runtime_env.database_name,
    )

    if not export.ok:
        return resolve_operation(OperationKind.DOCUMENTS, started_at, export)

    try:
        return await check_documents_export(client, export.operation_id)
    except ExportFailure as e:
        # The export is running; its status can be read later
        logger.warning(
            "firestore_backup_status_unavailable",
            operation_id=export.operation_id,
            error=str(e),
        )
        return Operation.pending(
            OperationKind.DOCUMENTS, started_at, operation_id=export.operation_id
        )


async def check_firestore_backup_status(
    state: AgentState,
    request: FirestoreStatusRequest,
) -> Operation:
    """
    Read the status of a previously started Firestore export.

    Raises:
        ExportFailure: If the platform operation cannot be read
    """
    return await check_documents_export(get_firestore_admin(state), request.operation_id)


async def shutdown_agent_state(state: AgentState) -> None:
    """Cleanup resources."""
    client = state["firestore_admin"]
    if client is not None:
        try:
            await client.transport.close()
        except Exception as e:
            logger.warning("firestore_admin_close_failed", error=str(e))
        state["firestore_admin"] = None

    if state["owns_firebase_app"]:
        import firebase_admin

        firebase_admin.delete_app(state["firebase_app"])
        state["owns_firebase_app"] = False

    logger.info("agent_state_shutdown_complete")

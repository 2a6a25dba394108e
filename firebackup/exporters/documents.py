# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Document Export - Managed Firestore exports and their status.

Firestore exports run on the platform for longer than one HTTP request
may last. Starting one returns the operation name; the controller then
polls check_documents_export() with it until the operation is terminal.
Polling reads the platform operation every time, so repeated checks of
a finished export return the same result.
"""

from datetime import datetime, UTC
from typing import Any, Dict, List

import structlog
from google.cloud.firestore_admin_v1.types import ExportDocumentsMetadata
from google.cloud.firestore_admin_v1.types import OperationState as ExportState
from google.longrunning import operations_pb2

from firebackup.exceptions import ExportFailure
from firebackup.operation import ExportOutcome, Operation, OperationKind

logger = structlog.get_logger()

EXPORT_CANCELLED_REASON = "The export was cancelled"
EXPORT_FAILED_REASON = "The export failed"
EXPORT_UNKNOWN_REASON = "The export finished without reporting its result"


def output_uri(storage_id: str, path: str) -> str:
    """Cloud Storage prefix an export writes to."""
    return f"gs://{storage_id}/{path}"


async def start_documents_export(
    client: Any,
    database_name: str,
    storage_id: str,
    path: str,
    collections: List[str] | None = None,
) -> ExportOutcome:
    """
    Start a managed export of the default database.

    Args:
        client: FirestoreAdminAsyncClient
        database_name: projects/{project}/databases/(default)
        storage_id: Destination bucket
        path: Prefix inside the bucket
        collections: Collection ids to export (all when empty)

    Returns:
        ExportOutcome carrying the platform operation name
    """
    uri = output_uri(storage_id, path)
    logger.info(
        "documents_export_starting",
        database=database_name,
        output_uri=uri,
        collections=collections or [],
    )

    try:
        operation = await client.export_documents(
            request={
                "name": database_name,
                "output_uri_prefix": uri,
                "collection_ids": collections or [],
            }
        )
    except Exception as e:
        logger.error("documents_export_failed", database=database_name, error=str(e))
        return ExportOutcome.failed(str(e))

    operation_id = operation.operation.name
    logger.info("documents_export_started", operation_id=operation_id)
    return ExportOutcome.succeeded(operation_id=operation_id)


def _read_metadata(operation: operations_pb2.Operation) -> ExportDocumentsMetadata | None:
    if not operation.HasField("metadata"):
        return None
    return ExportDocumentsMetadata.deserialize(operation.metadata.value)


def _progress(metadata: ExportDocumentsMetadata | None) -> Dict[str, Any] | None:
    if metadata is None:
        return None
    progress = {}
    if "progress_documents" in metadata:
        progress["documents"] = {
            "completed": metadata.progress_documents.completed_work,
            "estimated": metadata.progress_documents.estimated_work,
        }
    if "progress_bytes" in metadata:
        progress["bytes"] = {
            "completed": metadata.progress_bytes.completed_work,
            "estimated": metadata.progress_bytes.estimated_work,
        }
    return progress or None


def describe_export_operation(operation: operations_pb2.Operation) -> Operation:
    """
    Map a platform long-running operation onto an Operation.

    running -> pending; done with an error, cancelled, failed or without
    metadata -> failed; otherwise -> completed with documents and bytes counts.
    """
    metadata = _read_metadata(operation)
    started_at = (
        metadata.start_time if metadata is not None and "start_time" in metadata else None
    )
    pending = Operation.pending(
        OperationKind.DOCUMENTS,
        started_at or datetime.now(UTC),
        operation_id=operation.name,
        progress=_progress(metadata),
    )

    if not operation.done:
        return pending

    finished_at = (
        metadata.end_time if metadata is not None and "end_time" in metadata else None
    )

    if operation.HasField("error") and operation.error.code != 0:
        reason = operation.error.message or f"Export failed with code {operation.error.code}"
        return pending.fail(reason, finished_at=finished_at)

    if metadata is None:
        return pending.fail(EXPORT_UNKNOWN_REASON, finished_at=finished_at)

    if metadata.operation_state in (ExportState.CANCELLING, ExportState.CANCELLED):
        return pending.fail(EXPORT_CANCELLED_REASON, finished_at=finished_at)

    if metadata.operation_state == ExportState.FAILED:
        return pending.fail(EXPORT_FAILED_REASON, finished_at=finished_at)

    documents = metadata.progress_documents.completed_work
    size = metadata.progress_bytes.completed_work
    return pending.complete(count=documents, size=str(size), finished_at=finished_at)


async def check_documents_export(client: Any, operation_id: str) -> Operation:
    """
    Read the current status of an export started by start_documents_export().

    Raises:
        ExportFailure: If the operation cannot be read from the platform
    """
    try:
        operation = await client.get_operation(
            request=operations_pb2.GetOperationRequest(name=operation_id)
        )
    except Exception as e:
        logger.error("documents_export_status_failed", operation_id=operation_id, error=str(e))
        raise ExportFailure(str(e), details={"operation_id": operation_id}) from e

    result = describe_export_operation(operation)
    logger.debug(
        "documents_export_status",
        operation_id=operation_id,
        state=result.state.value,
    )
    return result

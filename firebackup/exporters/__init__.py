# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Export Invoker - Uniform entry point over the platform export primitives.
"""

from pathlib import Path
from typing import Any

from firebackup.config import default_database_name
from firebackup.exporters.documents import (
    check_documents_export,
    describe_export_operation,
    start_documents_export,
)
from firebackup.exporters.identities import export_users
from firebackup.operation import ExportOutcome, OperationKind


async def start_export(
    kind: OperationKind,
    request: Any,
    destination: Path | str,
    project_id: str,
    *,
    firebase_app: Any = None,
    firestore_admin: Any = None,
    database_name: str | None = None,
) -> ExportOutcome:
    """
    Start an export of the given kind.

    Args:
        kind: IDENTITIES writes the users file to the local destination;
            DOCUMENTS starts a managed export into the request's bucket
        request: The admitted request (selects collections for documents)
        destination: Local artifact path (identities only)
        project_id: Project being exported
        firebase_app: firebase_admin.App for identity exports
        firestore_admin: FirestoreAdminAsyncClient for document exports
        database_name: Database to export (default: the project's default database)

    Returns:
        ExportOutcome; failures are returned, never raised
    """
    if kind == OperationKind.IDENTITIES:
        return await export_users(firebase_app, Path(destination), project_id)

    return await start_documents_export(
        firestore_admin,
        database_name or default_database_name(project_id),
        request.storage_id,
        request.path,
        request.collections,
    )


__all__ = [
    "start_export",
    "export_users",
    "start_documents_export",
    "check_documents_export",
    "describe_export_operation",
]

# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup Operations - Backup attempt lifecycle and status encoding.

An Operation is one backup attempt. It starts pending and moves exactly
once to completed or failed. The resolver folds the outcomes of the
export, verify and upload stages into that single terminal value, and the
encoder turns it into the {state, data} envelope the controller reads for
every backup kind.
"""

from dataclasses import dataclass, replace
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict


PARSE_FAILURE_REASON = "Failed to parse the backup file"


class OperationKind(str, Enum):
    """What is being backed up."""

    DOCUMENTS = "documents"  # Firestore documents
    IDENTITIES = "identities"  # Firebase Authentication users


class OperationState(str, Enum):
    """Lifecycle state of a backup attempt."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# ============================================================================
# Stage outcomes
# ============================================================================

@dataclass(frozen=True)
class ExportOutcome:
    """Result of starting (or running) an export on the platform."""

    ok: bool
    reason: str | None = None
    operation_id: str | None = None  # Platform operation name (documents only)

    @classmethod
    def succeeded(cls, operation_id: str | None = None) -> "ExportOutcome":
        return cls(ok=True, operation_id=operation_id)

    @classmethod
    def failed(cls, reason: str) -> "ExportOutcome":
        return cls(ok=False, reason=reason)


@dataclass(frozen=True)
class VerifiedMetrics:
    """Metrics extracted from a readable artifact."""

    count: int
    size_bytes: int


@dataclass(frozen=True)
class ParseFailure:
    """The artifact could not be parsed."""

    reason: str = PARSE_FAILURE_REASON
    detail: str | None = None  # Parser message, logged but not reported


VerifyOutcome = VerifiedMetrics | ParseFailure


@dataclass(frozen=True)
class UploadOutcome:
    """Result of writing the artifact to the destination bucket."""

    ok: bool
    size: str | None = None
    reason: str | None = None

    @classmethod
    def succeeded(cls, size: str) -> "UploadOutcome":
        return cls(ok=True, size=size)

    @classmethod
    def failed(cls, reason: str) -> "UploadOutcome":
        return cls(ok=False, reason=reason)


# ============================================================================
# Operation
# ============================================================================

@dataclass(frozen=True)
class Operation:
    """
    One backup attempt.

    finished_at is None exactly while the operation is pending. Terminal
    operations cannot transition again.
    """

    kind: OperationKind
    state: OperationState
    started_at: datetime
    finished_at: datetime | None = None
    count: int | None = None
    size: str | None = None
    reason: str | None = None
    operation_id: str | None = None
    progress: Dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.state == OperationState.PENDING and self.finished_at is not None:
            raise ValueError("Pending operation cannot have finished_at")
        if self.state != OperationState.PENDING and self.finished_at is None:
            raise ValueError(f"{self.state.value} operation requires finished_at")
        if self.state == OperationState.COMPLETED and (self.count is None or self.size is None):
            raise ValueError("Completed operation requires count and size")
        if self.state == OperationState.FAILED and not self.reason:
            raise ValueError("Failed operation requires a reason")

    @classmethod
    def pending(
        cls,
        kind: OperationKind,
        started_at: datetime | None = None,
        operation_id: str | None = None,
        progress: Dict[str, Any] | None = None,
    ) -> "Operation":
        return cls(
            kind=kind,
            state=OperationState.PENDING,
            started_at=started_at or datetime.now(UTC),
            operation_id=operation_id,
            progress=progress,
        )

    @property
    def is_terminal(self) -> bool:
        return self.state != OperationState.PENDING

    def complete(
        self, count: int, size: str, finished_at: datetime | None = None
    ) -> "Operation":
        """Move a pending operation to completed."""
        self._ensure_pending()
        return replace(
            self,
            state=OperationState.COMPLETED,
            finished_at=finished_at or datetime.now(UTC),
            count=count,
            size=size,
            progress=None,
        )

    def fail(self, reason: str, finished_at: datetime | None = None) -> "Operation":
        """Move a pending operation to failed."""
        self._ensure_pending()
        return replace(
            self,
            state=OperationState.FAILED,
            finished_at=finished_at or datetime.now(UTC),
            reason=reason,
            progress=None,
        )

    def _ensure_pending(self) -> None:
        if self.is_terminal:
            raise ValueError(f"Operation is already {self.state.value}")


def resolve_operation(
    kind: OperationKind,
    started_at: datetime,
    export: ExportOutcome,
    verify: VerifyOutcome | None = None,
    upload: UploadOutcome | None = None,
) -> Operation:
    """
    Fold stage outcomes into one terminal operation.

    Stages are checked in pipeline order; the first failure wins:
    1. Export failed -> failed with the export error
    2. Artifact unreadable -> failed with PARSE_FAILURE_REASON
    3. Upload failed -> failed with the upload error
    4. Otherwise -> completed with the verified count and uploaded size

    Args:
        kind: Backup kind
        started_at: When the attempt started
        export: Export stage outcome
        verify: Verify stage outcome (required once the export succeeded)
        upload: Upload stage outcome (required once verification succeeded)

    Returns:
        Terminal Operation
    """
    operation = Operation.pending(kind, started_at, operation_id=export.operation_id)

    if not export.ok:
        return operation.fail(export.reason or "Export failed")

    if verify is None:
        raise ValueError("Verification outcome is required after a successful export")

    if isinstance(verify, ParseFailure):
        return operation.fail(verify.reason)

    if upload is None:
        raise ValueError("Upload outcome is required after a successful verification")

    if not upload.ok:
        return operation.fail(upload.reason or "Upload failed")

    return operation.complete(count=verify.count, size=upload.size or str(verify.size_bytes))


# ============================================================================
# Wire encoding
# ============================================================================

COUNT_FIELDS: Dict[OperationKind, str] = {
    OperationKind.IDENTITIES: "usersCount",
    OperationKind.DOCUMENTS: "documentsCount",
}


def encode_operation(operation: Operation) -> Dict[str, Any]:
    """
    Encode an operation as the {state, data} envelope.

    - completed: {<count field>: N, "size": "<bytes>"}
    - failed: {"reason": "..."}
    - pending: {"id": "<operation id>", "progress": {...}} (fields omitted when unknown)
    """
    if operation.state == OperationState.COMPLETED:
        data: Dict[str, Any] = {
            COUNT_FIELDS[operation.kind]: operation.count,
            "size": operation.size,
        }
    elif operation.state == OperationState.FAILED:
        data = {"reason": operation.reason}
    else:
        data = {}
        if operation.operation_id:
            data["id"] = operation.operation_id
        if operation.progress:
            data["progress"] = operation.progress

    return {"state": operation.state.value, "data": data}

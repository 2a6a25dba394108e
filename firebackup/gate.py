# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup Request Gate - Validate requests before any side effect.

Each endpoint kind has its own request model. The gate parses the raw
body into that model and checks the bucket against the allowlist. It
never touches the platform: starting an export cannot be cheaply
undone, so everything that can be rejected is rejected here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from firebackup.config import is_valid_bucket_name
from firebackup.errors import explain_bucket_not_allowed, explain_foreign_operation
from firebackup.exceptions import AgentError, InvalidRequest, PolicyViolation


class RequestKind(str, Enum):
    """Endpoint kinds accepted by the gate."""

    USERS_BACKUP = "users_backup"
    FIRESTORE_BACKUP = "firestore_backup"
    FIRESTORE_STATUS = "firestore_status"
    STORAGE_CREATE = "storage_create"
    STORAGE_UPDATE = "storage_update"


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class _BucketRequest(_RequestModel):
    storage_id: str = Field(alias="storageId", min_length=1)

    @field_validator("storage_id")
    @classmethod
    def _check_bucket(cls, value: str) -> str:
        if not is_valid_bucket_name(value):
            raise ValueError(f"invalid bucket name: {value!r}")
        return value


class UsersBackupRequest(_BucketRequest):
    """POST /users"""

    path: str = Field(min_length=1)

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        return _validate_object_path(value)


class FirestoreBackupRequest(_BucketRequest):
    """POST /firestore"""

    path: str = Field(min_length=1)
    collections: List[str] | None = None

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        return _validate_object_path(value)

    @field_validator("collections")
    @classmethod
    def _check_collections(cls, value: List[str] | None) -> List[str] | None:
        if value is not None and any(not c for c in value):
            raise ValueError("collection ids must not be empty")
        return value


class FirestoreStatusRequest(_RequestModel):
    """GET /firestore/status"""

    operation_id: str = Field(alias="operationId", min_length=1)


class StorageCreateRequest(_BucketRequest):
    """POST /storage"""

    location: str | None = None
    retention_days: int | None = Field(default=None, alias="retentionDays", ge=1)


class StorageUpdateRequest(_BucketRequest):
    """PUT /storage/{storageId}"""

    retention_days: int | None = Field(alias="retentionDays", ge=1)


BackupRequest = Union[
    UsersBackupRequest,
    FirestoreBackupRequest,
    FirestoreStatusRequest,
    StorageCreateRequest,
    StorageUpdateRequest,
]

REQUEST_MODELS = {
    RequestKind.USERS_BACKUP: UsersBackupRequest,
    RequestKind.FIRESTORE_BACKUP: FirestoreBackupRequest,
    RequestKind.FIRESTORE_STATUS: FirestoreStatusRequest,
    RequestKind.STORAGE_CREATE: StorageCreateRequest,
    RequestKind.STORAGE_UPDATE: StorageUpdateRequest,
}


def _validate_object_path(value: str) -> str:
    if value.startswith("/") or value.endswith("/"):
        raise ValueError("path must not start or end with '/'")
    if any(part in ("", ".", "..") for part in value.split("/")):
        raise ValueError("path must not contain empty, '.' or '..' segments")
    return value


# ============================================================================
# Policy
# ============================================================================

@dataclass(frozen=True)
class AllowlistPolicy:
    """
    Buckets a request may target.

    An empty policy means no restriction, not "deny all".
    """

    buckets: FrozenSet[str] = frozenset()

    @classmethod
    def from_buckets(cls, buckets: Iterable[str] | None) -> "AllowlistPolicy":
        return cls(frozenset(buckets or ()))

    @property
    def restricted(self) -> bool:
        return bool(self.buckets)

    def permits(self, storage_id: str) -> bool:
        return not self.restricted or storage_id in self.buckets


@dataclass(frozen=True)
class Admitted:
    """The request passed the gate."""

    request: BackupRequest


@dataclass(frozen=True)
class Rejected:
    """The request was refused; nothing has been started."""

    error: AgentError

    @property
    def reason(self) -> str:
        return self.error.message


def admit(
    kind: RequestKind,
    body: Any,
    policy: AllowlistPolicy,
    database_name: str | None = None,
) -> Admitted | Rejected:
    """
    Validate a request body and check it against the allowlist.

    Args:
        kind: Endpoint kind, selects the request model
        body: Raw request body (or query parameters) as received
        policy: Bucket allowlist
        database_name: Default database of this project; when given,
            status checks must reference one of its operations

    Returns:
        Admitted with the parsed request, or Rejected with an
        InvalidRequest / PolicyViolation
    """
    model = REQUEST_MODELS[kind]

    if not isinstance(body, dict):
        return Rejected(InvalidRequest("Request body must be a JSON object"))

    try:
        request = model.model_validate(body)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
            for err in e.errors()
        ]
        return Rejected(
            InvalidRequest("Invalid request", details={"errors": errors})
        )

    storage_id = getattr(request, "storage_id", None)
    if storage_id is not None and not policy.permits(storage_id):
        return Rejected(
            PolicyViolation(
                explain_bucket_not_allowed(storage_id),
                details={"storage_id": storage_id},
            )
        )

    if isinstance(request, FirestoreStatusRequest) and database_name:
        if not request.operation_id.startswith(f"{database_name}/operations/"):
            project_id = database_name.split("/")[1]
            return Rejected(
                InvalidRequest(explain_foreign_operation(request.operation_id, project_id))
            )

    return Admitted(request)

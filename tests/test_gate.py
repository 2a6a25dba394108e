# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Request Gate Tests.

The gate must reject everything it can before any export is started:
missing fields, unsafe paths, buckets outside the allowlist and status
checks for operations of other projects.
"""

import pytest

from firebackup.exceptions import InvalidRequest, PolicyViolation
from firebackup.gate import (
    Admitted,
    AllowlistPolicy,
    FirestoreBackupRequest,
    Rejected,
    RequestKind,
    UsersBackupRequest,
    admit,
)

from conftest import DATABASE_NAME


def test_admits_users_request_in_allowlist():
    result = admit(
        RequestKind.USERS_BACKUP,
        {"storageId": "b1", "path": "users/2024.json"},
        AllowlistPolicy.from_buckets(["b1"]),
    )

    assert isinstance(result, Admitted)
    assert isinstance(result.request, UsersBackupRequest)
    assert result.request.storage_id == "b1"
    assert result.request.path == "users/2024.json"


def test_rejects_bucket_outside_allowlist():
    result = admit(
        RequestKind.USERS_BACKUP,
        {"storageId": "b2", "path": "users/2024.json"},
        AllowlistPolicy.from_buckets(["b1"]),
    )

    assert isinstance(result, Rejected)
    assert isinstance(result.error, PolicyViolation)
    assert "b2" in result.reason


@pytest.mark.parametrize("buckets", [None, []])
def test_missing_or_empty_allowlist_permits_any_bucket(buckets):
    result = admit(
        RequestKind.USERS_BACKUP,
        {"storageId": "anything", "path": "users.json"},
        AllowlistPolicy.from_buckets(buckets),
    )

    assert isinstance(result, Admitted)


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"storageId": "b1"},
        {"path": "users.json"},
        {"storageId": "", "path": "users.json"},
        {"storageId": "b1", "path": ""},
        {"storageId": "b1", "path": "../etc/passwd"},
        {"storageId": "b1", "path": "/absolute.json"},
        {"storageId": "b1/evil", "path": "users.json"},
        {"storageId": 42, "path": "users.json"},
    ],
)
def test_rejects_invalid_users_request(body):
    result = admit(RequestKind.USERS_BACKUP, body, AllowlistPolicy())

    assert isinstance(result, Rejected)
    assert isinstance(result.error, InvalidRequest)
    assert result.error.details["errors"]


def test_rejects_non_object_body():
    result = admit(RequestKind.USERS_BACKUP, ["b1", "users.json"], AllowlistPolicy())

    assert isinstance(result, Rejected)
    assert isinstance(result.error, InvalidRequest)


def test_invalid_fields_are_reported_before_policy():
    """A malformed request is an InvalidRequest even for a foreign bucket."""
    result = admit(
        RequestKind.USERS_BACKUP,
        {"storageId": "b2"},
        AllowlistPolicy.from_buckets(["b1"]),
    )

    assert isinstance(result.error, InvalidRequest)


def test_firestore_request_with_collections():
    result = admit(
        RequestKind.FIRESTORE_BACKUP,
        {"storageId": "b1", "path": "firestore/2024", "collections": ["users", "posts"]},
        AllowlistPolicy.from_buckets(["b1"]),
    )

    assert isinstance(result, Admitted)
    assert isinstance(result.request, FirestoreBackupRequest)
    assert result.request.collections == ["users", "posts"]


def test_firestore_request_rejects_empty_collection_id():
    result = admit(
        RequestKind.FIRESTORE_BACKUP,
        {"storageId": "b1", "path": "firestore/2024", "collections": ["users", ""]},
        AllowlistPolicy(),
    )

    assert isinstance(result.error, InvalidRequest)


def test_status_request_requires_operation_id():
    result = admit(RequestKind.FIRESTORE_STATUS, {}, AllowlistPolicy(), DATABASE_NAME)

    assert isinstance(result.error, InvalidRequest)


def test_status_request_for_own_database_is_admitted():
    operation_id = f"{DATABASE_NAME}/operations/abc"
    result = admit(
        RequestKind.FIRESTORE_STATUS,
        {"operationId": operation_id},
        AllowlistPolicy(),
        DATABASE_NAME,
    )

    assert isinstance(result, Admitted)
    assert result.request.operation_id == operation_id


def test_status_request_for_other_project_is_rejected():
    result = admit(
        RequestKind.FIRESTORE_STATUS,
        {"operationId": "projects/other/databases/(default)/operations/abc"},
        AllowlistPolicy(),
        DATABASE_NAME,
    )

    assert isinstance(result.error, InvalidRequest)
    assert "other" in result.reason


def test_storage_update_allows_removing_retention():
    result = admit(
        RequestKind.STORAGE_UPDATE,
        {"storageId": "b1", "retentionDays": None},
        AllowlistPolicy.from_buckets(["b1"]),
    )

    assert isinstance(result, Admitted)
    assert result.request.retention_days is None


def test_storage_update_rejects_non_positive_retention():
    result = admit(
        RequestKind.STORAGE_UPDATE,
        {"storageId": "b1", "retentionDays": 0},
        AllowlistPolicy(),
    )

    assert isinstance(result.error, InvalidRequest)

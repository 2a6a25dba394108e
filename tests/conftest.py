# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for firebackup tests.

Provides test configuration, fake platform clients (Firebase Auth,
Firestore admin, object storage) and helpers to build export operations.
"""

import json
import tempfile
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, Generator, List

import pytest
from google.cloud.firestore_admin_v1.types import ExportDocumentsMetadata
from google.cloud.firestore_admin_v1.types import OperationState as ExportState
from google.longrunning import operations_pb2
from google.protobuf import any_pb2
from google.rpc import status_pb2

CONTROLLER_TOKEN = "test-controller-token"
ADMIN_PASSWORD = "test-admin-password"
PROJECT_ID = "demo-project"
DATABASE_NAME = f"projects/{PROJECT_ID}/databases/(default)"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def artifacts_dir(temp_dir: Path) -> Path:
    """Directory the agent stages exports in."""
    path = temp_dir / "artifacts"
    path.mkdir()
    return path


@pytest.fixture
def test_config(artifacts_dir: Path):
    """Create a test configuration with an allowlist."""
    from firebackup.config import AgentConfig

    return AgentConfig(
        controller_token=CONTROLLER_TOKEN,
        admin_password=ADMIN_PASSWORD,
        buckets_allowlist=["b1"],
        temp_dir=artifacts_dir,
        storage_endpoint_url=None,
        storage_region="us-east-1",
        ping_enabled=False,
    )


@pytest.fixture
def runtime_env():
    """Create a complete runtime environment."""
    from firebackup.config import RuntimeEnvironment

    return RuntimeEnvironment(
        region="us-central1",
        project_id=PROJECT_ID,
        function_name="backupfire",
    )


# ============================================================================
# Object storage
# ============================================================================

class FakeStorageClient:
    """In-memory stand-in for an aiobotocore S3 client."""

    def __init__(self, reported_size: int | None = None, put_error: Exception | None = None):
        self.objects: Dict[tuple, bytes] = {}
        self.reported_size = reported_size
        self.put_error = put_error

    async def put_object(self, Bucket: str, Key: str, Body: bytes, **kwargs: Any) -> dict:
        if self.put_error is not None:
            raise self.put_error
        self.objects[(Bucket, Key)] = Body
        return {}

    async def head_object(self, Bucket: str, Key: str) -> dict:
        body = self.objects[(Bucket, Key)]
        size = self.reported_size if self.reported_size is not None else len(body)
        return {"ContentLength": size}


class FakeStorageSession:
    """Stand-in for an aiobotocore session handing out one client."""

    def __init__(self, client: FakeStorageClient):
        self.client = client
        self.client_kwargs: List[dict] = []

    @asynccontextmanager
    async def _client(self):
        yield self.client

    def create_client(self, service_name: str, **kwargs: Any):
        self.client_kwargs.append({"service_name": service_name, **kwargs})
        return self._client()


@pytest.fixture
def storage_client() -> FakeStorageClient:
    return FakeStorageClient(reported_size=1024)


@pytest.fixture
def storage_session(storage_client: FakeStorageClient) -> FakeStorageSession:
    return FakeStorageSession(storage_client)


# ============================================================================
# Firebase Authentication
# ============================================================================

def make_user(index: int) -> SimpleNamespace:
    """Build an object shaped like firebase_admin ExportedUserRecord."""
    return SimpleNamespace(
        uid=f"uid-{index}",
        email=f"user{index}@example.com",
        email_verified=index % 2 == 0,
        password_hash="aGFzaA==",
        password_salt="c2FsdA==",
        display_name=f"User {index}",
        photo_url=None,
        phone_number=None,
        disabled=False,
        custom_claims={"admin": True} if index == 0 else None,
        provider_data=[
            SimpleNamespace(
                provider_id="password",
                uid=f"user{index}@example.com",
                email=f"user{index}@example.com",
                display_name=None,
                photo_url=None,
                phone_number=None,
            )
        ],
        user_metadata=SimpleNamespace(
            creation_timestamp=1700000000000 + index,
            last_sign_in_timestamp=None,
        ),
    )


class FakeUsersPage:
    def __init__(self, users: List[SimpleNamespace]):
        self.users = users

    def iterate_all(self):
        return iter(self.users)


@pytest.fixture
def fake_auth_users(monkeypatch):
    """
    Replace firebase_admin.auth.list_users with an in-memory user list.

    Returns a function that sets the users (or an error) to return.
    """
    from firebackup.exporters import identities

    calls: List[Any] = []
    settings: Dict[str, Any] = {"users": [], "error": None}

    def list_users(app=None, **kwargs):
        calls.append(app)
        if settings["error"] is not None:
            raise settings["error"]
        return FakeUsersPage(settings["users"])

    monkeypatch.setattr(identities.auth, "list_users", list_users)

    def configure(count: int = 0, error: Exception | None = None) -> List[Any]:
        settings["users"] = [make_user(i) for i in range(count)]
        settings["error"] = error
        return calls

    return configure


# ============================================================================
# Firestore admin
# ============================================================================

def pack_metadata(**fields: Any) -> any_pb2.Any:
    """Pack ExportDocumentsMetadata into a protobuf Any."""
    packed = any_pb2.Any()
    packed.Pack(ExportDocumentsMetadata.pb(ExportDocumentsMetadata(**fields)))
    return packed


def running_operation(name: str, completed: int = 10, estimated: int = 100) -> operations_pb2.Operation:
    return operations_pb2.Operation(
        name=name,
        done=False,
        metadata=pack_metadata(
            start_time=datetime(2024, 1, 1, tzinfo=UTC),
            operation_state=ExportState.PROCESSING,
            progress_documents={"completed_work": completed, "estimated_work": estimated},
            progress_bytes={"completed_work": completed * 100, "estimated_work": estimated * 100},
        ),
    )


def finished_operation(name: str, documents: int, size: int) -> operations_pb2.Operation:
    return operations_pb2.Operation(
        name=name,
        done=True,
        metadata=pack_metadata(
            start_time=datetime(2024, 1, 1, tzinfo=UTC),
            end_time=datetime(2024, 1, 1, 0, 5, tzinfo=UTC),
            operation_state=ExportState.SUCCESSFUL,
            progress_documents={"completed_work": documents, "estimated_work": documents},
            progress_bytes={"completed_work": size, "estimated_work": size},
        ),
    )


def failed_operation(name: str, code: int, message: str) -> operations_pb2.Operation:
    return operations_pb2.Operation(
        name=name,
        done=True,
        error=status_pb2.Status(code=code, message=message),
        metadata=pack_metadata(
            start_time=datetime(2024, 1, 1, tzinfo=UTC),
            end_time=datetime(2024, 1, 1, 0, 1, tzinfo=UTC),
            operation_state=ExportState.FAILED,
        ),
    )


class FakeFirestoreAdmin:
    """In-memory stand-in for FirestoreAdminAsyncClient."""

    def __init__(self):
        self.operations: Dict[str, operations_pb2.Operation] = {}
        self.export_requests: List[dict] = []
        self.export_error: Exception | None = None
        self.status_error: Exception | None = None

    async def export_documents(self, request: dict):
        self.export_requests.append(request)
        if self.export_error is not None:
            raise self.export_error
        name = f"{request['name']}/operations/op-{len(self.export_requests)}"
        self.operations[name] = running_operation(name)
        return SimpleNamespace(operation=SimpleNamespace(name=name))

    async def get_operation(self, request: operations_pb2.GetOperationRequest):
        if self.status_error is not None:
            raise self.status_error
        operation = operations_pb2.Operation()
        operation.CopyFrom(self.operations[request.name])
        return operation


@pytest.fixture
def firestore_admin() -> FakeFirestoreAdmin:
    return FakeFirestoreAdmin()


@pytest.fixture
def agent_state(storage_session, firestore_admin):
    """Runtime state wired to the fake clients."""
    from firebackup.core import AgentState

    return AgentState(
        s3_session=storage_session,
        firebase_app=None,
        firestore_admin=firestore_admin,
        owns_firebase_app=False,
    )


def write_users_file(path: Path, count: int) -> None:
    """Write a firebase-tools style users export."""
    users = [{"localId": f"uid-{i}"} for i in range(count)]
    path.write_text(json.dumps({"users": users}))


def auth_headers(token: str = CONTROLLER_TOKEN, password: str | None = None) -> dict:
    headers = {"Authorization": f"Bearer {token}"}
    if password is not None:
        headers["X-Admin-Password"] = password
    return headers

# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation and passed by
reference into every component, so nothing reads the process environment
after startup.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List
import re
import tempfile
from urllib.parse import urlsplit


DEFAULT_CONTROLLER_DOMAIN = "backupfire.dev"
DEFAULT_REGION = "us-central1"
DEFAULT_FUNCTION_NAME = "backupfire"
DEFAULT_STORAGE_ENDPOINT = "https://storage.googleapis.com"
CLOUD_STORAGE_HOST = "storage.googleapis.com"


def is_valid_bucket_name(bucket: str) -> bool:
    """
    Validate a bucket identifier before it is used in a storage call.

    Rules:
    - 1-222 characters
    - Letters, numbers, hyphens, underscores and periods
    - Must start with a letter or number
    - No consecutive periods (no path traversal)
    """
    if not bucket or len(bucket) > 222:
        return False

    if not re.match(r"^[A-Za-z0-9][A-Za-z0-9._-]*$", bucket):
        return False

    if ".." in bucket:
        return False

    return True


def default_database_name(project_id: str) -> str:
    """Resource name of a project's default Firestore database."""
    return f"projects/{project_id}/databases/(default)"


@dataclass(frozen=True)
class RuntimeEnvironment:
    """
    Identity of the running function instance.

    Resolved once at startup; see firebackup.env.resolve_runtime_env().
    """

    region: str
    project_id: str
    function_name: str

    @property
    def agent_url(self) -> str:
        """Externally reachable URL of this agent."""
        return (
            f"https://{self.region}-{self.project_id}.cloudfunctions.net/"
            f"{self.function_name}"
        )

    @property
    def database_name(self) -> str:
        """Resource name of the project's default Firestore database."""
        return default_database_name(self.project_id)


@dataclass(frozen=True)
class AgentConfig:
    """
    Immutable configuration for the backup agent.
    """

    # Token shared with the controller, required on every request
    controller_token: str

    # Password protecting destructive operations
    admin_password: str

    # Controller domain that receives the initialization ping
    controller_domain: str = DEFAULT_CONTROLLER_DOMAIN

    # Buckets the agent may write to; None means no restriction
    buckets_allowlist: List[str] | None = None

    # Print debug messages to the log
    debug: bool = False

    # The agent only serves requests when deployed under this function name
    function_name: str = DEFAULT_FUNCTION_NAME

    # Directory for staging exported artifacts
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))

    # S3-compatible endpoint of the object storage
    storage_endpoint_url: str | None = DEFAULT_STORAGE_ENDPOINT

    # HMAC key pair for the storage endpoint; when unset the botocore
    # credential chain (AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY, ...) is used
    storage_access_key_id: str | None = None
    storage_secret_access_key: str | None = None

    # Region name passed to the storage client
    storage_region: str = "auto"

    # Manage retention with S3 lifecycle rules (None: only when the
    # endpoint is not Cloud Storage, whose XML API uses another lifecycle schema)
    storage_lifecycle: bool | None = None

    # Send the initialization ping on startup
    ping_enabled: bool = True

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not self.controller_token:
            errors.append("controller_token must not be empty")

        if not self.admin_password:
            errors.append("admin_password must not be empty")

        if not self.controller_domain:
            errors.append("controller_domain must not be empty")

        if not self.function_name:
            errors.append("function_name must not be empty")

        if bool(self.storage_access_key_id) != bool(self.storage_secret_access_key):
            errors.append(
                "storage_access_key_id and storage_secret_access_key must be set together"
            )

        for bucket in self.buckets_allowlist or []:
            if not is_valid_bucket_name(bucket):
                errors.append(f"Invalid bucket name in allowlist: {bucket}")

        if errors:
            from firebackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def manages_retention(self) -> bool:
        """Whether bucket retention can be read and written on this endpoint."""
        if self.storage_lifecycle is not None:
            return self.storage_lifecycle
        if not self.storage_endpoint_url:
            return True
        return urlsplit(self.storage_endpoint_url).hostname != CLOUD_STORAGE_HOST

    def with_updates(self, **kwargs) -> "AgentConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return AgentConfig(**current)

    def redacted(self) -> dict:
        """Configuration safe to print to the log."""
        return {
            "controller_domain": self.controller_domain,
            "buckets_allowlist": self.buckets_allowlist,
            "debug": self.debug,
            "function_name": self.function_name,
            "temp_dir": str(self.temp_dir),
            "storage_endpoint_url": self.storage_endpoint_url,
            "storage_region": self.storage_region,
            "storage_credentials": "hmac" if self.storage_access_key_id else "default",
            "storage_lifecycle": self.manages_retention,
            "ping_enabled": self.ping_enabled,
        }

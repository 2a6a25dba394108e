# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for the backup agent.

These helpers centralize wording for common configuration and request
errors so that all modules present consistent, actionable messages.
"""

from typing import List


def explain_missing_token_env() -> str:
    """
    Explain that the controller token environment variable is missing.
    """

    return (
        "Controller token is not configured. "
        "Set the FIREBACKUP_TOKEN environment variable to the token issued by the controller."
    )


def explain_missing_password_env() -> str:
    """
    Explain that the admin password environment variable is missing.
    """

    return (
        "Admin password is not configured. "
        "Set the FIREBACKUP_PASSWORD environment variable; it protects destructive "
        "operations such as retention policy changes."
    )


def explain_invalid_debug_env(value: str | None) -> str:
    """
    Explain that FIREBACKUP_DEBUG is invalid.
    """

    return (
        f"Invalid FIREBACKUP_DEBUG value: {value!r}. "
        "Expected 'true' or 'false'."
    )


def explain_incomplete_runtime_env(missing: List[str]) -> str:
    """
    Explain which pieces of the runtime identity could not be determined.
    """

    return (
        f"Runtime environment is incomplete, missing: {', '.join(missing)}. "
        "Set GCP_PROJECT (or GOOGLE_CLOUD_PROJECT), FUNCTION_NAME (or FUNCTION_TARGET) "
        "and FUNCTION_REGION, or deploy the agent as a managed function."
    )


def explain_bucket_not_allowed(storage_id: str) -> str:
    """
    Explain that a bucket is outside the configured allowlist.
    """

    return (
        f"Bucket {storage_id!r} is not in the buckets allowlist. "
        "Add it to FIREBACKUP_ALLOWLIST to allow backups to it."
    )


def explain_foreign_operation(operation_id: str, project_id: str) -> str:
    """
    Explain that an operation id does not belong to this project's database.
    """

    return (
        f"Operation {operation_id!r} does not belong to the default Firestore "
        f"database of project {project_id!r}."
    )


def explain_retention_unsupported(endpoint_url: str | None) -> str:
    """
    Explain that the storage endpoint cannot manage retention rules.
    """

    return (
        f"The storage endpoint {endpoint_url!r} does not accept S3 lifecycle rules, "
        "so bucket retention cannot be managed by the agent. Configure retention "
        "on the bucket directly, or set FIREBACKUP_STORAGE_LIFECYCLE=true when the "
        "endpoint supports S3 lifecycle configuration."
    )

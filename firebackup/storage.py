# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup Storage - Artifact upload and bucket retention management.

Buckets are reached through their S3-compatible endpoint (Cloud Storage
interoperability by default, authenticated with an HMAC key pair).
Retention is a single S3 lifecycle rule owned by the agent; other
lifecycle rules on the bucket are left untouched. Cloud Storage reads and
writes lifecycle configuration in its own XML schema, so retention is only
managed when AgentConfig.manages_retention allows it.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List

import aiofiles
import structlog
from botocore.exceptions import ClientError

from firebackup.config import AgentConfig
from firebackup.errors import explain_retention_unsupported
from firebackup.exceptions import RetentionUnsupported, StorageError
from firebackup.gate import AllowlistPolicy
from firebackup.operation import UploadOutcome

logger = structlog.get_logger()

RETENTION_RULE_ID = "firebackup-retention"


@asynccontextmanager
async def storage_client(config: AgentConfig, s3_session: Any) -> AsyncIterator[Any]:
    """Create a storage client for one operation."""
    credentials: Dict[str, str] = {}
    if config.storage_access_key_id:
        credentials = {
            "aws_access_key_id": config.storage_access_key_id,
            "aws_secret_access_key": config.storage_secret_access_key,
        }

    async with s3_session.create_client(
        "s3",
        region_name=config.storage_region,
        endpoint_url=config.storage_endpoint_url,
        **credentials,
    ) as client:
        yield client


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


# ============================================================================
# Upload
# ============================================================================

async def upload_artifact(
    config: AgentConfig,
    s3_session: Any,
    local_path: Path,
    storage_id: str,
    key: str,
) -> UploadOutcome:
    """
    Upload a local artifact to storage_id/key.

    Returns:
        UploadOutcome with the stored object size as a string, or the
        storage error message
    """
    try:
        async with aiofiles.open(local_path, "rb") as f:
            body = await f.read()

        async with storage_client(config, s3_session) as client:
            await client.put_object(
                Bucket=storage_id,
                Key=key,
                Body=body,
                ContentType="application/json",
            )
            head = await client.head_object(Bucket=storage_id, Key=key)
    except Exception as e:
        logger.error(
            "artifact_upload_failed",
            storage_id=storage_id,
            key=key,
            error=str(e),
        )
        return UploadOutcome.failed(str(e))

    size = str(head["ContentLength"])
    logger.info("artifact_uploaded", storage_id=storage_id, key=key, size=size)
    return UploadOutcome.succeeded(size)


# ============================================================================
# Bucket management
# ============================================================================

async def _get_lifecycle_rules(client: Any, storage_id: str) -> List[Dict[str, Any]]:
    try:
        response = await client.get_bucket_lifecycle_configuration(Bucket=storage_id)
    except ClientError as e:
        if _error_code(e) == "NoSuchLifecycleConfiguration":
            return []
        raise
    return response.get("Rules", [])


def _retention_days(rules: List[Dict[str, Any]]) -> int | None:
    for rule in rules:
        if rule.get("ID") == RETENTION_RULE_ID and rule.get("Status") == "Enabled":
            return rule.get("Expiration", {}).get("Days")
    return None


async def _describe_bucket(
    config: AgentConfig, client: Any, storage_id: str
) -> Dict[str, Any]:
    location = await client.get_bucket_location(Bucket=storage_id)
    retention_days = None
    if config.manages_retention:
        retention_days = _retention_days(await _get_lifecycle_rules(client, storage_id))
    return {
        "storageId": storage_id,
        "location": location.get("LocationConstraint"),
        "retentionDays": retention_days,
    }


def _ensure_retention_supported(config: AgentConfig, storage_id: str) -> None:
    if not config.manages_retention:
        raise RetentionUnsupported(
            explain_retention_unsupported(config.storage_endpoint_url),
            details={"storage_id": storage_id},
        )


async def _put_retention(client: Any, storage_id: str, retention_days: int | None) -> None:
    rules = [
        r for r in await _get_lifecycle_rules(client, storage_id)
        if r.get("ID") != RETENTION_RULE_ID
    ]
    if retention_days is not None:
        rules.append({
            "ID": RETENTION_RULE_ID,
            "Status": "Enabled",
            "Filter": {"Prefix": ""},
            "Expiration": {"Days": retention_days},
        })

    if rules:
        await client.put_bucket_lifecycle_configuration(
            Bucket=storage_id,
            LifecycleConfiguration={"Rules": rules},
        )
    else:
        await client.delete_bucket_lifecycle(Bucket=storage_id)


async def list_storage(
    config: AgentConfig,
    s3_session: Any,
    policy: AllowlistPolicy,
) -> List[Dict[str, Any]]:
    """
    List buckets the agent can see, restricted to the allowlist.

    Returns:
        List of {storageId, location, retentionDays}
    """
    try:
        async with storage_client(config, s3_session) as client:
            response = await client.list_buckets()
            names = [
                b["Name"] for b in response.get("Buckets", [])
                if policy.permits(b["Name"])
            ]
            return [await _describe_bucket(config, client, name) for name in names]
    except ClientError as e:
        logger.error("storage_list_failed", error=str(e))
        raise StorageError(f"Failed to list buckets: {e}")


async def create_storage(
    config: AgentConfig,
    s3_session: Any,
    storage_id: str,
    location: str | None = None,
    retention_days: int | None = None,
) -> Dict[str, Any]:
    """
    Create a bucket and, optionally, its retention rule.

    Returns:
        {storageId, location, retentionDays} of the new bucket

    Raises:
        RetentionUnsupported: If retention is requested and the endpoint
            cannot manage it (checked before the bucket is created)
        StorageError: If the storage call fails
    """
    if retention_days is not None:
        _ensure_retention_supported(config, storage_id)

    try:
        async with storage_client(config, s3_session) as client:
            kwargs: Dict[str, Any] = {"Bucket": storage_id}
            if location:
                kwargs["CreateBucketConfiguration"] = {"LocationConstraint": location}
            await client.create_bucket(**kwargs)

            if retention_days is not None:
                await _put_retention(client, storage_id, retention_days)

            logger.info(
                "storage_created",
                storage_id=storage_id,
                location=location,
                retention_days=retention_days,
            )
            return await _describe_bucket(config, client, storage_id)
    except ClientError as e:
        logger.error("storage_create_failed", storage_id=storage_id, error=str(e))
        raise StorageError(
            f"Failed to create bucket: {e}",
            details={"storage_id": storage_id, "code": _error_code(e)},
        )


async def update_storage_retention(
    config: AgentConfig,
    s3_session: Any,
    storage_id: str,
    retention_days: int | None,
) -> Dict[str, Any]:
    """
    Replace the retention rule of a bucket (None removes it).

    Returns:
        {storageId, location, retentionDays} after the update

    Raises:
        RetentionUnsupported: If the endpoint cannot manage retention
        StorageError: If the storage call fails
    """
    _ensure_retention_supported(config, storage_id)

    try:
        async with storage_client(config, s3_session) as client:
            await _put_retention(client, storage_id, retention_days)
            logger.info(
                "storage_retention_updated",
                storage_id=storage_id,
                retention_days=retention_days,
            )
            return await _describe_bucket(config, client, storage_id)
    except ClientError as e:
        logger.error("storage_update_failed", storage_id=storage_id, error=str(e))
        raise StorageError(
            f"Failed to update bucket: {e}",
            details={"storage_id": storage_id, "code": _error_code(e)},
        )

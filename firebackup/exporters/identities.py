# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Identity Export - Firebase Authentication users to a local JSON file.

The file uses the same layout as `firebase auth:export`, so it can be
restored with `firebase auth:import`:

    {"users": [{"localId": "...", "email": "...", "passwordHash": "...", ...}]}
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List

import aiofiles
import structlog
from firebase_admin import auth

from firebackup.operation import ExportOutcome

logger = structlog.get_logger()


def _serialize_provider(info: Any) -> Dict[str, Any]:
    fields = {
        "providerId": info.provider_id,
        "rawId": info.uid,
        "email": info.email,
        "displayName": info.display_name,
        "photoUrl": info.photo_url,
        "phoneNumber": info.phone_number,
    }
    return {k: v for k, v in fields.items() if v is not None}


def serialize_user(user: Any) -> Dict[str, Any]:
    """
    Convert an ExportedUserRecord into a firebase-tools export entry.

    Unset fields are omitted, matching the CLI output.
    """
    metadata = user.user_metadata
    fields = {
        "localId": user.uid,
        "email": user.email,
        "emailVerified": user.email_verified,
        "passwordHash": user.password_hash,
        "salt": user.password_salt,
        "displayName": user.display_name,
        "photoUrl": user.photo_url,
        "phoneNumber": user.phone_number,
        "disabled": user.disabled,
        "customAttributes": (
            json.dumps(user.custom_claims) if user.custom_claims else None
        ),
        "providerUserInfo": [_serialize_provider(p) for p in user.provider_data],
        "createdAt": (
            str(metadata.creation_timestamp)
            if metadata and metadata.creation_timestamp
            else None
        ),
        "lastSignedInAt": (
            str(metadata.last_sign_in_timestamp)
            if metadata and metadata.last_sign_in_timestamp
            else None
        ),
    }
    return {k: v for k, v in fields.items() if v is not None}


def _collect_users(app: Any) -> List[Dict[str, Any]]:
    """Page through every user of the project (blocking)."""
    return [serialize_user(user) for user in auth.list_users(app=app).iterate_all()]


async def export_users(app: Any, destination: Path, project_id: str) -> ExportOutcome:
    """
    Export all Firebase Authentication users to destination.

    The SDK is synchronous, so paging and encoding run in worker threads.

    Args:
        app: firebase_admin.App bound to the project (None for the default app)
        destination: Local file to write
        project_id: Project being exported, for logging

    Returns:
        ExportOutcome; platform errors are reported verbatim, never retried
    """
    logger.info("users_export_started", project_id=project_id, destination=str(destination))

    try:
        users = await asyncio.to_thread(_collect_users, app)
        payload = await asyncio.to_thread(json.dumps, {"users": users})
        async with aiofiles.open(destination, "w", encoding="utf-8") as f:
            await f.write(payload)
    except Exception as e:
        logger.error("users_export_failed", project_id=project_id, error=str(e))
        return ExportOutcome.failed(str(e))

    logger.info("users_export_finished", project_id=project_id, users=len(users))
    return ExportOutcome.succeeded()

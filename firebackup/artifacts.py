# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup Artifacts - Temporary export files and their verification.

Exports are staged in a local temporary file before they are uploaded.
Every file is uniquely named per invocation and is removed when the
owning request leaves the temporary_artifact() block, whichever stage
failed.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from pathlib import Path, PurePosixPath
from typing import Any, AsyncIterator, Callable, Dict

import aiofiles
import aiofiles.os
import structlog
from ulid import ULID

from firebackup.operation import OperationKind, ParseFailure, VerifiedMetrics, VerifyOutcome

logger = structlog.get_logger()


# ============================================================================
# Temporary Artifact Store
# ============================================================================

def artifact_path(temp_dir: Path, destination_path: str) -> Path:
    """
    Build a unique local path for an export headed to destination_path.

    The bucket file name is kept as a suffix for readability; the ULID
    prefix keeps concurrent requests for the same destination apart.
    """
    file_name = PurePosixPath(destination_path).name or "backup"
    return temp_dir / f"{ULID()}-{file_name}"


async def release_artifact(path: Path) -> bool:
    """
    Delete an artifact if it exists.

    Returns:
        True if a file was removed, False if there was nothing to remove
    """
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        logger.debug("artifact_already_absent", path=str(path))
        return False

    logger.debug("artifact_released", path=str(path))
    return True


@asynccontextmanager
async def temporary_artifact(temp_dir: Path, destination_path: str) -> AsyncIterator[Path]:
    """
    Reserve a temporary artifact path for the duration of the block.

    The file (if the block created one) is deleted exactly once on exit,
    including when the block raises.

    Args:
        temp_dir: Directory for staging files
        destination_path: Object path in the destination bucket

    Yields:
        Path the export should write to

    Raises:
        OSError: If the staging directory cannot be created
    """
    await aiofiles.os.makedirs(temp_dir, exist_ok=True)
    path = artifact_path(temp_dir, destination_path)
    logger.debug("artifact_reserved", path=str(path))

    try:
        yield path
    finally:
        await release_artifact(path)


# ============================================================================
# Artifact Verifier
# ============================================================================

def _count_users(document: Any) -> int:
    if not isinstance(document, dict):
        raise ValueError("expected a JSON object at the top level")
    users = document.get("users")
    if not isinstance(users, list):
        raise ValueError("expected a 'users' list")
    return len(users)


COUNTERS: Dict[OperationKind, Callable[[Any], int]] = {
    OperationKind.IDENTITIES: _count_users,
}


async def verify_artifact(path: Path, kind: OperationKind) -> VerifyOutcome:
    """
    Parse an exported artifact and extract its record count.

    The export tools may report success while leaving an unreadable file
    behind, so the count is taken from the file itself.

    Args:
        path: Local artifact path
        kind: Backup kind, selects the format

    Returns:
        VerifiedMetrics, or ParseFailure when the file is missing,
        malformed, truncated or of the wrong shape
    """
    counter = COUNTERS.get(kind)
    if counter is None:
        return ParseFailure(detail=f"no local artifact format for {kind.value}")

    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            raw = await f.read()
        document = await asyncio.to_thread(json.loads, raw)
        count = counter(document)
        stat = await aiofiles.os.stat(path)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning(
            "backup_file_parse_failed",
            path=str(path),
            kind=kind.value,
            error=str(e),
        )
        return ParseFailure(detail=str(e))

    logger.debug("backup_file_verified", path=str(path), count=count, size=stat.st_size)
    return VerifiedMetrics(count=count, size_bytes=stat.st_size)

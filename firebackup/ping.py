# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Initialization ping - Register this agent instance with the controller.

The ping runs as a detached task. Its failure is logged and never
delays or breaks startup.
"""

import asyncio
import platform
from typing import Any, Dict

import httpx
import structlog

from firebackup.config import AgentConfig, RuntimeEnvironment

logger = structlog.get_logger()


def ping_url(config: AgentConfig) -> str:
    """Controller endpoint receiving the ping."""
    return f"https://{config.controller_domain}/ping"


def ping_params(config: AgentConfig, runtime_env: RuntimeEnvironment) -> Dict[str, str]:
    """Query parameters identifying this agent."""
    from firebackup import __version__

    return {
        "token": config.controller_token,
        "projectId": runtime_env.project_id,
        "agentURL": runtime_env.agent_url,
        "agentVersion": __version__,
        "runtime": f"python{platform.python_version()}",
        "region": runtime_env.region,
    }


async def send_initialization_ping(
    config: AgentConfig,
    runtime_env: RuntimeEnvironment,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """
    Send the ping to the controller.

    Returns:
        True if the controller answered with a success status
    """
    try:
        async with httpx.AsyncClient(transport=transport, timeout=10.0) as client:
            response = await client.get(
                ping_url(config), params=ping_params(config, runtime_env)
            )
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(
            "initialization_ping_failed",
            controller_domain=config.controller_domain,
            error=str(e),
        )
        return False

    logger.info("initialization_ping_sent", controller_domain=config.controller_domain)
    return True


def _log_task_failure(task: "asyncio.Task[Any]") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("initialization_ping_crashed", error=str(error))


def schedule_initialization_ping(
    config: AgentConfig,
    runtime_env: RuntimeEnvironment,
    transport: httpx.AsyncBaseTransport | None = None,
) -> "asyncio.Task[bool]":
    """
    Start the ping in the background and return its task.

    The caller keeps a reference to the task; it is never awaited on the
    request-serving path.
    """
    task = asyncio.create_task(send_initialization_ping(config, runtime_env, transport))
    task.add_done_callback(_log_task_failure)
    return task

# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Initialization ping tests.
"""

import httpx
import pytest

from firebackup import __version__
from firebackup.ping import schedule_initialization_ping, send_initialization_ping

from conftest import CONTROLLER_TOKEN, PROJECT_ID


@pytest.mark.asyncio
async def test_ping_registers_agent(test_config, runtime_env):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    sent = await send_initialization_ping(test_config, runtime_env, httpx.MockTransport(handler))

    assert sent is True
    assert len(requests) == 1
    url = requests[0].url
    assert url.scheme == "https"
    assert url.host == "backupfire.dev"
    assert url.path == "/ping"
    assert url.params["token"] == CONTROLLER_TOKEN
    assert url.params["projectId"] == PROJECT_ID
    assert url.params["agentURL"] == (
        f"https://us-central1-{PROJECT_ID}.cloudfunctions.net/backupfire"
    )
    assert url.params["agentVersion"] == __version__


@pytest.mark.asyncio
async def test_ping_failure_is_not_raised(test_config, runtime_env):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("controller unreachable", request=request)

    sent = await send_initialization_ping(test_config, runtime_env, httpx.MockTransport(handler))

    assert sent is False


@pytest.mark.asyncio
async def test_ping_error_status_is_not_raised(test_config, runtime_env):
    transport = httpx.MockTransport(lambda request: httpx.Response(500))

    assert await send_initialization_ping(test_config, runtime_env, transport) is False


@pytest.mark.asyncio
async def test_scheduled_ping_runs_detached(test_config, runtime_env):
    transport = httpx.MockTransport(lambda request: httpx.Response(204))

    task = schedule_initialization_ping(test_config, runtime_env, transport)

    assert await task is True

# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Framework Integrations - FastAPI app factory and endpoints.
"""

from firebackup.integrations.fastapi import (
    create_app,
    create_dummy_app,
    register_agent_routes,
    verify_admin_password,
    verify_controller_token,
)

__all__ = [
    "create_app",
    "create_dummy_app",
    "register_agent_routes",
    "verify_controller_token",
    "verify_admin_password",
]

# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup - Backup agent for Firestore and Firebase Authentication.

Runs inside a managed function and exposes an HTTP API to the backup
controller: it starts exports, verifies and uploads the artifacts, and
reports every backup as a {state, data} operation. Package name: firebackup.
"""

__version__ = "0.1.0"

# Configuration
from firebackup.config import AgentConfig, RuntimeEnvironment
from firebackup.env import create_config_from_env, resolve_runtime_env

# Operations
from firebackup.operation import (
    Operation,
    OperationKind,
    OperationState,
    encode_operation,
    resolve_operation,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "AgentConfig",
    "RuntimeEnvironment",
    "create_config_from_env",
    "resolve_runtime_env",
    # Operations
    "Operation",
    "OperationKind",
    "OperationState",
    "encode_operation",
    "resolve_operation",
]

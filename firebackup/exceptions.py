# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Firebackup Exceptions - Custom exceptions for the firebackup package.
"""


class AgentError(Exception):
    """Base exception for all agent errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(AgentError):
    """Raised when configuration is invalid."""

    pass


class IncompleteEnvironment(AgentError):
    """Raised when the runtime identity (project, function, region) is unknown."""

    pass


class InvalidRequest(AgentError):
    """Raised when a request body is missing required fields."""

    pass


class PolicyViolation(AgentError):
    """Raised when a request addresses a bucket outside the allowlist."""

    pass


class ExportFailure(AgentError):
    """Raised when the platform export job fails."""

    pass


class ArtifactParseError(AgentError):
    """Raised when an exported artifact cannot be parsed."""

    pass


class UploadFailure(AgentError):
    """Raised when an artifact cannot be written to the destination bucket."""

    pass


class StorageError(AgentError):
    """Raised when bucket management operations fail."""

    pass


class RetentionUnsupported(StorageError):
    """Raised when retention is requested from an endpoint that cannot manage it."""

    pass

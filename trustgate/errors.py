"""Exception hierarchy for the trust gateway.

Each error carries the HTTP status, a stable machine-readable code and a
retry hint so the web layer can render a consistent error envelope.
Only :class:`InvalidInputError` normally reaches a caller; the other errors
are raised by adapters and backends and absorbed by the fail-open policy.
"""

from __future__ import annotations

from typing import Any, Optional


class GatewayError(Exception):
    """Base class for all gateway errors."""

    status_code = 500
    code = "GATEWAY_ERROR"
    retryable = False

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(GatewayError):
    """Credentials for an external service are missing."""

    status_code = 503
    code = "CONFIGURATION_ERROR"


class TransientServiceError(GatewayError):
    """An external classifier or scorer timed out or failed."""

    status_code = 503
    code = "SERVICE_UNAVAILABLE"
    retryable = True


class StorageError(GatewayError):
    """The quota backend could not be reached."""

    status_code = 503
    code = "STORAGE_UNAVAILABLE"
    retryable = True


class InvalidInputError(GatewayError):
    """Submitted content is empty or too large."""

    status_code = 422
    code = "INVALID_INPUT"

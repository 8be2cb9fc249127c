"""Application-wide exception classes."""

from __future__ import annotations

import asyncio
from typing import Sequence


_TRANSIENT_TYPES = (asyncio.TimeoutError, TimeoutError, ConnectionError)

TRANSIENT_ERROR_MARKERS: tuple[str, ...] = (
    "fetch failed",
    "network",
    "timeout",
    "timed out",
    "socket",
    "econn",
    "enotfound",
    "dns",
    "database is locked",
    "busy",
)


class ApplicationError(Exception):
    """Base exception for all application errors."""
    pass


class ConfigurationError(ApplicationError):
    """Raised when configuration is invalid."""
    pass


class ValidationError(ApplicationError):
    """Raised when user input or an inbound payload is malformed.

    Always user-correctable and raised before any side effect.
    """

    def __init__(self, message: str, title: str = "Invalid Request") -> None:
        self.title = title
        super().__init__(message)


class AuthorizationError(ApplicationError):
    """Raised when the caller lacks a required role."""

    def __init__(self, label: str, required_role_ids: Sequence[str]) -> None:
        self.label = label
        self.required_role_ids = tuple(required_role_ids)
        roles = " or ".join(f"<@&{role_id}>" for role_id in self.required_role_ids)
        super().__init__(f"{label} requires {roles}.")


class NotFoundError(ApplicationError):
    """Raised when a handle or external id has no account."""
    pass


class DatabaseError(ApplicationError):
    """Base exception for backing store errors."""
    pass


class TransientInfraError(DatabaseError):
    """Network, timeout or lock class failure that is worth retrying."""
    pass


class SchemaMismatchError(DatabaseError):
    """The store shape is older than the code expects."""

    def __init__(self, message: str, remediation: str) -> None:
        self.remediation = remediation
        super().__init__(message)


class GatewayError(ApplicationError):
    """Raised when the chat gateway rejects or fails an operation."""
    pass


def error_message(error: BaseException) -> str:
    """Return a printable message for any exception."""
    message = str(error).strip()
    return message or error.__class__.__name__


def is_transient_error(error: BaseException | str) -> bool:
    """Classify an error as likely to self-resolve.

    Explicit ``TransientInfraError`` instances are transient; anything else is
    classified by matching its message against known network/timeout markers.
    """
    if isinstance(error, TransientInfraError):
        return True
    if isinstance(error, (SchemaMismatchError, ValidationError, AuthorizationError)):
        return False
    if isinstance(error, _TRANSIENT_TYPES):
        return True

    message = error if isinstance(error, str) else error_message(error)
    normalized = message.lower()
    return any(marker in normalized for marker in TRANSIENT_ERROR_MARKERS)

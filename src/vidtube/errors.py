"""Domain error taxonomy.

Learn: every failure the core can report is one of five kinds. Services
raise these and never touch HTTP; the transport boundary
(vidtube.api.errors) owns the single kind → status table.
"""

import enum


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INFRASTRUCTURE = "server_error"


class DomainError(Exception):
    """Base class for errors that bubble unmodified to the transport boundary."""

    kind: ErrorKind = ErrorKind.INFRASTRUCTURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Bad or missing input the caller can fix."""

    kind = ErrorKind.VALIDATION


class ConflictError(DomainError):
    """Username or email already taken."""

    kind = ErrorKind.CONFLICT


class NotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND


class AuthError(DomainError):
    """Bad credentials or an invalid, expired, reused or missing token.

    ``reason`` is for logs only. Callers always see the same public message
    so they cannot tell which check failed.
    """

    kind = ErrorKind.UNAUTHORIZED
    public_message = "Unauthorized request"

    def __init__(self, reason: str = "unauthorized"):
        super().__init__(self.public_message)
        self.reason = reason


class InfrastructureError(DomainError):
    """Store or media host unavailable. Never retried by the core."""

    kind = ErrorKind.INFRASTRUCTURE

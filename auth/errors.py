"""
auth/errors.py -- Typed error taxonomy for the authentication core.

Every fallible operation in auth/ either returns its success value or raises
exactly one AuthError subclass. Each class carries a stable `kind` tag so the
transport layer can turn it into a structured result without string matching:

    {"error": {"code": "invalid_token", "message": "Token has been revoked."}}

Propagation policy:
  ValidationError, NotFound, AlreadyExists, InvalidCredentials, InvalidToken
      are expected outcomes. Their messages are safe to show to the caller.

  StorageError is the only retryable kind. Its message is always generic --
      the backend exception is logged server-side and chained via __cause__,
      never embedded in the message.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_TOKEN = "invalid_token"
    STORAGE = "storage_error"


class AuthError(Exception):
    """Base class for all errors raised by the authentication core."""

    kind: ErrorKind
    default_message: str = "Authentication error."
    retryable: bool = False

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Return the structured error body used by the transport layer."""
        return {"code": self.kind.value, "message": self.message}


class ValidationError(AuthError):
    """Malformed input -- always the caller's fault."""

    kind = ErrorKind.VALIDATION
    default_message = "Validation failed."


class NotFound(AuthError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Account not found."


class AlreadyExists(AuthError):
    kind = ErrorKind.ALREADY_EXISTS
    default_message = "An account with that email already exists."


class InvalidCredentials(AuthError):
    """Login failed. One message covers unknown email, wrong password and inactive accounts."""

    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid email or password."


class InvalidToken(AuthError):
    kind = ErrorKind.INVALID_TOKEN
    default_message = "Invalid or expired token."


class StorageError(AuthError):
    """Backend unavailable or misbehaving. Safe to retry."""

    kind = ErrorKind.STORAGE
    default_message = "Storage backend unavailable."
    retryable = True


class StorageTimeout(StorageError):
    default_message = "Storage backend timed out."


class MalformedDigest(StorageError):
    """A stored credential digest could not be parsed.

    Not retryable: the stored record itself is corrupt.
    """

    default_message = "Stored credential is unreadable."
    retryable = False

"""Exceptions raised by the payment portal core."""
from __future__ import annotations


class PortalError(RuntimeError):
    """Base class for recoverable errors surfaced to portal callers."""

    code = "portal_error"


class NotFoundError(PortalError):
    """Raised when a user or administrator lookup misses."""

    code = "not_found"


class UnknownUserError(NotFoundError):
    """Raised when a login email does not belong to any user."""

    code = "unknown_user"


class UnknownAdminError(NotFoundError):
    """Raised when a login email does not belong to any administrator."""

    code = "unknown_admin"


class DuplicateEmailError(PortalError):
    """Raised when an email address is already taken."""

    code = "duplicate_email"

    def __init__(self, email: str | None = None) -> None:
        message = "A user with that email already exists"
        if email:
            message = f"Email {email!r} is already in use"
        super().__init__(message)
        self.email = email


class WrongCredentialError(PortalError):
    """Raised when a secret does not match its stored hash."""

    code = "wrong_credential"


class InvalidInputError(PortalError, ValueError):
    """Raised when a required field is blank or malformed."""

    code = "invalid_input"


class InvalidStatusError(PortalError, ValueError):
    """Raised when a value is not a member of the payment status set."""

    code = "invalid_status"

    def __init__(self, value: object) -> None:
        super().__init__(f"Unknown payment status {value!r}")
        self.value = value


class PermissionDeniedError(PortalError):
    """Raised when the acting principal may not perform an operation."""

    code = "permission_denied"


class StorageError(PortalError):
    """Raised when the database fails in a way that cannot be classified."""

    code = "storage_error"


__all__ = [
    "DuplicateEmailError",
    "InvalidInputError",
    "InvalidStatusError",
    "NotFoundError",
    "PermissionDeniedError",
    "PortalError",
    "StorageError",
    "UnknownAdminError",
    "UnknownUserError",
    "WrongCredentialError",
]

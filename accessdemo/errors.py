"""Error taxonomy shared by the service layer and the HTTP surfaces."""
from __future__ import annotations

from typing import Optional


class ServiceError(RuntimeError):
    """Base class for failures raised by :class:`accessdemo.users.UserService`."""

    status_code = 500
    title = "Internal error"


class NotFoundError(ServiceError):
    """Raised when the target record does not exist."""

    status_code = 404
    title = "Not found"


class AuthenticationFailed(ServiceError):
    """Raised when presented credentials do not match an active account."""

    status_code = 401
    title = "Authentication required"
    default_message = "Valid credentials are required"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class ConflictError(ServiceError):
    """Raised when a create or update would duplicate a unique email."""

    status_code = 409
    title = "Conflict"


__all__ = ["AuthenticationFailed", "ConflictError", "NotFoundError", "ServiceError"]

from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    """Base class for auth-subsystem exceptions mapped to HTTP responses.

    Each subclass fixes an HTTP ``status_code`` and a stable ``error_code``.
    Only the HTTP layer turns these into responses; services raise them and
    wrap lower-layer failures (httpx, redis) with the step that failed.
    """

    status_code: int = 500
    error_code: str = "server_error"
    kind: str = "auth error"

    def __init__(self, message: str, *, detail: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class InitializationError(AuthError):
    """Invalid configuration detected while wiring a component (500)."""
    status_code = 500
    error_code = "initialization_error"
    kind = "initialization error"


class ConnectionFailedError(AuthError):
    """GitHub or the session store could not be reached (500)."""
    status_code = 500
    error_code = "connection_error"
    kind = "connection error"


class SerializationError(AuthError):
    """A provider response or stored session record is malformed (400)."""
    status_code = 400
    error_code = "serialization_error"
    kind = "serialization error"


class PermissionDeniedError(AuthError):
    """Provider refused the login or the organization gate failed (403)."""
    status_code = 403
    error_code = "permission_denied"
    kind = "permission denied"


class SessionNotFoundError(AuthError):
    """Session token is unknown, expired or logged out (404)."""
    status_code = 404
    error_code = "not_found"
    kind = "session not found"

    def __init__(self, message: str = "session not found", *, detail: Optional[dict] = None) -> None:
        super().__init__(message, detail=detail)

    def __str__(self) -> str:
        return self.kind


__all__ = [
    "AuthError",
    "InitializationError",
    "ConnectionFailedError",
    "SerializationError",
    "PermissionDeniedError",
    "SessionNotFoundError",
]

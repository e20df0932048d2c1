from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from finblog.logging import get_correlation_id
from finblog.storage.models import User

_VALID_ERROR_CODES = frozenset({
    "unauthorized",
    "permission_denied",
    "not_found",
    "validation_error",
    "serialization_error",
    "connection_error",
    "initialization_error",
    "server_error",
})


class ErrorBody(BaseModel):
    """Error envelope body with stable code values."""

    code: str = Field(..., description="Stable error code")
    message: str
    details: Optional[Any] = None  # object, array, or null

    @field_validator("code")
    @classmethod
    def _validate_error_code(cls, value: str) -> str:
        if value not in _VALID_ERROR_CODES:
            raise ValueError(
                f"Invalid error code '{value}'. Must be one of: {', '.join(sorted(_VALID_ERROR_CODES))}"
            )
        return value


class Envelope(BaseModel):
    status: str = Field(..., pattern="^(ok|error)$")
    data: Optional[Any] = None
    error: Optional[ErrorBody] = None
    # matches the X-Request-ID echoed for the current request, when there is one
    request_id: str = Field(default_factory=lambda: get_correlation_id() or str(uuid4()))


class UserResponse(BaseModel):
    id: int
    login: str
    name: str
    avatar_url: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(**user.to_dict())


class HealthResponse(BaseModel):
    status: str = Field(..., pattern="^(healthy|unhealthy)$")
    checks: Dict[str, Dict[str, Any]]
    version: str

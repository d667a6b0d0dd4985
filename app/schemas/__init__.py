"""Pydantic request/response schemas."""

from app.schemas.health import HealthResponse
from app.schemas.user import CreateUserRequest, ErrorResponse, UserResponse

__all__ = [
    "CreateUserRequest",
    "ErrorResponse",
    "HealthResponse",
    "UserResponse",
]

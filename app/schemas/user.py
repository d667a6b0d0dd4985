"""Request/response schemas for the users endpoints."""

from pydantic import BaseModel, Field

from app.models.user import User


class CreateUserRequest(BaseModel):
    """Registration payload. Blank and over-long values are rejected by the service with 400."""

    username: str = Field(..., description="Display name (max 100 chars)")
    email: str = Field(..., description="Email address; stored trimmed and lowercased")
    password: str = Field(..., description="Plain-text password; only its bcrypt hash is stored")


class UserResponse(BaseModel):
    """User as returned by create and fetch (no password hash)."""

    id: int
    username: str
    email: str
    status: str = Field(..., description="Status label: Active or Blocked")
    roles: list[str] = Field(..., description="Role labels held by the user")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            status=user.status.label,
            roles=[role.label for role in user.roles],
        )


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    detail: str

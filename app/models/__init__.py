"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.enums import RoleName, UnknownLabelError, UserStatus
from app.models.user import User, UserRole

__all__ = ["Base", "RoleName", "UnknownLabelError", "User", "UserRole", "UserStatus"]

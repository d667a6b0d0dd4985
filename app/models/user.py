"""ORM models for user accounts and their roles."""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.models.base import Base
from app.models.enums import DEFAULT_ROLE, RoleName, UserStatus
from app.models.types import LabelEnum

USERNAME_MAX_LEN = 100
EMAIL_MAX_LEN = 256
PASSWORD_HASH_MAX_LEN = 256


def normalize_email(email: str) -> str:
    """Canonical form used for storage and uniqueness: trimmed, lowercase."""
    return email.strip().lower()


class UserRole(Base):
    """One role held by a user. (user_id, role) is the primary key, so a role is held at most once."""

    __tablename__ = "user_roles"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    role = Column(LabelEnum(RoleName, 50), primary_key=True)

    user = relationship("User", back_populates="_roles")


class User(Base):
    """
    User aggregate: the account row plus the roles it exclusively owns.

    The role rows live in the private ``_roles`` collection. Read them through
    ``roles`` (an immutable snapshot) and change them only with ``add_role`` /
    ``remove_role``. Deleting a user deletes its roles.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(USERNAME_MAX_LEN), nullable=False)
    email = Column(String(EMAIL_MAX_LEN), nullable=False, unique=True, index=True)
    password_hash = Column(String(PASSWORD_HASH_MAX_LEN), nullable=False)
    status = Column(
        LabelEnum(UserStatus, 20),
        nullable=False,
        default=UserStatus.ACTIVE,
    )

    _roles = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserRole.role",
        lazy="selectin",
    )

    def __init__(self, username: str, email: str, password_hash: str) -> None:
        self.username = username.strip()
        self.email = normalize_email(email)
        self.password_hash = password_hash
        self.status = UserStatus.ACTIVE
        self._roles.append(UserRole(role=DEFAULT_ROLE))

    @property
    def roles(self) -> tuple[RoleName, ...]:
        return tuple(link.role for link in self._roles)

    def has_role(self, role: RoleName) -> bool:
        return any(link.role == role for link in self._roles)

    def add_role(self, role: RoleName) -> bool:
        """Grant a role. Returns False when the user already holds it."""
        if self.has_role(role):
            return False
        self._roles.append(UserRole(role=role))
        return True

    def remove_role(self, role: RoleName) -> bool:
        """Revoke a role. Returns False when the user does not hold it."""
        for link in self._roles:
            if link.role == role:
                self._roles.remove(link)
                return True
        return False

    @property
    def is_blocked(self) -> bool:
        return self.status == UserStatus.BLOCKED

    def block(self) -> None:
        # No unblock: Active -> Blocked is one-way.
        self.status = UserStatus.BLOCKED

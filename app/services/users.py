"""User registration, lookup and role/status lifecycle on top of the users tables."""

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.models import RoleName, UnknownLabelError, User
from app.models.user import EMAIL_MAX_LEN, USERNAME_MAX_LEN, normalize_email
from app.schemas.user import UserResponse
from app.services.db_errors import FailureCategory, classify_write_failure

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Store failures the service translates; anything else propagates unchanged.
STORE_ERRORS = (SQLAlchemyError, TimeoutError, UnknownLabelError)


class UserServiceError(Exception):
    """Base for user service outcomes other than success. message is safe to show clients."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationFailedError(UserServiceError):
    """Client input is missing or malformed."""


class EmailConflictError(UserServiceError):
    """The normalized email already belongs to another user."""


class UserNotFoundError(UserServiceError):
    """No user with the requested id."""


class ServiceUnavailableError(UserServiceError):
    """The database timed out; the request may be retried with backoff."""


class InternalFailureError(UserServiceError):
    """Unclassified store failure; not safe to retry blindly."""


def _store_failure(exc: BaseException, operation: str) -> UserServiceError:
    """Classify a store failure, log its diagnostics, and return the error to raise."""
    classification = classify_write_failure(exc)
    log_extra = {"operation": operation, **classification.diagnostics.as_log_extra()}

    if classification.category is FailureCategory.DUPLICATE_EMAIL:
        logger.warning("Write rejected: email already registered", extra=log_extra)
        return EmailConflictError("Email already registered.")
    if classification.category is FailureCategory.TRANSIENT_TIMEOUT:
        logger.warning("Database timed out", extra=log_extra)
        return ServiceUnavailableError("The database did not respond in time. Retry later.")
    logger.error("Unclassified database failure", extra=log_extra)
    return InternalFailureError("The request could not be completed.")


def validate_registration(username: str, email: str, password: str) -> tuple[str, str]:
    """Return (username, normalized email) or raise ValidationFailedError."""
    if not username or not username.strip():
        raise ValidationFailedError("Username is required.")
    if not email or not email.strip():
        raise ValidationFailedError("Email is required.")
    if not password or not password.strip():
        raise ValidationFailedError("Password is required.")

    username = username.strip()
    email = normalize_email(email)
    if len(username) > USERNAME_MAX_LEN:
        raise ValidationFailedError(f"Username must be at most {USERNAME_MAX_LEN} characters.")
    if len(email) > EMAIL_MAX_LEN:
        raise ValidationFailedError(f"Email must be at most {EMAIL_MAX_LEN} characters.")
    return username, email


def email_exists(db: Session, email: str) -> bool:
    return db.query(User.id).filter(User.email == normalize_email(email)).first() is not None


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    settings: "Settings",
) -> UserResponse:
    """
    Register a user with the default role.

    The user row and its role row are committed in one transaction. The email
    pre-check (USER_EMAIL_PRECHECK) only saves a hash; a concurrent insert of
    the same email is still caught by the unique index and reported as a
    conflict.

    Raises ValidationFailedError, EmailConflictError, ServiceUnavailableError
    or InternalFailureError.
    """
    username, email = validate_registration(username, email, password)

    if settings.USER_EMAIL_PRECHECK:
        try:
            exists = email_exists(db, email)
        except STORE_ERRORS as e:
            db.rollback()
            raise _store_failure(e, "create_user.precheck") from e
        if exists:
            logger.info("User create rejected by pre-check: email already registered")
            raise EmailConflictError("Email already registered.")

    password_hash = hash_password(password, settings.PASSWORD_HASH_ROUNDS)
    user = User(username=username, email=email, password_hash=password_hash)

    try:
        db.add(user)
        db.flush()
        response = UserResponse.from_user(user)
        db.commit()
    except STORE_ERRORS as e:
        db.rollback()
        raise _store_failure(e, "create_user") from e

    logger.info("User created", extra={"user_id": response.id, "roles": response.roles})
    return response


def _load_user(db: Session, user_id: int, operation: str) -> User:
    try:
        user = db.get(User, user_id)
    except STORE_ERRORS as e:
        db.rollback()
        raise _store_failure(e, operation) from e
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found.")
    return user


def _commit(db: Session, operation: str) -> None:
    try:
        db.commit()
    except STORE_ERRORS as e:
        db.rollback()
        raise _store_failure(e, operation) from e


def _save(db: Session, user: User, operation: str) -> UserResponse:
    """Flush, snapshot the response, then commit; nothing is read back after commit."""
    try:
        db.flush()
        response = UserResponse.from_user(user)
        db.commit()
    except STORE_ERRORS as e:
        db.rollback()
        raise _store_failure(e, operation) from e
    return response


def get_user(db: Session, user_id: int) -> UserResponse:
    """Fetch a user with its roles. Raises UserNotFoundError when absent."""
    return UserResponse.from_user(_load_user(db, user_id, "get_user"))


def add_role(db: Session, user_id: int, role: RoleName) -> UserResponse:
    """Grant role to the user; granting a held role changes nothing."""
    user = _load_user(db, user_id, "add_role")
    granted = user.add_role(role)
    response = _save(db, user, "add_role")
    if granted:
        logger.info("Role granted", extra={"user_id": user_id, "role": role.label})
    return response


def remove_role(db: Session, user_id: int, role: RoleName) -> UserResponse:
    """Revoke role from the user; revoking a role not held changes nothing."""
    user = _load_user(db, user_id, "remove_role")
    revoked = user.remove_role(role)
    response = _save(db, user, "remove_role")
    if revoked:
        logger.info("Role revoked", extra={"user_id": user_id, "role": role.label})
    return response


def block_user(db: Session, user_id: int) -> UserResponse:
    """Mark the user Blocked. There is no unblock."""
    user = _load_user(db, user_id, "block_user")
    was_blocked = user.is_blocked
    user.block()
    response = _save(db, user, "block_user")
    if not was_blocked:
        logger.info("User blocked", extra={"user_id": user_id})
    return response


def delete_user(db: Session, user_id: int) -> None:
    """Delete the user; its roles go with it."""
    user = _load_user(db, user_id, "delete_user")
    db.delete(user)
    _commit(db, "delete_user")
    logger.info("User deleted", extra={"user_id": user_id})

"""Users endpoints: register a user and fetch a user by id."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.schemas.user import CreateUserRequest, ErrorResponse, UserResponse
from app.services.users import (
    EmailConflictError,
    InternalFailureError,
    ServiceUnavailableError,
    UserNotFoundError,
    UserServiceError,
    ValidationFailedError,
    create_user,
    get_user,
)

router = APIRouter()

STATUS_BY_ERROR: dict[type[UserServiceError], int] = {
    ValidationFailedError: status.HTTP_400_BAD_REQUEST,
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    EmailConflictError: status.HTTP_409_CONFLICT,
    InternalFailureError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ServiceUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(e: UserServiceError) -> HTTPException:
    """Map a service outcome to its status code; the body only carries e.message."""
    status_code = STATUS_BY_ERROR.get(type(e), status.HTTP_500_INTERNAL_SERVER_ERROR)
    headers = {"Retry-After": "1"} if isinstance(e, ServiceUnavailableError) else None
    return HTTPException(status_code=status_code, detail=e.message, headers=headers)


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
def post_user(
    body: CreateUserRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    """
    Register a user with the default Buyer role.

    Returns 409 when the email (trimmed, case-insensitive) is already
    registered and 503 when the database times out; 503 is safe to retry.
    """
    try:
        created = create_user(
            db,
            username=body.username,
            email=body.email,
            password=body.password,
            settings=get_settings(),
        )
    except UserServiceError as e:
        raise to_http_exception(e) from e
    response.headers["Location"] = f"{get_settings().API_PREFIX}/users/{created.id}"
    return created


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def get_user_by_id(
    user_id: int,
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    """Return the user with its roles, or 404."""
    try:
        return get_user(db, user_id)
    except UserServiceError as e:
        raise to_http_exception(e) from e

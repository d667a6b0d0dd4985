"""PostgreSQL connection and session management."""

import logging
from collections.abc import Generator
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Dialect, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Upper bound for the backoff between connection attempts.
CONNECT_RETRY_MAX_DELAY_SEC = 30.0


def build_connect_args(settings: "Settings") -> dict[str, Any]:
    """libpq connection parameters carrying the per-connection time budget."""
    connect_args: dict[str, Any] = {"connect_timeout": settings.DB_CONNECT_TIMEOUT_SEC}
    if settings.DB_STATEMENT_TIMEOUT_MS > 0:
        connect_args["options"] = f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
    return connect_args


def _log_connect_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "Database connection attempt failed; retrying",
        extra={
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(wait_time, 2),
            "error_type": type(exc).__name__ if exc else None,
        },
    )


def connect_with_retry(
    dialect: Dialect,
    cargs: tuple[Any, ...],
    cparams: dict[str, Any],
    settings: "Settings",
) -> Any:
    """
    Open a DBAPI connection, retrying on the driver's OperationalError.

    Only connection establishment is retried; statements are never replayed.
    The last error is re-raised once attempts are exhausted.
    """
    operational_error = dialect.loaded_dbapi.OperationalError
    retrying = Retrying(
        stop=stop_after_attempt(settings.DB_CONNECT_RETRIES),
        wait=wait_exponential(
            multiplier=settings.DB_CONNECT_RETRY_DELAY_SEC,
            max=CONNECT_RETRY_MAX_DELAY_SEC,
        ),
        retry=retry_if_exception(lambda e: isinstance(e, operational_error)),
        before_sleep=_log_connect_retry,
        reraise=True,
    )
    return retrying(dialect.connect, *cargs, **cparams)


def build_engine(settings: "Settings") -> Engine:
    """Create the pooled engine with timeouts and the connect retry hook installed."""
    new_engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT_SEC,
        connect_args=build_connect_args(settings),
        echo=settings.DEBUG,
    )

    @event.listens_for(new_engine, "do_connect")
    def _do_connect(dialect, conn_rec, cargs, cparams):
        return connect_with_retry(dialect, cargs, cparams, settings)

    return new_engine


engine = build_engine(settings)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency that yields a DB session and closes it when done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning("Database ping failed", extra={"error_type": type(e).__name__})
        return False

"""Classify failed database writes: duplicate email, transient timeout, or unclassified."""

import sqlite3
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.exc import TimeoutError as PoolTimeoutError

# Names the email unique index gets from the ORM, from hand-written migrations
# and from PostgreSQL's own default naming.
EMAIL_UNIQUE_CONSTRAINTS = frozenset(
    {
        "ix_users_email",
        "uq_users_email",
        "users_email_key",
        "IX_Users_Email",
    }
)

# Cause chains are finite in practice; this bounds pathological ones.
MAX_CAUSE_DEPTH = 16

SQLSTATE_UNIQUE_VIOLATION = "23505"
# query_canceled (statement_timeout) and lock_not_available (lock_timeout).
SQLSTATE_TIMEOUTS = frozenset({"57014", "55P03"})

SQLITE_UNIQUE_ERROR_NAMES = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})
SQLITE_UNIQUE_PREFIX = "UNIQUE constraint failed: "

# Timeout text emitted by the drivers themselves on OperationalError:
# libpq's connect_timeout and SQLite's busy timeout.
DRIVER_TIMEOUT_MARKERS = ("timeout expired", "database is locked")


class FailureCategory(str, Enum):
    DUPLICATE_EMAIL = "duplicate_email"
    TRANSIENT_TIMEOUT = "transient_timeout"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class FailureDiagnostics:
    """Server-side detail about a failed write. Never sent to clients."""

    error_type: str
    sqlstate: str | None = None
    constraint_name: str | None = None
    table_name: str | None = None
    detail: str | None = None

    def as_log_extra(self) -> dict[str, str | None]:
        return {
            "error_type": self.error_type,
            "sqlstate": self.sqlstate,
            "constraint_name": self.constraint_name,
            "table_name": self.table_name,
            "detail": self.detail[:500] if self.detail else None,
        }


@dataclass(frozen=True)
class Classification:
    category: FailureCategory
    diagnostics: FailureDiagnostics


def _next_cause(exc: BaseException) -> BaseException | None:
    # SQLAlchemy wraps the driver exception in .orig.
    orig = getattr(exc, "orig", None)
    if isinstance(orig, BaseException):
        return orig
    return exc.__cause__ or exc.__context__


def iter_causes(exc: BaseException, max_depth: int = MAX_CAUSE_DEPTH) -> Iterator[BaseException]:
    """
    Yield exc and then each nested cause, outermost first.

    Stops after max_depth links or when a cause repeats, so a chain that
    refers back to itself still terminates.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and len(seen) < max_depth and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = _next_cause(current)


def find_cause(
    exc: BaseException,
    predicate: Callable[[BaseException], bool],
) -> BaseException | None:
    """Return the first link in the cause chain matching predicate, or None."""
    for link in iter_causes(exc):
        if predicate(link):
            return link
    return None


def _sqlstate(link: BaseException) -> str | None:
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate.
    for attr in ("pgcode", "sqlstate"):
        value = getattr(link, attr, None)
        if isinstance(value, str) and value:
            return value
    return None


def _sqlite_unique_columns(link: BaseException) -> str | None:
    """Column list from SQLite's 'UNIQUE constraint failed: t.col' message."""
    if not isinstance(link, sqlite3.Error):
        return None
    message = str(link)
    error_name = getattr(link, "sqlite_errorname", None)
    if error_name in SQLITE_UNIQUE_ERROR_NAMES or message.startswith(SQLITE_UNIQUE_PREFIX):
        if message.startswith(SQLITE_UNIQUE_PREFIX):
            return message[len(SQLITE_UNIQUE_PREFIX):].strip()
        return ""
    return None


def _is_operational_error(link: BaseException) -> bool:
    # PEP 249 names this class the same in every driver.
    return any(cls.__name__ == "OperationalError" for cls in type(link).__mro__)


def extract_diagnostics(link: BaseException) -> FailureDiagnostics:
    """Collect whatever diagnostic fields the driver attached to this exception."""
    diag = getattr(link, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) if diag is not None else None
    table_name = getattr(diag, "table_name", None) if diag is not None else None
    detail = getattr(diag, "message_detail", None) if diag is not None else None

    sqlite_columns = _sqlite_unique_columns(link)
    if sqlite_columns:
        constraint_name = constraint_name or sqlite_columns
        first_column = sqlite_columns.split(",")[0].strip()
        if "." in first_column:
            table_name = table_name or first_column.split(".", 1)[0]

    if not isinstance(detail, str) and _has_driver_detail(link):
        detail = str(link) or None

    return FailureDiagnostics(
        error_type=type(link).__name__,
        sqlstate=_sqlstate(link),
        constraint_name=constraint_name if isinstance(constraint_name, str) else None,
        table_name=table_name if isinstance(table_name, str) else None,
        detail=detail if isinstance(detail, str) else None,
    )


def is_unique_violation(link: BaseException) -> bool:
    return _sqlstate(link) == SQLSTATE_UNIQUE_VIOLATION or _sqlite_unique_columns(link) is not None


def is_email_constraint(constraint_name: str | None) -> bool:
    if not constraint_name:
        return False
    return constraint_name in EMAIL_UNIQUE_CONSTRAINTS or "email" in constraint_name.lower()


def is_duplicate_email(link: BaseException) -> bool:
    if not is_unique_violation(link):
        return False
    return is_email_constraint(extract_diagnostics(link).constraint_name)


def is_timeout(link: BaseException) -> bool:
    # TimeoutError also covers socket.timeout and asyncio.TimeoutError.
    if isinstance(link, (TimeoutError, PoolTimeoutError)):
        return True
    if _sqlstate(link) in SQLSTATE_TIMEOUTS:
        return True
    if _is_operational_error(link):
        message = str(link).lower()
        return any(marker in message for marker in DRIVER_TIMEOUT_MARKERS)
    return False


# Tested in order; first match wins.
_RULES: tuple[tuple[FailureCategory, Callable[[BaseException], bool]], ...] = (
    (FailureCategory.DUPLICATE_EMAIL, is_duplicate_email),
    (FailureCategory.TRANSIENT_TIMEOUT, is_timeout),
)


def _has_driver_detail(link: BaseException) -> bool:
    return (
        _sqlstate(link) is not None
        or getattr(link, "diag", None) is not None
        or isinstance(link, sqlite3.Error)
    )


def classify_write_failure(exc: BaseException) -> Classification:
    """
    Decide what a failed write means for the caller.

    DUPLICATE_EMAIL when some link is a unique violation on the email
    constraint, TRANSIENT_TIMEOUT when some link is a timeout, otherwise
    UNCLASSIFIED. Diagnostics come from the matching link, or from the first
    link carrying driver detail.
    """
    for category, predicate in _RULES:
        match = find_cause(exc, predicate)
        if match is not None:
            return Classification(category=category, diagnostics=extract_diagnostics(match))

    source = find_cause(exc, _has_driver_detail) or exc
    return Classification(
        category=FailureCategory.UNCLASSIFIED,
        diagnostics=extract_diagnostics(source),
    )

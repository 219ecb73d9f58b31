"""Translate SQLAlchemy and psycopg exceptions into shared ``ErrorDetail`` values."""

from __future__ import annotations

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
    TimeoutError as PoolTimeoutError,
)

from packages.tenancy_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    internal_error,
)

UNIQUE_VIOLATION_SQLSTATE = "23505"
# Message fragments emitted by Postgres and SQLite respectively.
_UNIQUE_MESSAGES = ("duplicate key value", "UNIQUE constraint failed")


def is_unique_violation(exc: BaseException) -> bool:
    original = exc.orig if isinstance(exc, DBAPIError) else exc
    if getattr(original, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    if type(original).__name__ == "UniqueViolation":
        return True
    text = str(exc)
    return any(fragment in text for fragment in _UNIQUE_MESSAGES)


def normalize_postgres_error(exc: Exception) -> ErrorDetail:
    """Classify ``exc`` as conflict, retryable outage, failed request, or internal."""
    metadata = {"exception_type": type(exc).__name__}
    if isinstance(exc, IntegrityError) and is_unique_violation(exc):
        return conflict_error(
            "resource already exists", code=codes.ALREADY_EXISTS, metadata=metadata
        )
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return dependency_error(
            "postgres unavailable",
            code=codes.DEPENDENCY_UNAVAILABLE,
            metadata=metadata,
        )
    if isinstance(exc, (InterfaceError, ProgrammingError)):
        return dependency_error(
            "postgres request failed",
            code=codes.DEPENDENCY_FAILURE,
            retryable=False,
            metadata=metadata,
        )
    return internal_error(
        "unexpected postgres failure",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )

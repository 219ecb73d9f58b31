"""Column helpers for binary ULID keys."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, LargeBinary
from sqlalchemy.dialects.postgresql import BYTEA
from sqlalchemy.types import TypeEngine

ULID_BYTES_LENGTH = 16


def ulid_column_type() -> TypeEngine[bytes]:
    """``BYTEA`` on Postgres, generic binary elsewhere (SQLite in tests)."""
    return LargeBinary(ULID_BYTES_LENGTH).with_variant(BYTEA(), "postgresql")


def ulid_primary_key_column(
    name: str = "id", *, length_constraint_name: str | None = None
) -> Column[bytes]:
    return Column(
        name,
        ulid_column_type(),
        CheckConstraint(
            f"length({name}) = {ULID_BYTES_LENGTH}",
            name=length_constraint_name or f"ck_{name}_ulid_16",
        ),
        primary_key=True,
        nullable=False,
    )

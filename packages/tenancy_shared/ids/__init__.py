"""ULID identifiers and their SQLAlchemy column types."""

from .sqlalchemy import ULID_BYTES_LENGTH, ulid_column_type, ulid_primary_key_column
from .ulid import (
    generate_ulid_bytes,
    generate_ulid_str,
    ulid_bytes_to_str,
    ulid_str_to_bytes,
)

__all__ = [
    "ULID_BYTES_LENGTH",
    "generate_ulid_bytes",
    "generate_ulid_str",
    "ulid_bytes_to_str",
    "ulid_column_type",
    "ulid_primary_key_column",
    "ulid_str_to_bytes",
]

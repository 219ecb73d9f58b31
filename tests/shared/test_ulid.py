"""Tests for ULID conversion and generation helpers."""

from __future__ import annotations

import pytest

from packages.tenancy_shared.ids import (
    generate_ulid_bytes,
    generate_ulid_str,
    ulid_bytes_to_str,
    ulid_str_to_bytes,
)


def test_string_and_bytes_forms_convert_both_ways() -> None:
    """Canonical strings and 16-byte values are interchangeable."""
    value = generate_ulid_str()
    raw = ulid_str_to_bytes(value)

    assert len(value) == 26
    assert len(raw) == 16
    assert ulid_bytes_to_str(raw) == value


def test_lowercase_input_is_accepted() -> None:
    """Decoding is case-insensitive."""
    value = generate_ulid_str()

    assert ulid_str_to_bytes(value.lower()) == ulid_str_to_bytes(value)


def test_timestamp_prefix_orders_identifiers() -> None:
    """Earlier timestamps sort first in both string and binary form."""
    earlier = generate_ulid_bytes(timestamp_ms=1_700_000_000_000)
    later = generate_ulid_bytes(timestamp_ms=1_700_000_000_001)

    assert earlier < later
    assert ulid_bytes_to_str(earlier) < ulid_bytes_to_str(later)


@pytest.mark.parametrize(
    "value",
    ["", "01ARZ3NDEKTSV4RRFFQ69G5FA", "01ARZ3NDEKTSV4RRFFQ69G5FAU", "8" + "0" * 25],
)
def test_invalid_strings_are_rejected(value: str) -> None:
    """Wrong length, invalid characters, and overflow all fail."""
    with pytest.raises(ValueError):
        ulid_str_to_bytes(value)


def test_invalid_timestamp_is_rejected() -> None:
    """Timestamps must fit in 48 bits."""
    with pytest.raises(ValueError):
        generate_ulid_bytes(timestamp_ms=-1)

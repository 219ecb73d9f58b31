"""ULIDs: 48-bit millisecond timestamp followed by 80 random bits.

Rows store the 16-byte big-endian form; callers see the 26-character
Crockford Base32 text. Both forms sort by creation time.
"""

from __future__ import annotations

import os
import time

CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_VALUES = {symbol: value for value, symbol in enumerate(CROCKFORD)}
_TEXT_LENGTH = 26
_BYTE_LENGTH = 16
_TIMESTAMP_LIMIT = 1 << 48
# 26 symbols hold 130 bits, the text form starts with a symbol <= 7.
_FIRST_SYMBOL_MAX = "7"


def ulid_str_to_bytes(value: str) -> bytes:
    text = value.strip().upper()
    if len(text) != _TEXT_LENGTH:
        raise ValueError("ULID string must be exactly 26 characters")
    bad = sorted(set(text) - _VALUES.keys())
    if bad:
        raise ValueError(f"Invalid ULID character: {bad[0]!r}")
    if text[0] > _FIRST_SYMBOL_MAX:
        raise ValueError("ULID value exceeds 128-bit range")
    number = 0
    for symbol in text:
        number = number * 32 + _VALUES[symbol]
    return number.to_bytes(_BYTE_LENGTH, "big")


def ulid_bytes_to_str(value: bytes) -> str:
    if len(value) != _BYTE_LENGTH:
        raise ValueError("ULID bytes must be exactly 16 bytes")
    number = int.from_bytes(value, "big")
    return "".join(
        CROCKFORD[(number >> shift) & 0x1F] for shift in range(125, -1, -5)
    )


def generate_ulid_bytes(*, timestamp_ms: int | None = None) -> bytes:
    """Return a fresh binary ULID, stamped with ``timestamp_ms`` or now."""
    stamp = time.time_ns() // 1_000_000 if timestamp_ms is None else int(timestamp_ms)
    if not 0 <= stamp < _TIMESTAMP_LIMIT:
        raise ValueError("timestamp_ms out of ULID 48-bit range")
    return stamp.to_bytes(6, "big") + os.urandom(10)


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    return ulid_bytes_to_str(generate_ulid_bytes(timestamp_ms=timestamp_ms))

"""Correlation metadata carried on every request and response."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from packages.tenancy_shared.errors import ErrorDetail, codes, validation_error


class EnvelopeKind(str, Enum):
    UNSPECIFIED = "unspecified"
    COMMAND = "command"
    QUERY = "query"
    RESULT = "result"


@dataclass(frozen=True)
class EnvelopeMeta:
    """Request correlation fields.

    ``principal`` names the calling component or session. It is recorded for
    tracing only; authorization always uses the caller context passed to the
    operation itself.
    """

    envelope_id: str
    trace_id: str
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str
    principal: str


# Fields that must be non-blank, in reporting order.
_REQUIRED = ("envelope_id", "trace_id", "source", "principal")


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_meta(
    *,
    kind: EnvelopeKind,
    source: str,
    principal: str,
    trace_id: str | None = None,
    parent_id: str = "",
    envelope_id: str | None = None,
    timestamp: datetime | None = None,
) -> EnvelopeMeta:
    """Build metadata, generating ids and coercing ``timestamp`` to UTC."""
    if timestamp is None:
        stamped = utc_now()
    elif timestamp.tzinfo is None:
        stamped = timestamp.replace(tzinfo=UTC)
    else:
        stamped = timestamp.astimezone(UTC)
    return EnvelopeMeta(
        envelope_id=envelope_id or uuid4().hex,
        trace_id=trace_id or uuid4().hex,
        parent_id=parent_id,
        timestamp=stamped,
        kind=kind,
        source=source,
        principal=principal,
    )


def validate_meta(meta: EnvelopeMeta) -> list[ErrorDetail]:
    """Return at most one ``INVALID_ARGUMENT`` error; empty when usable."""
    message = _first_problem(meta)
    if message is None:
        return []
    return [validation_error(message, code=codes.INVALID_ARGUMENT)]


def _first_problem(meta: EnvelopeMeta) -> str | None:
    for name in _REQUIRED:
        value = getattr(meta, name)
        if not isinstance(value, str) or not value.strip():
            return f"metadata.{name} is required"
    if not isinstance(meta.timestamp, datetime):
        return "metadata.timestamp is required"
    if not isinstance(meta.parent_id, str):
        return "metadata.parent_id must be a string"
    try:
        kind = EnvelopeKind(meta.kind)
    except ValueError:
        return "metadata.kind must be specified"
    if kind is EnvelopeKind.UNSPECIFIED:
        return "metadata.kind must be specified"
    return None

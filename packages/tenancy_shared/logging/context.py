"""Per-request structured logging fields held in a ``ContextVar``.

Fields bound here are copied onto every log record by ``ContextFilter``.
Each asyncio task or thread sees its own copy.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Iterator, Mapping

_FIELDS: ContextVar[Mapping[str, str]] = ContextVar(
    "tenancy_log_fields", default=MappingProxyType({})
)


def get_context() -> dict[str, str]:
    """Return a mutable copy of the currently bound fields."""
    return dict(_FIELDS.get())


def bind_context(**values: object) -> None:
    """Add fields to the current context; ``None`` values are skipped."""
    additions = {key: str(value) for key, value in values.items() if value is not None}
    if additions:
        _FIELDS.set(MappingProxyType({**_FIELDS.get(), **additions}))


def clear_context(*keys: str) -> None:
    """Drop the named fields, or every field when no names are given."""
    if keys:
        remaining = {k: v for k, v in _FIELDS.get().items() if k not in keys}
    else:
        remaining = {}
    _FIELDS.set(MappingProxyType(remaining))


@contextmanager
def log_context(values: Mapping[str, object]) -> Iterator[None]:
    """Bind ``values`` for the duration of the block, then restore."""
    token = _FIELDS.set(_FIELDS.get())
    try:
        bind_context(**{str(key): value for key, value in values.items()})
        yield
    finally:
        _FIELDS.reset(token)

"""Typed result envelope returned by every public service operation."""

from __future__ import annotations

from typing import Generic, Iterable, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from packages.tenancy_shared.errors import ErrorDetail

from .meta import EnvelopeMeta

T = TypeVar("T")


class Payload(BaseModel, Generic[T]):
    model_config = ConfigDict(frozen=True, extra="forbid")

    value: T


class Envelope(BaseModel, Generic[T]):
    """Metadata plus either a payload or a non-empty list of errors."""

    model_config = ConfigDict(frozen=True)

    metadata: EnvelopeMeta
    payload: Payload[T] | None
    errors: list[ErrorDetail] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def has_payload(self) -> bool:
        return self.payload is not None

    def error_codes(self) -> list[str]:
        return [error.code for error in self.errors]


def success(*, meta: EnvelopeMeta, payload: T) -> Envelope[T]:
    return Envelope[T](metadata=meta, payload=Payload[T](value=payload))


def failure(*, meta: EnvelopeMeta, errors: Iterable[ErrorDetail]) -> Envelope[T]:
    return Envelope[T](metadata=meta, payload=None, errors=list(errors))

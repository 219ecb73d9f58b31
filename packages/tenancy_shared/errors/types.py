"""Error values reported on envelopes instead of raised across boundaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Protocol

from . import codes


class ErrorCategory(str, Enum):
    UNSPECIFIED = "unspecified"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    POLICY = "policy"
    DEPENDENCY = "dependency"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ErrorDetail:
    code: str
    message: str
    category: ErrorCategory
    retryable: bool = False
    metadata: Mapping[str, str] = field(default_factory=dict)


class ErrorFactory(Protocol):
    def __call__(
        self,
        message: str,
        *,
        code: str = ...,
        retryable: bool = ...,
        metadata: Mapping[str, str] | None = None,
    ) -> ErrorDetail: ...


def _factory(
    category: ErrorCategory, default_code: str, *, retryable_by_default: bool = False
) -> ErrorFactory:
    def build(
        message: str,
        *,
        code: str = default_code,
        retryable: bool = retryable_by_default,
        metadata: Mapping[str, str] | None = None,
    ) -> ErrorDetail:
        return ErrorDetail(
            code=code,
            message=message,
            category=category,
            retryable=retryable,
            metadata=dict(metadata or {}),
        )

    build.__name__ = f"{category.value}_error"
    build.__doc__ = f"Build a ``{category.value}`` error (default code {default_code})."
    return build


validation_error = _factory(ErrorCategory.VALIDATION, codes.VALIDATION_ERROR)
not_found_error = _factory(ErrorCategory.NOT_FOUND, codes.NOT_FOUND)
conflict_error = _factory(ErrorCategory.CONFLICT, codes.CONFLICT)
policy_error = _factory(ErrorCategory.POLICY, codes.POLICY_VIOLATION)
# Dependency failures are retryable unless the caller says otherwise.
dependency_error = _factory(
    ErrorCategory.DEPENDENCY, codes.DEPENDENCY_FAILURE, retryable_by_default=True
)
internal_error = _factory(ErrorCategory.INTERNAL, codes.INTERNAL_ERROR)

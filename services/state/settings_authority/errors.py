"""Settings Authority Service error taxonomy and envelope mapping.

Store and audit components raise these exceptions; the public facade converts
them into ``ErrorDetail`` values so callers only ever see envelopes.
"""

from __future__ import annotations

from typing import Sequence

from packages.tenancy_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    not_found_error,
    policy_error,
    validation_error,
)
from resources.substrates.postgres.errors import normalize_postgres_error

VALIDATION_FAILED = "VALIDATION_FAILED"
CATEGORY_INVALID = "CATEGORY_INVALID"
DUPLICATE_KEY = "DUPLICATE_KEY"
CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"


class SettingsAuthorityError(Exception):
    """Base class for expected Settings Authority failures."""

    def to_errors(self) -> list[ErrorDetail]:
        raise NotImplementedError


class ValidationFailed(SettingsAuthorityError):
    """A value did not satisfy its schema, or an update changed nothing."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))

    def to_errors(self) -> list[ErrorDetail]:
        return [
            validation_error(message, code=VALIDATION_FAILED) for message in self.errors
        ]


class CategoryInvalid(SettingsAuthorityError):
    """Category is not registered for the caller's scope."""

    def __init__(self, *, scope: str, category: str) -> None:
        self.scope = scope
        self.category = category
        super().__init__(f"Invalid category for {scope} scope: {category}")

    def to_errors(self) -> list[ErrorDetail]:
        return [
            validation_error(
                str(self),
                code=CATEGORY_INVALID,
                metadata={"scope": self.scope, "category": self.category},
            )
        ]


class DuplicateKey(SettingsAuthorityError):
    """An active entry already exists for the category/key in this scope."""

    def __init__(self, *, category: str, key: str) -> None:
        self.category = category
        self.key = key
        super().__init__("setting with this category and key already exists")

    def to_errors(self) -> list[ErrorDetail]:
        return [
            conflict_error(
                str(self),
                code=DUPLICATE_KEY,
                metadata={"category": self.category, "key": self.key},
            )
        ]


class ConcurrentModification(SettingsAuthorityError):
    """The entry kept changing underneath repeated update attempts."""

    def __init__(self, *, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__("setting was modified concurrently")

    def to_errors(self) -> list[ErrorDetail]:
        return [
            conflict_error(
                str(self),
                code=CONCURRENT_MODIFICATION,
                retryable=True,
                metadata={"entry_id": self.entry_id},
            )
        ]


class NotFound(SettingsAuthorityError):
    """No active entry matched the lookup."""

    def __init__(
        self,
        *,
        entry_id: str | None = None,
        category: str | None = None,
        key: str | None = None,
    ) -> None:
        self.metadata = {
            name: value
            for name, value in (
                ("entry_id", entry_id),
                ("category", category),
                ("key", key),
            )
            if value is not None
        }
        super().__init__("setting not found")

    def to_errors(self) -> list[ErrorDetail]:
        return [
            not_found_error(
                str(self),
                code=codes.RESOURCE_NOT_FOUND,
                metadata=self.metadata,
            )
        ]


class Forbidden(SettingsAuthorityError):
    """The entry belongs to a different tenant than the caller."""

    def __init__(self, *, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__("setting belongs to a different tenant")

    def to_errors(self) -> list[ErrorDetail]:
        return [
            policy_error(
                str(self),
                code=codes.PERMISSION_DENIED,
                metadata={"entry_id": self.entry_id},
            )
        ]


class StoreUnavailable(SettingsAuthorityError):
    """The backing store failed; the original exception is the cause."""

    def __init__(self, *, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: settings store unavailable")

    def to_errors(self) -> list[ErrorDetail]:
        cause = self.__cause__
        if isinstance(cause, Exception):
            return [normalize_postgres_error(cause)]
        return [
            dependency_error(
                str(self),
                code=codes.DEPENDENCY_UNAVAILABLE,
                metadata={"operation": self.operation},
            )
        ]

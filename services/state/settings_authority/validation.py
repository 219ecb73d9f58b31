"""Pydantic request-validation models for Settings Authority Service API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from packages.tenancy_shared.ids import ulid_str_to_bytes
from services.state.settings_authority.domain import SettingUpdate, ValidationSchema

MAX_KEY_LENGTH = 255
MAX_CATEGORY_LENGTH = 64


class _ValidationModel(BaseModel):
    """Base request model with strict shape semantics."""

    model_config = ConfigDict(frozen=True, extra="forbid")


def _required_text(value: str, info: ValidationInfo) -> str:
    normalized = value.strip()
    if normalized == "":
        raise ValueError(f"{info.field_name} is required")
    return normalized


def _entry_id(value: str, info: ValidationInfo) -> str:
    normalized = _required_text(value, info).upper()
    try:
        ulid_str_to_bytes(normalized)
    except ValueError as exc:
        raise ValueError(f"{info.field_name} must be a 26-character ULID") from exc
    return normalized


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class ListSettingsRequest(_ValidationModel):
    """Validated list request with optional category filter."""

    category: str | None = None

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, value: str | None) -> str | None:
        return _optional_text(value)


class SettingLocatorRequest(_ValidationModel):
    """Validated request shape for lookups by category and key."""

    category: str = Field(max_length=MAX_CATEGORY_LENGTH)
    key: str = Field(max_length=MAX_KEY_LENGTH)

    @field_validator("category", "key")
    @classmethod
    def _validate_text(cls, value: str, info: ValidationInfo) -> str:
        return _required_text(value, info)


class CreateSettingRequest(_ValidationModel):
    """Validated create-setting request shape."""

    category: str = Field(max_length=MAX_CATEGORY_LENGTH)
    key: str = Field(max_length=MAX_KEY_LENGTH)
    value: Any = None
    validation_schema: ValidationSchema | None = None
    description: str | None = None
    reason: str | None = None

    @field_validator("category", "key")
    @classmethod
    def _validate_text(cls, value: str, info: ValidationInfo) -> str:
        """Require non-blank category and key; surrounding whitespace is dropped."""
        return _required_text(value, info)

    @field_validator("description", "reason")
    @classmethod
    def _normalize_optional(cls, value: str | None) -> str | None:
        return _optional_text(value)


class UpdateSettingRequest(_ValidationModel):
    """Validated partial-update request shape."""

    entry_id: str
    update: SettingUpdate
    reason: str | None = None

    @field_validator("entry_id")
    @classmethod
    def _validate_entry_id(cls, value: str, info: ValidationInfo) -> str:
        return _entry_id(value, info)

    @field_validator("reason")
    @classmethod
    def _normalize_reason(cls, value: str | None) -> str | None:
        return _optional_text(value)


class EntryRequest(_ValidationModel):
    """Validated request shape for operations keyed by entry id."""

    entry_id: str
    reason: str | None = None

    @field_validator("entry_id")
    @classmethod
    def _validate_entry_id(cls, value: str, info: ValidationInfo) -> str:
        return _entry_id(value, info)

    @field_validator("reason")
    @classmethod
    def _normalize_reason(cls, value: str | None) -> str | None:
        return _optional_text(value)


class AuditQueryRequest(_ValidationModel):
    """Validated audit query; ``limit`` falls back to the configured default."""

    entry_id: str | None = None
    limit: int | None = Field(default=None, gt=0)

    @field_validator("entry_id")
    @classmethod
    def _validate_entry_id(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None:
            return None
        return _entry_id(value, info)

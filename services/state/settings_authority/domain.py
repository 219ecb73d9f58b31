"""Domain contracts for Settings Authority Service payloads."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SettingScope(str, Enum):
    """Whether a setting applies platform-wide or to one tenant."""

    PLATFORM = "platform"
    TENANT = "tenant"


class AuditAction(str, Enum):
    """Kinds of operations recorded in the settings audit trail."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"


class CallerContext(BaseModel):
    """Explicit identity and scope for one request.

    Supplied by the identity provider on every call; the service never keeps a
    current user or tenant of its own.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    actor: str
    scope: SettingScope
    tenant_id: str | None = None

    @field_validator("actor")
    @classmethod
    def _require_actor(cls, value: str) -> str:
        normalized = value.strip()
        if normalized == "":
            raise ValueError("actor is required")
        return normalized

    @field_validator("tenant_id")
    @classmethod
    def _normalize_tenant(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    @model_validator(mode="after")
    def _check_scope_tenant(self) -> "CallerContext":
        """Tenant scope needs a tenant id; platform scope must not carry one."""
        if self.scope is SettingScope.TENANT and self.tenant_id is None:
            raise ValueError("tenant_id is required for tenant scope")
        if self.scope is SettingScope.PLATFORM and self.tenant_id is not None:
            raise ValueError("tenant_id must be empty for platform scope")
        return self


class ClientContext(BaseModel):
    """Network context captured for audit records; fields may be unknown."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    client_ip: str | None = None
    client_agent: str | None = None


class ValidationSchema(BaseModel):
    """Declarative shape of a setting value.

    Parsing is lenient: unknown keys are ignored and malformed known keys are
    dropped instead of rejected, so any stored schema can always be loaded.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str | None = None
    required: bool = False
    enum: list[Any] | None = None
    pattern: str | None = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    properties: dict[str, "ValidationSchema"] | None = None
    items: Any = None

    @model_validator(mode="before")
    @classmethod
    def _drop_malformed(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return {}
        cleaned = dict(data)
        if not isinstance(cleaned.get("type"), str):
            cleaned.pop("type", None)
        if not isinstance(cleaned.get("required"), bool):
            cleaned.pop("required", None)
        if not isinstance(cleaned.get("enum"), (list, tuple)):
            cleaned.pop("enum", None)
        if not isinstance(cleaned.get("pattern"), str):
            cleaned.pop("pattern", None)
        for bound in ("minimum", "maximum"):
            raw = cleaned.get(bound)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                cleaned.pop(bound, None)
        properties = cleaned.get("properties")
        if isinstance(properties, dict):
            cleaned["properties"] = {
                str(name): (rule if isinstance(rule, (dict, ValidationSchema)) else {})
                for name, rule in properties.items()
            }
        else:
            cleaned.pop("properties", None)
        return cleaned

    def to_document(self) -> dict[str, Any]:
        """Return the JSON document stored alongside an entry."""
        return self.model_dump(mode="json", exclude_none=True, exclude_defaults=True)


class ValidationResult(BaseModel):
    """Outcome of validating one value against one schema."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    valid: bool
    errors: list[str] = Field(default_factory=list)


class ConfigurationEntry(BaseModel):
    """One scoped key/value setting."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    scope: SettingScope
    tenant_id: str | None
    category: str
    key: str
    value: Any
    validation_schema: ValidationSchema | None = None
    description: str | None = None
    active: bool
    last_modified_by: str
    created_at: datetime
    updated_at: datetime


class SettingUpdate(BaseModel):
    """Partial update for one entry; only explicitly set fields apply."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: Any = None
    validation_schema: ValidationSchema | None = None
    description: str | None = None

    def supplied(self, field_name: str) -> bool:
        """Return whether the caller explicitly supplied ``field_name``."""
        return field_name in self.model_fields_set


class AuditRecord(BaseModel):
    """Immutable audit trail row for one operation on one entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    entry_id: str
    scope: SettingScope
    tenant_id: str | None
    action: AuditAction
    actor: str
    before_value: Any = None
    after_value: Any = None
    reason: str | None = None
    client_ip: str
    client_agent: str
    created_at: datetime
    digest: str


class AuditIntegrityReport(BaseModel):
    """Result of recomputing audit record digests."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    checked: int
    invalid_record_ids: list[str] = Field(default_factory=list)

    @property
    def intact(self) -> bool:
        """Return ``True`` when every checked record matched its digest."""
        return len(self.invalid_record_ids) == 0


class DefaultSettingTemplate(BaseModel):
    """Built-in starter setting offered for one scope."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: str
    key: str
    value: Any
    description: str
    validation_schema: ValidationSchema


class HealthStatus(BaseModel):
    """Service and owned store readiness."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    substrate_ready: bool
    detail: str

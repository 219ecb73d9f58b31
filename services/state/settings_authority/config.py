"""Pydantic settings for Settings Authority Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.tenancy_shared.config import TenancySettings, resolve_component_settings
from services.state.settings_authority.component import SERVICE_COMPONENT_ID


class SettingsAuthorityConfig(BaseModel):
    """Settings Authority Service runtime behavior settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_audit_query_limit: int = Field(default=50, gt=0)
    max_audit_query_limit: int = Field(default=500, gt=0)
    record_views: bool = False
    unknown_client_value: str = "unknown"

    @field_validator("unknown_client_value")
    @classmethod
    def _require_placeholder(cls, value: str) -> str:
        """Audit records always carry a non-empty client placeholder."""
        normalized = value.strip()
        if normalized == "":
            raise ValueError("unknown_client_value is required")
        return normalized

    @model_validator(mode="after")
    def _check_limits(self) -> "SettingsAuthorityConfig":
        if self.default_audit_query_limit > self.max_audit_query_limit:
            raise ValueError(
                "default_audit_query_limit must not exceed max_audit_query_limit"
            )
        return self


def resolve_settings_authority_config(
    settings: TenancySettings,
) -> SettingsAuthorityConfig:
    """Resolve service config from ``components.service.settings_authority``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=SettingsAuthorityConfig,
    )

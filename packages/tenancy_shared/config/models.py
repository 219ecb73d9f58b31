"""Pydantic models for the Tenancy configuration tree."""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "tenancy" / "tenancy.yaml"

COMPONENT_KINDS: tuple[str, ...] = ("service", "substrate")

TComponentSettings = TypeVar("TComponentSettings", bound=BaseModel)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "tenancy"
    environment: str = "dev"


class PublicApiOtelSettings(BaseModel):
    """Instrument and tracer names used by public API instrumentation."""

    meter_name: str = "tenancy.public_api"
    tracer_name: str = "tenancy.public_api"
    metric_public_api_calls_total: str = "tenancy_public_api_calls_total"
    metric_public_api_duration_ms: str = "tenancy_public_api_duration_ms"
    metric_public_api_errors_total: str = "tenancy_public_api_errors_total"
    metric_instrumentation_failures_total: str = (
        "tenancy_public_api_instrumentation_failures_total"
    )


class PublicApiObservabilitySettings(BaseModel):
    otel: PublicApiOtelSettings = Field(default_factory=PublicApiOtelSettings)


class ObservabilitySettings(BaseModel):
    public_api: PublicApiObservabilitySettings = Field(
        default_factory=PublicApiObservabilitySettings
    )


class ComponentNamespaceSettings(BaseModel):
    """Free-form ``name -> settings mapping`` for one component kind.

    Each component validates its own subtree through
    ``resolve_component_settings``.
    """

    model_config = ConfigDict(extra="allow")

    def section(self, name: str) -> Any:
        return (self.model_extra or {}).get(name, {})


class ComponentsSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )
    substrate: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )

    @model_validator(mode="before")
    @classmethod
    def _grouped_namespaces_only(cls, value: Any) -> Any:
        if isinstance(value, dict):
            for key in value:
                kind, sep, name = str(key).partition("_")
                if sep and kind in COMPONENT_KINDS:
                    raise ValueError(
                        f"components.{key} is invalid; "
                        f"use components.{kind}.{name} instead"
                    )
        return value


class TenancySettings(BaseSettings):
    """Root settings object shared by every Tenancy process."""

    model_config = SettingsConfigDict(
        env_prefix="TENANCY_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
    )

    config_path: ClassVar[Path] = DEFAULT_CONFIG_PATH

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    components: ComponentsSettings = Field(default_factory=ComponentsSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        yaml_source = YamlConfigSettingsSource(
            settings_cls, yaml_file=cls.config_path, yaml_file_encoding="utf-8"
        )
        return init_settings, env_settings, yaml_source


def resolve_component_settings(
    *,
    settings: TenancySettings,
    component_id: str,
    model: type[TComponentSettings],
) -> TComponentSettings:
    """Validate ``components.<kind>.<name>`` for ``<kind>_<name>`` into ``model``.

    A component with no configured subtree gets the model defaults.
    """
    kind, sep, name = component_id.partition("_")
    if not sep or kind not in COMPONENT_KINDS:
        raise ValueError(f"unsupported component id: {component_id}")
    namespace: ComponentNamespaceSettings = getattr(settings.components, kind)
    section = namespace.section(name)
    if not isinstance(section, dict):
        raise TypeError(f"components.{kind}.{name} must resolve to an object mapping")
    return model.model_validate(section)

"""Settings Authority Service data layer."""

from services.state.settings_authority.data.repository import (
    PostgresAuditRepository,
    PostgresSettingsRepository,
)
from services.state.settings_authority.data.runtime import (
    SettingsPostgresRuntime,
    settings_postgres_schema,
)

__all__ = [
    "PostgresAuditRepository",
    "PostgresSettingsRepository",
    "SettingsPostgresRuntime",
    "settings_postgres_schema",
]

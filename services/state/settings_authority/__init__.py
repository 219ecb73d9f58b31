"""Settings Authority Service native package exports."""

from packages.tenancy_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta
from packages.tenancy_shared.errors import ErrorCategory, ErrorDetail
from services.state.settings_authority.component import SERVICE_COMPONENT_ID
from services.state.settings_authority.config import SettingsAuthorityConfig
from services.state.settings_authority.domain import (
    AuditAction,
    AuditIntegrityReport,
    AuditRecord,
    CallerContext,
    ClientContext,
    ConfigurationEntry,
    HealthStatus,
    SettingScope,
    SettingUpdate,
    ValidationResult,
    ValidationSchema,
)
from services.state.settings_authority.implementation import (
    DefaultSettingsAuthorityService,
)
from services.state.settings_authority.service import (
    SettingsAuthorityService,
    build_settings_authority_service,
)

__all__ = [
    "SERVICE_COMPONENT_ID",
    "AuditAction",
    "AuditIntegrityReport",
    "AuditRecord",
    "CallerContext",
    "ClientContext",
    "ConfigurationEntry",
    "DefaultSettingsAuthorityService",
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "ErrorCategory",
    "ErrorDetail",
    "HealthStatus",
    "SettingScope",
    "SettingUpdate",
    "SettingsAuthorityConfig",
    "SettingsAuthorityService",
    "ValidationResult",
    "ValidationSchema",
    "build_settings_authority_service",
]

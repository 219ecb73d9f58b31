"""Built-in starter settings offered to each scope."""

from __future__ import annotations

from services.state.settings_authority.domain import (
    DefaultSettingTemplate,
    SettingScope,
    ValidationSchema,
)

_PLATFORM_TEMPLATES = (
    DefaultSettingTemplate(
        category="tenant-onboarding-defaults",
        key="default-roles",
        value={
            "roles": ["Admin", "Manager", "Engineer", "Customer"],
            "permissions": {
                "Admin": ["all"],
                "Manager": ["read", "write", "manage_users"],
                "Engineer": ["read", "write"],
                "Customer": ["read"],
            },
        },
        description="Default roles and permissions for new tenants",
        validation_schema=ValidationSchema.model_validate(
            {
                "type": "object",
                "required": True,
                "properties": {
                    "roles": {"type": "array", "items": {"type": "string"}},
                    "permissions": {"type": "object"},
                },
            }
        ),
    ),
    DefaultSettingTemplate(
        category="global-notification-config",
        key="smtp-config",
        value={
            "host": "localhost",
            "port": 587,
            "secure": False,
            "auth": {"user": "", "pass": ""},
        },
        description="Global SMTP configuration for email notifications",
        validation_schema=ValidationSchema.model_validate(
            {
                "type": "object",
                "required": True,
                "properties": {
                    "host": {"type": "string", "required": True},
                    "port": {"type": "number", "minimum": 1, "maximum": 65535},
                    "secure": {"type": "boolean"},
                    "auth": {"type": "object"},
                },
            }
        ),
    ),
)

_TENANT_TEMPLATES = (
    DefaultSettingTemplate(
        category="complaint-rules",
        key="auto-assignment",
        value={
            "enabled": True,
            "method": "round_robin",
            "criteria": {
                "location_based": False,
                "skill_based": True,
                "workload_based": True,
            },
        },
        description="Automatic complaint assignment rules",
        validation_schema=ValidationSchema.model_validate(
            {
                "type": "object",
                "required": True,
                "properties": {
                    "enabled": {"type": "boolean"},
                    "method": {
                        "type": "string",
                        "enum": ["manual", "round_robin", "geo_based"],
                    },
                    "criteria": {"type": "object"},
                },
            }
        ),
    ),
    DefaultSettingTemplate(
        category="notification-preferences",
        key="whatsapp-reminders",
        value={
            "enabled": True,
            "contract_expiry_days": [30, 15, 7, 1],
            "service_reminder_days": [7, 3, 1],
        },
        description="WhatsApp reminder configuration",
        validation_schema=ValidationSchema.model_validate(
            {
                "type": "object",
                "required": True,
                "properties": {
                    "enabled": {"type": "boolean"},
                    "contract_expiry_days": {
                        "type": "array",
                        "items": {"type": "number"},
                    },
                    "service_reminder_days": {
                        "type": "array",
                        "items": {"type": "number"},
                    },
                },
            }
        ),
    ),
)


def default_templates(scope: SettingScope) -> tuple[DefaultSettingTemplate, ...]:
    """Return starter settings for ``scope`` in a stable order."""
    if SettingScope(scope) is SettingScope.PLATFORM:
        return _PLATFORM_TEMPLATES
    return _TENANT_TEMPLATES

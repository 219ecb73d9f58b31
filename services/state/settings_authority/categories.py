"""Category registry for platform and tenant settings."""

from __future__ import annotations

from services.state.settings_authority.domain import SettingScope

PLATFORM_CATEGORIES = frozenset(
    {
        "tenant-onboarding-defaults",
        "global-notification-config",
        "system-policies",
        "document-templates",
        "license-policy",
    }
)

TENANT_CATEGORIES = frozenset(
    {
        "complaint-rules",
        "job-work-config",
        "notification-preferences",
        "document-templates",
        "product-defaults",
    }
)

_CATEGORIES_BY_SCOPE = {
    SettingScope.PLATFORM: PLATFORM_CATEGORIES,
    SettingScope.TENANT: TENANT_CATEGORIES,
}


def categories_for(scope: SettingScope) -> frozenset[str]:
    """Return the fixed category set allowed for one scope."""
    return _CATEGORIES_BY_SCOPE[SettingScope(scope)]


def is_valid_category(scope: SettingScope, category: str) -> bool:
    return category in categories_for(scope)

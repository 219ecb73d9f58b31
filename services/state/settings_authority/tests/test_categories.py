"""Tests for the scope category registry and built-in templates."""

from __future__ import annotations

from services.state.settings_authority.categories import (
    categories_for,
    is_valid_category,
)
from services.state.settings_authority.defaults import default_templates
from services.state.settings_authority.domain import SettingScope
from services.state.settings_authority.schema_validation import validate_value


def test_platform_categories_are_fixed() -> None:
    """Platform scope exposes exactly its five categories."""
    assert categories_for(SettingScope.PLATFORM) == {
        "tenant-onboarding-defaults",
        "global-notification-config",
        "system-policies",
        "document-templates",
        "license-policy",
    }


def test_tenant_categories_are_fixed() -> None:
    """Tenant scope exposes exactly its five categories."""
    assert categories_for(SettingScope.TENANT) == {
        "complaint-rules",
        "job-work-config",
        "notification-preferences",
        "document-templates",
        "product-defaults",
    }


def test_category_validity_is_scope_specific() -> None:
    """Shared names are valid in both scopes; others only in their own."""
    assert is_valid_category(SettingScope.PLATFORM, "document-templates")
    assert is_valid_category(SettingScope.TENANT, "document-templates")
    assert not is_valid_category(SettingScope.TENANT, "license-policy")
    assert not is_valid_category(SettingScope.PLATFORM, "complaint-rules")
    assert not is_valid_category(SettingScope.TENANT, "unknown-category")


def test_default_templates_cover_expected_keys() -> None:
    """Each scope ships its two starter settings in a stable order."""
    platform = [(t.category, t.key) for t in default_templates(SettingScope.PLATFORM)]
    tenant = [(t.category, t.key) for t in default_templates(SettingScope.TENANT)]

    assert platform == [
        ("tenant-onboarding-defaults", "default-roles"),
        ("global-notification-config", "smtp-config"),
    ]
    assert tenant == [
        ("complaint-rules", "auto-assignment"),
        ("notification-preferences", "whatsapp-reminders"),
    ]


def test_default_templates_are_valid_for_their_scope_and_schema() -> None:
    """Starter values use registered categories and satisfy their own schema."""
    for scope in SettingScope:
        for template in default_templates(scope):
            assert is_valid_category(scope, template.category)
            result = validate_value(template.value, template.validation_schema)
            assert result.valid, (template.key, result.errors)

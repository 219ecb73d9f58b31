"""Authoritative in-process Python API for Settings Authority Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from packages.tenancy_shared.config import TenancySettings
from packages.tenancy_shared.envelope import Envelope, EnvelopeMeta
from services.state.settings_authority.domain import (
    AuditIntegrityReport,
    AuditRecord,
    CallerContext,
    ClientContext,
    ConfigurationEntry,
    HealthStatus,
    SettingUpdate,
    ValidationResult,
    ValidationSchema,
)


class SettingsAuthorityService(ABC):
    """Public API for scoped settings and their audit trail."""

    @abstractmethod
    def list_settings(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        category: str | None = None,
    ) -> Envelope[list[ConfigurationEntry]]:
        """List active settings for the caller's scope and tenant."""

    @abstractmethod
    def get_setting(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        category: str,
        key: str,
        client: ClientContext | None = None,
    ) -> Envelope[ConfigurationEntry]:
        """Read one active setting by category and key."""

    @abstractmethod
    def create_setting(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        category: str,
        key: str,
        value: Any,
        validation_schema: ValidationSchema | Mapping[str, Any] | None = None,
        description: str | None = None,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> Envelope[ConfigurationEntry]:
        """Create one setting after category and schema validation."""

    @abstractmethod
    def update_setting(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        entry_id: str,
        update: SettingUpdate,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> Envelope[ConfigurationEntry]:
        """Apply a partial update to one owned setting."""

    @abstractmethod
    def delete_setting(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        entry_id: str,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> Envelope[bool]:
        """Soft-delete one owned setting."""

    @abstractmethod
    def query_audit(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        entry_id: str | None = None,
        limit: int | None = None,
    ) -> Envelope[list[AuditRecord]]:
        """Return the caller's audit records, most recent first."""

    @abstractmethod
    def verify_audit(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        entry_id: str | None = None,
        limit: int | None = None,
    ) -> Envelope[AuditIntegrityReport]:
        """Recompute digests for the caller's recent audit records."""

    @abstractmethod
    def seed_defaults(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        client: ClientContext | None = None,
    ) -> Envelope[list[ConfigurationEntry]]:
        """Create missing built-in settings for the caller's scope."""

    @abstractmethod
    def validate_value(
        self,
        *,
        meta: EnvelopeMeta,
        value: Any,
        validation_schema: ValidationSchema | Mapping[str, Any] | None,
    ) -> Envelope[ValidationResult]:
        """Validate a candidate value without persisting anything."""

    @abstractmethod
    def list_categories(
        self, *, meta: EnvelopeMeta, context: CallerContext
    ) -> Envelope[list[str]]:
        """Return the categories allowed for the caller's scope."""

    @abstractmethod
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return service and owned store readiness."""


def build_settings_authority_service(
    *,
    settings: TenancySettings,
) -> SettingsAuthorityService:
    """Build the default Settings Authority implementation from typed settings."""
    from services.state.settings_authority.implementation import (
        DefaultSettingsAuthorityService,
    )

    return DefaultSettingsAuthorityService.from_settings(settings)

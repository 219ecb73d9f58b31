"""Transport-neutral protocol interfaces used by Settings Authority Service."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Protocol

from services.state.settings_authority.domain import (
    AuditRecord,
    ConfigurationEntry,
    SettingScope,
)


class SettingsRepository(Protocol):
    """Protocol for authoritative scoped settings persistence."""

    def list_entries(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        category: str | None,
    ) -> list[ConfigurationEntry]:
        """List active entries for one scope/tenant ordered by category, key."""

    def find_active(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        category: str,
        key: str,
    ) -> ConfigurationEntry | None:
        """Read the active entry for one category/key, if any."""

    def get_entry(
        self, *, scope: SettingScope, entry_id: str
    ) -> ConfigurationEntry | None:
        """Read one entry by id from the scope table, active or not."""

    def insert_entry(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        category: str,
        key: str,
        value: Any,
        validation_schema: Mapping[str, Any] | None,
        description: str | None,
        actor: str,
    ) -> ConfigurationEntry:
        """Insert one active entry; unique violations propagate."""

    def update_entry(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        entry_id: str,
        changes: Mapping[str, Any],
        actor: str,
        expected_updated_at: datetime | None = None,
    ) -> ConfigurationEntry | None:
        """Apply changes to one active owned entry; ``None`` if nothing matched.

        With ``expected_updated_at`` the write only applies while the row still
        carries that stamp.
        """

    def deactivate_entry(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        entry_id: str,
        actor: str,
        expected_updated_at: datetime | None = None,
    ) -> ConfigurationEntry | None:
        """Soft-delete one active owned entry; ``None`` if no row matched."""

    def ping(self) -> None:
        """Raise when the backing store is unreachable."""


class AuditRepository(Protocol):
    """Append-only audit trail persistence."""

    def append(self, record: AuditRecord) -> None:
        """Persist one audit record exactly as given."""

    def list_records(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        entry_id: str | None,
        limit: int,
    ) -> list[AuditRecord]:
        """Return up to ``limit`` records, newest first."""

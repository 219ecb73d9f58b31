"""Authoritative SQL repositories for Settings Authority Service state."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Mapping

from sqlalchemy import Table, insert, select, text, update
from sqlalchemy.sql.elements import ColumnElement

from packages.tenancy_shared.ids import (
    generate_ulid_bytes,
    ulid_bytes_to_str,
    ulid_str_to_bytes,
)
from resources.substrates.postgres.session import ServiceSchemaSessionProvider
from services.state.settings_authority.domain import (
    AuditAction,
    AuditRecord,
    ConfigurationEntry,
    SettingScope,
    ValidationSchema,
)
from services.state.settings_authority.interfaces import (
    AuditRepository,
    SettingsRepository,
)

from .schema import (
    platform_settings,
    platform_settings_audit,
    tenant_settings,
    tenant_settings_audit,
)


class PostgresSettingsRepository(SettingsRepository):
    """SQL repository over the platform and tenant settings tables."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

    def list_entries(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        category: str | None,
    ) -> list[ConfigurationEntry]:
        """List active owned entries ordered by category then key."""
        table = _settings_table(scope)
        conditions = [table.c.active.is_(True), *_owner(table, scope, tenant_id)]
        if category is not None:
            conditions.append(table.c.category == category)
        with self._sessions.session() as session:
            rows = (
                session.execute(
                    select(table)
                    .where(*conditions)
                    .order_by(table.c.category.asc(), table.c["key"].asc())
                )
                .mappings()
                .all()
            )
            return [_to_entry(row, scope) for row in rows]

    def find_active(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        category: str,
        key: str,
    ) -> ConfigurationEntry | None:
        """Read the active owned entry for one category/key pair."""
        table = _settings_table(scope)
        with self._sessions.session() as session:
            row = (
                session.execute(
                    select(table).where(
                        table.c.active.is_(True),
                        table.c.category == category,
                        table.c["key"] == key,
                        *_owner(table, scope, tenant_id),
                    )
                )
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_entry(row, scope)

    def get_entry(
        self, *, scope: SettingScope, entry_id: str
    ) -> ConfigurationEntry | None:
        """Read one entry by id regardless of tenant or active flag."""
        table = _settings_table(scope)
        with self._sessions.session() as session:
            row = (
                session.execute(
                    select(table).where(table.c.id == ulid_str_to_bytes(entry_id))
                )
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_entry(row, scope)

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
        """Insert one active entry; the partial unique index rejects duplicates."""
        table = _settings_table(scope)
        entry_id = generate_ulid_bytes()
        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "id": entry_id,
            "category": category,
            "key": key,
            "value": value,
            "schema": None if validation_schema is None else dict(validation_schema),
            "description": description,
            "active": True,
            "last_modified_by": actor,
            "created_at": now,
            "updated_at": now,
        }
        if scope is SettingScope.TENANT:
            values["tenant_id"] = tenant_id

        with self._sessions.session() as session:
            session.execute(insert(table).values(**values))
            row = (
                session.execute(select(table).where(table.c.id == entry_id))
                .mappings()
                .one()
            )
            return _to_entry(row, scope)

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
        """Apply column changes to one active owned entry."""
        return self._update_owned(
            scope=scope,
            tenant_id=tenant_id,
            entry_id=entry_id,
            expected_updated_at=expected_updated_at,
            values={**changes, "last_modified_by": actor},
        )

    def deactivate_entry(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        entry_id: str,
        actor: str,
        expected_updated_at: datetime | None = None,
    ) -> ConfigurationEntry | None:
        """Flip ``active`` off for one owned entry."""
        return self._update_owned(
            scope=scope,
            tenant_id=tenant_id,
            entry_id=entry_id,
            expected_updated_at=expected_updated_at,
            values={"active": False, "last_modified_by": actor},
        )

    def ping(self) -> None:
        """Run a trivial query inside the service schema session."""
        with self._sessions.session() as session:
            session.execute(text("SELECT 1"))

    def _update_owned(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        entry_id: str,
        values: Mapping[str, Any],
        expected_updated_at: datetime | None,
    ) -> ConfigurationEntry | None:
        table = _settings_table(scope)
        entry_bytes = ulid_str_to_bytes(entry_id)
        conditions = [
            table.c.id == entry_bytes,
            table.c.active.is_(True),
            *_owner(table, scope, tenant_id),
        ]
        if expected_updated_at is not None:
            # Matches only while no other writer has bumped updated_at.
            conditions.append(table.c.updated_at == expected_updated_at)
        with self._sessions.session() as session:
            result = session.execute(
                update(table)
                .where(*conditions)
                .values(**values, updated_at=_next_stamp(expected_updated_at))
            )
            if int(result.rowcount or 0) == 0:
                return None
            row = (
                session.execute(select(table).where(table.c.id == entry_bytes))
                .mappings()
                .one()
            )
            return _to_entry(row, scope)


class PostgresAuditRepository(AuditRepository):
    """Append-only SQL repository over the settings audit tables."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

    def append(self, record: AuditRecord) -> None:
        """Insert one audit row exactly as built by the audit logger."""
        table = _audit_table(record.scope)
        values: dict[str, Any] = {
            "id": ulid_str_to_bytes(record.id),
            "setting_id": ulid_str_to_bytes(record.entry_id),
            "action": record.action.value,
            "actor": record.actor,
            "before_value": record.before_value,
            "after_value": record.after_value,
            "reason": record.reason,
            "client_ip": record.client_ip,
            "client_agent": record.client_agent,
            "created_at": record.created_at,
            "digest": record.digest,
        }
        if record.scope is SettingScope.TENANT:
            values["tenant_id"] = record.tenant_id

        with self._sessions.session() as session:
            session.execute(insert(table).values(**values))

    def list_records(
        self,
        *,
        scope: SettingScope,
        tenant_id: str | None,
        entry_id: str | None,
        limit: int,
    ) -> list[AuditRecord]:
        """Return owned audit records newest first."""
        table = _audit_table(scope)
        conditions = list(_owner(table, scope, tenant_id))
        if entry_id is not None:
            conditions.append(table.c.setting_id == ulid_str_to_bytes(entry_id))
        with self._sessions.session() as session:
            rows = (
                session.execute(
                    select(table)
                    .where(*conditions)
                    .order_by(table.c.created_at.desc(), table.c.id.desc())
                    .limit(limit)
                )
                .mappings()
                .all()
            )
            return [_to_audit(row, scope) for row in rows]


def _settings_table(scope: SettingScope) -> Table:
    if scope is SettingScope.PLATFORM:
        return platform_settings
    return tenant_settings


def _audit_table(scope: SettingScope) -> Table:
    if scope is SettingScope.PLATFORM:
        return platform_settings_audit
    return tenant_settings_audit


def _owner(
    table: Table, scope: SettingScope, tenant_id: str | None
) -> list[ColumnElement[bool]]:
    """Return tenant filter clauses; platform tables have no owner column."""
    if scope is SettingScope.PLATFORM:
        return []
    return [table.c.tenant_id == tenant_id]


def _to_entry(row: Mapping[str, Any], scope: SettingScope) -> ConfigurationEntry:
    """Map one SQL row to a strict domain entry."""
    raw_schema = row.get("schema")
    return ConfigurationEntry(
        id=ulid_bytes_to_str(bytes(row["id"])),
        scope=scope,
        tenant_id=None if scope is SettingScope.PLATFORM else str(row["tenant_id"]),
        category=str(row["category"]),
        key=str(row["key"]),
        value=row.get("value"),
        validation_schema=(
            None if raw_schema is None else ValidationSchema.model_validate(raw_schema)
        ),
        description=row.get("description"),
        active=bool(row["active"]),
        last_modified_by=str(row["last_modified_by"]),
        created_at=_row_dt(row, "created_at"),
        updated_at=_row_dt(row, "updated_at"),
    )


def _to_audit(row: Mapping[str, Any], scope: SettingScope) -> AuditRecord:
    """Map one SQL row to a strict audit record."""
    return AuditRecord(
        id=ulid_bytes_to_str(bytes(row["id"])),
        entry_id=ulid_bytes_to_str(bytes(row["setting_id"])),
        scope=scope,
        tenant_id=None if scope is SettingScope.PLATFORM else str(row["tenant_id"]),
        action=AuditAction(str(row["action"])),
        actor=str(row["actor"]),
        before_value=row.get("before_value"),
        after_value=row.get("after_value"),
        reason=row.get("reason"),
        client_ip=str(row["client_ip"]),
        client_agent=str(row["client_agent"]),
        created_at=_row_dt(row, "created_at"),
        digest=str(row["digest"]),
    )


def _next_stamp(previous: datetime | None) -> datetime:
    """Return now, kept strictly after ``previous`` so every write moves the stamp."""
    now = datetime.now(UTC)
    if previous is None:
        return now
    floor = previous if previous.tzinfo else previous.replace(tzinfo=UTC)
    return max(now, floor + timedelta(microseconds=1))


def _row_dt(row: Mapping[str, Any], column: str) -> datetime:
    """Read and normalize one timezone-aware datetime field from SQL row."""
    value = row.get(column)
    if not isinstance(value, datetime):
        raise ValueError(f"expected datetime column for {column}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)

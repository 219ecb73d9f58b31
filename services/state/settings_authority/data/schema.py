"""SQLAlchemy table definitions owned by Settings Authority Service.

Tables are unqualified; sessions pin ``search_path`` to the service schema.
Platform and tenant settings live in parallel tables so tenant rows always
carry a tenant id and platform rows never do.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB

from packages.tenancy_shared.ids import ulid_column_type, ulid_primary_key_column

metadata = MetaData()

_AUDIT_ACTIONS = "('CREATE', 'UPDATE', 'DELETE', 'VIEW')"


def _json_value():
    """JSON column storing JSON ``null`` for ``None`` values."""
    return JSON().with_variant(JSONB(), "postgresql")


def _json_nullable():
    """JSON column storing SQL ``NULL`` for ``None`` values."""
    return JSON(none_as_null=True).with_variant(
        JSONB(none_as_null=True), "postgresql"
    )


def _settings_columns(*, table_name: str) -> list[Column]:
    return [
        ulid_primary_key_column(
            "id", length_constraint_name=f"ck_{table_name}_id_ulid"
        ),
        Column("category", String(64), nullable=False),
        Column("key", String(255), nullable=False),
        Column("value", _json_value(), nullable=True),
        Column("schema", _json_nullable(), nullable=True),
        Column("description", Text, nullable=True),
        Column("active", Boolean, nullable=False, default=True),
        Column("last_modified_by", String(255), nullable=False),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    ]


def _audit_columns(*, table_name: str) -> list[Column]:
    return [
        ulid_primary_key_column(
            "id", length_constraint_name=f"ck_{table_name}_id_ulid"
        ),
        Column("setting_id", ulid_column_type(), nullable=False),
        Column("action", String(16), nullable=False),
        Column("actor", String(255), nullable=False),
        Column("before_value", _json_nullable(), nullable=True),
        Column("after_value", _json_nullable(), nullable=True),
        Column("reason", Text, nullable=True),
        Column("client_ip", String(64), nullable=False),
        Column("client_agent", String(512), nullable=False),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("digest", String(64), nullable=False),
        CheckConstraint(
            f"action IN {_AUDIT_ACTIONS}", name=f"ck_{table_name}_action"
        ),
    ]


platform_settings = Table(
    "platform_settings",
    metadata,
    *_settings_columns(table_name="platform_settings"),
)

tenant_settings = Table(
    "tenant_settings",
    metadata,
    Column("tenant_id", String(64), nullable=False),
    *_settings_columns(table_name="tenant_settings"),
)

platform_settings_audit = Table(
    "platform_settings_audit",
    metadata,
    *_audit_columns(table_name="platform_settings_audit"),
)

tenant_settings_audit = Table(
    "tenant_settings_audit",
    metadata,
    Column("tenant_id", String(64), nullable=False),
    *_audit_columns(table_name="tenant_settings_audit"),
)

Index(
    "uq_platform_settings_active_key",
    platform_settings.c.category,
    platform_settings.c["key"],
    unique=True,
    postgresql_where=platform_settings.c.active,
    sqlite_where=platform_settings.c.active,
)
Index(
    "uq_tenant_settings_active_key",
    tenant_settings.c.tenant_id,
    tenant_settings.c.category,
    tenant_settings.c["key"],
    unique=True,
    postgresql_where=tenant_settings.c.active,
    sqlite_where=tenant_settings.c.active,
)
Index(
    "ix_platform_settings_audit_setting_created",
    platform_settings_audit.c.setting_id,
    platform_settings_audit.c.created_at,
)
Index(
    "ix_tenant_settings_audit_tenant_created",
    tenant_settings_audit.c.tenant_id,
    tenant_settings_audit.c.created_at,
)
Index(
    "ix_tenant_settings_audit_setting_created",
    tenant_settings_audit.c.setting_id,
    tenant_settings_audit.c.created_at,
)

"""create settings authority tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from services.state.settings_authority.data.runtime import settings_postgres_schema

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

_AUDIT_ACTIONS = "action IN ('CREATE', 'UPDATE', 'DELETE', 'VIEW')"


def _schema() -> str:
    """Resolve canonical service-owned schema name."""
    return settings_postgres_schema()


def _settings_columns(table_name: str) -> list[sa.SchemaItem]:
    return [
        sa.Column("id", postgresql.BYTEA(), primary_key=True, nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("value", postgresql.JSONB(), nullable=True),
        sa.Column("schema", postgresql.JSONB(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        sa.Column("last_modified_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("length(id) = 16", name=f"ck_{table_name}_id_ulid"),
    ]


def _audit_columns(table_name: str) -> list[sa.SchemaItem]:
    return [
        sa.Column("id", postgresql.BYTEA(), primary_key=True, nullable=False),
        sa.Column("setting_id", postgresql.BYTEA(), nullable=False),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("before_value", postgresql.JSONB(), nullable=True),
        sa.Column("after_value", postgresql.JSONB(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("client_ip", sa.String(length=64), nullable=False),
        sa.Column("client_agent", sa.String(length=512), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("digest", sa.String(length=64), nullable=False),
        sa.CheckConstraint("length(id) = 16", name=f"ck_{table_name}_id_ulid"),
        sa.CheckConstraint(_AUDIT_ACTIONS, name=f"ck_{table_name}_action"),
    ]


def upgrade() -> None:
    """Create settings and audit tables with active-key uniqueness."""
    schema = _schema()

    op.create_table(
        "platform_settings",
        *_settings_columns("platform_settings"),
        schema=schema,
    )
    op.create_table(
        "tenant_settings",
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        *_settings_columns("tenant_settings"),
        schema=schema,
    )
    op.create_table(
        "platform_settings_audit",
        *_audit_columns("platform_settings_audit"),
        schema=schema,
    )
    op.create_table(
        "tenant_settings_audit",
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        *_audit_columns("tenant_settings_audit"),
        schema=schema,
    )

    op.create_index(
        "uq_platform_settings_active_key",
        "platform_settings",
        ["category", "key"],
        unique=True,
        schema=schema,
        postgresql_where=sa.text("active"),
    )
    op.create_index(
        "uq_tenant_settings_active_key",
        "tenant_settings",
        ["tenant_id", "category", "key"],
        unique=True,
        schema=schema,
        postgresql_where=sa.text("active"),
    )
    op.create_index(
        "ix_platform_settings_audit_setting_created",
        "platform_settings_audit",
        ["setting_id", "created_at"],
        schema=schema,
    )
    op.create_index(
        "ix_tenant_settings_audit_tenant_created",
        "tenant_settings_audit",
        ["tenant_id", "created_at"],
        schema=schema,
    )
    op.create_index(
        "ix_tenant_settings_audit_setting_created",
        "tenant_settings_audit",
        ["setting_id", "created_at"],
        schema=schema,
    )


def downgrade() -> None:
    """Drop settings and audit tables; the schema itself is left in place."""
    schema = _schema()
    for table_name in (
        "tenant_settings_audit",
        "platform_settings_audit",
        "tenant_settings",
        "platform_settings",
    ):
        op.drop_table(table_name, schema=schema)

"""Alembic environment for the ``service_settings_authority`` schema.

Logging is left to ``configure_logging`` in the migrate entrypoint.
"""

from __future__ import annotations

from alembic import context
from sqlalchemy import create_engine, pool

from packages.tenancy_shared.config import load_settings
from resources.substrates.postgres.config import resolve_postgres_settings
from services.state.settings_authority.data.runtime import settings_postgres_schema
from services.state.settings_authority.data.schema import metadata

DATABASE_URL = resolve_postgres_settings(load_settings()).url
SCHEMA = settings_postgres_schema()

_COMMON_OPTIONS = {
    "target_metadata": metadata,
    "include_schemas": True,
    "version_table_schema": SCHEMA,
}

if context.is_offline_mode():
    context.configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_COMMON_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    engine = create_engine(DATABASE_URL, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **_COMMON_OPTIONS)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()

"""Create service-owned schemas ahead of Alembic migrations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import text

from packages.tenancy_shared.config import TenancySettings, load_settings
from packages.tenancy_shared.logging import get_logger
from resources.substrates.postgres.config import resolve_postgres_settings
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.session import require_schema_name

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class BootstrapResult:
    provisioned_schemas: tuple[str, ...]


def bootstrap_service_schemas(
    *,
    schemas: Iterable[str],
    settings: TenancySettings | None = None,
) -> BootstrapResult:
    """Run ``CREATE SCHEMA IF NOT EXISTS`` for every name in one transaction."""
    names = tuple(require_schema_name(schema) for schema in schemas)
    if not names:
        raise RuntimeError("no service schemas requested; refusing schema bootstrap")

    engine = create_postgres_engine(
        resolve_postgres_settings(settings if settings is not None else load_settings())
    )
    try:
        with engine.begin() as connection:
            for name in names:
                _LOGGER.info("Ensuring postgres schema exists: schema=%s", name)
                connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {name}"))
    finally:
        engine.dispose()
    return BootstrapResult(provisioned_schemas=names)

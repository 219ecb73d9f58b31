"""Startup migration orchestration for the Settings Authority schema."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config

from packages.tenancy_shared.config import TenancySettings, load_settings
from packages.tenancy_shared.logging import configure_logging, get_logger
from resources.substrates.postgres.bootstrap import bootstrap_service_schemas
from services.state.settings_authority.data.runtime import settings_postgres_schema

_LOGGER = get_logger(__name__)

ALEMBIC_CONFIG_PATH = Path(__file__).resolve().parent / "migrations" / "alembic.ini"


class MigrationExecutionError(RuntimeError):
    """Raised when startup migration execution fails."""


@dataclass(frozen=True, slots=True)
class MigrationRunResult:
    """Summary of one startup migration pass."""

    provisioned_schemas: tuple[str, ...]
    executed_alembic_config: str


def run_startup_migrations(
    *,
    settings: TenancySettings,
    config_path: Path = ALEMBIC_CONFIG_PATH,
    upgrade_fn: Callable[[Config, str], None] = command.upgrade,
    bootstrap_fn: Callable[..., object] = bootstrap_service_schemas,
) -> MigrationRunResult:
    """Provision the service schema and upgrade it to the latest revision."""
    schema = settings_postgres_schema()
    bootstrap_fn(schemas=(schema,), settings=settings)
    _LOGGER.info("Upgrading settings schema to head: schema=%s", schema)
    try:
        upgrade_fn(Config(str(config_path)), "head")
    except Exception as exc:
        raise MigrationExecutionError(
            f"startup migration failed for config '{config_path}'"
        ) from exc
    return MigrationRunResult(
        provisioned_schemas=(schema,),
        executed_alembic_config=str(config_path),
    )


def main() -> None:
    """CLI entrypoint for schema bootstrap plus migrations."""
    settings = load_settings()
    configure_logging(settings.logging)
    result = run_startup_migrations(settings=settings)
    print(f"Provisioned {len(result.provisioned_schemas)} schema(s).")
    for schema in result.provisioned_schemas:
        print(f"- {schema}")
    print(f"Upgraded {result.executed_alembic_config} to head.")


if __name__ == "__main__":
    main()

"""Settings Authority owned Postgres runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from packages.tenancy_shared.config import TenancySettings
from resources.substrates.postgres import (
    ServiceSchemaSessionProvider,
    create_postgres_engine,
    create_session_factory,
    ping,
    resolve_postgres_settings,
)
from services.state.settings_authority.component import SERVICE_SCHEMA_NAME


@dataclass(frozen=True)
class SettingsPostgresRuntime:
    """Concrete handle for schema-scoped Postgres access."""

    engine: Engine
    session_factory: sessionmaker[Session]
    schema_sessions: ServiceSchemaSessionProvider

    @classmethod
    def from_settings(cls, settings: TenancySettings) -> "SettingsPostgresRuntime":
        """Build the service DB runtime from typed application settings."""
        postgres_settings = resolve_postgres_settings(settings)
        engine = create_postgres_engine(postgres_settings)
        session_factory = create_session_factory(engine)
        return cls(
            engine=engine,
            session_factory=session_factory,
            schema_sessions=ServiceSchemaSessionProvider(
                session_factory=session_factory,
                schema=settings_postgres_schema(),
            ),
        )

    def is_healthy(self) -> bool:
        """Return ``True`` when backing Postgres connection is reachable."""
        return ping(self.engine)


def settings_postgres_schema() -> str:
    """Return the Postgres schema owned by this service."""
    return SERVICE_SCHEMA_NAME

"""Pooled SQLAlchemy engines over psycopg 3."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine

from resources.substrates.postgres.config import PostgresSettings


def create_postgres_engine(settings: PostgresSettings) -> Engine:
    return create_engine(settings.url, **settings.engine_options())

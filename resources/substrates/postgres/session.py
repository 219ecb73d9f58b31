"""Transaction-scoped sessions, optionally pinned to one service schema."""

from __future__ import annotations

import re
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, text
from sqlalchemy.orm import Session, sessionmaker

SCHEMA_NAME_PATTERN = re.compile(r"[a-z_][a-z0-9_]*")


def require_schema_name(schema: str) -> str:
    """Return ``schema`` if it is safe to interpolate into DDL, else raise."""
    if SCHEMA_NAME_PATTERN.fullmatch(schema) is None:
        raise ValueError(f"invalid postgres schema name: {schema!r}")
    return schema


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def transactional_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Commit when the block finishes, roll back if it raises."""
    with session_factory() as session, session.begin():
        yield session


class ServiceSchemaSessionProvider:
    """Hands out transactions whose ``search_path`` starts at one schema.

    Each service owns exactly one schema, so repositories can use unqualified
    table names.
    """

    def __init__(self, *, session_factory: sessionmaker[Session], schema: str) -> None:
        self._session_factory = session_factory
        self._search_path = text(
            f"SET LOCAL search_path TO {require_schema_name(schema)}, public"
        )
        self.schema = schema

    @contextmanager
    def session(self) -> Iterator[Session]:
        with transactional_session(self._session_factory) as session:
            session.execute(self._search_path)
            yield session

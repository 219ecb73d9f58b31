"""Tests for schema-pinned transactional sessions."""

from __future__ import annotations

from contextlib import contextmanager

import pytest

from resources.substrates.postgres.session import (
    ServiceSchemaSessionProvider,
    require_schema_name,
)


class _FakeSession:
    def __init__(self) -> None:
        self.statements: list[str] = []
        self.events: list[str] = []

    def __enter__(self) -> "_FakeSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.events.append("close")

    @contextmanager
    def begin(self):
        try:
            yield self
        except Exception:
            self.events.append("rollback")
            raise
        self.events.append("commit")

    def execute(self, statement) -> None:
        self.statements.append(str(statement))


def test_session_sets_local_search_path_and_commits() -> None:
    """Every transaction starts by pinning the owned schema."""
    fake = _FakeSession()
    provider = ServiceSchemaSessionProvider(
        session_factory=lambda: fake, schema="service_settings_authority"
    )

    with provider.session() as session:
        assert session is fake

    assert fake.statements == [
        "SET LOCAL search_path TO service_settings_authority, public"
    ]
    assert fake.events == ["commit", "close"]


def test_session_rolls_back_when_block_raises() -> None:
    fake = _FakeSession()
    provider = ServiceSchemaSessionProvider(
        session_factory=lambda: fake, schema="service_settings_authority"
    )

    with pytest.raises(RuntimeError):
        with provider.session():
            raise RuntimeError("boom")

    assert fake.events == ["rollback", "close"]


@pytest.mark.parametrize("schema", ["", "Public", "bad-name", "x; DROP TABLE y"])
def test_unsafe_schema_names_are_rejected(schema: str) -> None:
    with pytest.raises(ValueError, match="invalid postgres schema name"):
        require_schema_name(schema)

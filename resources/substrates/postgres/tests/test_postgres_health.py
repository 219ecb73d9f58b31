"""Tests for Postgres substrate readiness checks."""

from __future__ import annotations

from types import SimpleNamespace

from resources.substrates.postgres.health import ping


class _FakeConnection:
    """Minimal context-managed connection double capturing execute calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, object] | None]] = []

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb

    def execute(self, statement, params=None) -> None:
        self.calls.append((str(statement), params))


class _FakeEngine:
    """Minimal engine double exposing ``connect`` and a dialect name."""

    def __init__(self, conn: _FakeConnection, *, dialect: str = "postgresql") -> None:
        self._conn = conn
        self.dialect = SimpleNamespace(name=dialect)

    def connect(self) -> _FakeConnection:
        return self._conn


def test_ping_applies_statement_timeout_via_set_config() -> None:
    """Ping should set statement timeout with set_config then run SELECT 1."""
    conn = _FakeConnection()
    engine = _FakeEngine(conn)

    assert ping(engine, timeout_seconds=1.2) is True
    assert conn.calls[0] == (
        "SELECT set_config('statement_timeout', :timeout_value, false)",
        {"timeout_value": "1200ms"},
    )
    assert conn.calls[1] == ("SELECT 1", None)


def test_ping_skips_statement_timeout_on_other_dialects() -> None:
    """Non-Postgres engines should only receive the trivial readiness query."""
    conn = _FakeConnection()
    engine = _FakeEngine(conn, dialect="sqlite")

    assert ping(engine) is True
    assert conn.calls == [("SELECT 1", None)]


def test_ping_returns_false_when_connection_or_query_fails() -> None:
    """Ping should degrade cleanly when the readiness query raises."""

    class _FailingConnection(_FakeConnection):
        def execute(self, statement, params=None) -> None:
            del statement, params
            raise RuntimeError("boom")

    engine = _FakeEngine(_FailingConnection())
    assert ping(engine, timeout_seconds=1.0) is False

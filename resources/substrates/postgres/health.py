"""Readiness check for the Postgres substrate."""

from __future__ import annotations

from sqlalchemy import Engine, text

from packages.tenancy_shared.logging import get_logger

_LOGGER = get_logger(__name__)

_SET_STATEMENT_TIMEOUT = text(
    "SELECT set_config('statement_timeout', :timeout_value, false)"
)
_PROBE = text("SELECT 1")


def ping(engine: Engine, *, timeout_seconds: float = 1.0) -> bool:
    """Run ``SELECT 1``; on Postgres the query is bounded by ``statement_timeout``.

    Any failure reports ``False`` rather than raising.
    """
    budget = f"{max(1, round(timeout_seconds * 1000))}ms"
    try:
        with engine.connect() as connection:
            if engine.dialect.name == "postgresql":
                connection.execute(_SET_STATEMENT_TIMEOUT, {"timeout_value": budget})
            connection.execute(_PROBE)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.debug("Postgres ping failed: exception_type=%s", type(exc).__name__)
        return False
    return True

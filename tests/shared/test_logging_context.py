"""Tests for structured logging context and formatters."""

from __future__ import annotations

import json
import logging

from packages.tenancy_shared.config import LoggingSettings
from packages.tenancy_shared.logging import (
    clear_context,
    configure_logging,
    get_context,
    log_context,
)
from packages.tenancy_shared.logging.config import ContextFilter, StructuredFormatter


def _record(message: str = "hello") -> logging.LogRecord:
    record = logging.LogRecord(
        name="tests.logging",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    ContextFilter().filter(record)
    return record


def test_log_context_is_scoped_to_block() -> None:
    """Fields bound in a block disappear when it exits."""
    clear_context()
    with log_context({"tenant_id": "tenant-a", "skipped": None}):
        inside = get_context()
    outside = get_context()

    assert inside == {"tenant_id": "tenant-a"}
    assert outside == {}


def test_json_output_includes_context_fields() -> None:
    """JSON lines carry core fields plus bound context."""
    clear_context()
    with log_context({"entry_id": "01ABC", "audit_action": "CREATE"}):
        record = _record("Settings audit write failed.")

    payload = json.loads(StructuredFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["message"] == "Settings audit write failed."
    assert payload["entry_id"] == "01ABC"
    assert payload["audit_action"] == "CREATE"


def test_text_output_appends_sorted_context() -> None:
    """Human-readable lines end with key=value pairs."""
    clear_context()
    with log_context({"scope": "tenant", "actor": "user-1"}):
        record = _record()

    line = StructuredFormatter(json_output=False).format(record)

    assert line.endswith("hello actor=user-1 scope=tenant")


def test_configure_logging_installs_single_stdout_handler() -> None:
    """Repeated configuration replaces rather than stacks handlers."""
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    try:
        configure_logging(LoggingSettings(level="DEBUG", json_output=False))
        configure_logging(LoggingSettings(level="WARNING"))

        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert get_context()["service"] == "tenancy"
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        clear_context()

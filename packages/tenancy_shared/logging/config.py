"""Root logger setup: one stdout handler with structured context fields."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from packages.tenancy_shared.config import LoggingSettings

from . import fields
from .context import bind_context, get_context


class ContextFilter(logging.Filter):
    """Attach the bound context fields to each record as ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = get_context()
        return True


class StructuredFormatter(logging.Formatter):
    """Render records as JSON lines or as text with trailing ``key=value`` pairs."""

    def __init__(self, *, json_output: bool = True) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        context = getattr(record, "context", None) or {}
        if self._json_output:
            return self._as_json(record, context)
        line = super().format(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={context[key]}" for key in sorted(context))
        return f"{line} {pairs}"

    def _as_json(self, record: logging.LogRecord, context: dict[str, str]) -> str:
        document: dict[str, object] = {
            fields.TIMESTAMP: datetime.fromtimestamp(record.created, UTC).isoformat(),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
            **context,
        }
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str, separators=(",", ":"))


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Replace root handlers with a single stdout handler.

    Calling this more than once never duplicates output. ``service`` and
    ``environment`` from settings are bound into the logging context.
    """
    resolved = settings or LoggingSettings()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(StructuredFormatter(json_output=resolved.json_output))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(resolved.level)

    bind_context(
        **{
            fields.SERVICE: resolved.service or None,
            fields.ENVIRONMENT: resolved.environment or None,
        }
    )


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)

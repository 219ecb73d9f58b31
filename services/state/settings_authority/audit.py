"""Tamper-evident, best-effort audit trail for settings changes."""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any, Callable, Protocol

from opentelemetry import metrics as otel_metrics
from sqlalchemy.exc import SQLAlchemyError

from packages.tenancy_shared.ids import generate_ulid_str
from packages.tenancy_shared.logging import fields, get_logger, log_context
from services.state.settings_authority.config import SettingsAuthorityConfig
from services.state.settings_authority.domain import (
    AuditAction,
    AuditIntegrityReport,
    AuditRecord,
    CallerContext,
    ClientContext,
)
from services.state.settings_authority.errors import StoreUnavailable, ValidationFailed
from services.state.settings_authority.interfaces import AuditRepository

_LOGGER = get_logger(__name__)

AUDIT_WRITE_FAILURES_METRIC = "settings_audit_write_failures_total"


class FailureCounter(Protocol):
    """Subset of the OTel counter API used for audit write failures."""

    def add(self, amount: int, attributes: dict[str, str] | None = None) -> None:
        """Increment the counter."""


class SettingsAuditLogger:
    """Append audit records without ever failing the primary operation."""

    def __init__(
        self,
        *,
        repository: AuditRepository,
        config: SettingsAuthorityConfig,
        failure_counter: FailureCounter | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._config = config
        self._failure_counter = failure_counter
        self._clock = clock or _utc_now

    def record(
        self,
        *,
        context: CallerContext,
        entry_id: str,
        action: AuditAction,
        before_value: Any = None,
        after_value: Any = None,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> bool:
        """Persist one audit record and return whether the append succeeded.

        Failures are logged with full traceback and counted on
        ``settings_audit_write_failures_total``; they never propagate.
        """
        try:
            audit_record = self.build_record(
                context=context,
                entry_id=entry_id,
                action=action,
                before_value=before_value,
                after_value=after_value,
                reason=reason,
                client=client,
            )
            self._repository.append(audit_record)
        except Exception:
            with log_context(
                {
                    fields.EVENT: fields.AUDIT_WRITE_FAILURE_EVENT,
                    fields.ENTRY_ID: entry_id,
                    fields.AUDIT_ACTION: action.value,
                    fields.SCOPE: context.scope.value,
                    fields.TENANT_ID: context.tenant_id or "",
                }
            ):
                _LOGGER.exception("Settings audit write failed.")
            self._count_failure(context=context, action=action)
            return False
        return True

    def build_record(
        self,
        *,
        context: CallerContext,
        entry_id: str,
        action: AuditAction,
        before_value: Any = None,
        after_value: Any = None,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> AuditRecord:
        """Assemble one sealed audit record for the given operation."""
        unknown = self._config.unknown_client_value
        client_ip = client.client_ip if client is not None else None
        client_agent = client.client_agent if client is not None else None
        draft = AuditRecord(
            id=generate_ulid_str(),
            entry_id=entry_id,
            scope=context.scope,
            tenant_id=context.tenant_id,
            action=action,
            actor=context.actor,
            before_value=before_value,
            after_value=after_value,
            reason=reason,
            client_ip=client_ip or unknown,
            client_agent=client_agent or unknown,
            created_at=self._clock(),
            digest="",
        )
        return draft.model_copy(update={"digest": compute_audit_digest(draft)})

    def query(
        self,
        *,
        context: CallerContext,
        entry_id: str | None = None,
        limit: int | None = None,
    ) -> list[AuditRecord]:
        """Return the caller's audit records, most recent first."""
        resolved = self.resolve_limit(limit)
        try:
            return self._repository.list_records(
                scope=context.scope,
                tenant_id=context.tenant_id,
                entry_id=entry_id,
                limit=resolved,
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailable(operation="query_audit") from exc

    def verify(
        self,
        *,
        context: CallerContext,
        entry_id: str | None = None,
        limit: int | None = None,
    ) -> AuditIntegrityReport:
        """Recompute digests for the caller's recent records."""
        records = self.query(context=context, entry_id=entry_id, limit=limit)
        invalid = [
            audit_record.id
            for audit_record in records
            if compute_audit_digest(audit_record) != audit_record.digest
        ]
        if invalid:
            _LOGGER.warning(
                "Audit digest mismatch: scope=%s invalid_count=%d",
                context.scope.value,
                len(invalid),
            )
        return AuditIntegrityReport(checked=len(records), invalid_record_ids=invalid)

    def resolve_limit(self, limit: int | None) -> int:
        """Apply the configured default and cap to one requested limit."""
        if limit is None:
            return self._config.default_audit_query_limit
        if limit <= 0:
            raise ValidationFailed(["limit must be greater than zero"])
        return min(limit, self._config.max_audit_query_limit)

    def _count_failure(self, *, context: CallerContext, action: AuditAction) -> None:
        counter = self._failure_counter or _default_failure_counter()
        try:
            counter.add(1, {"scope": context.scope.value, "action": action.value})
        except Exception:  # noqa: BLE001
            _LOGGER.warning("Failed to count audit write failure.", exc_info=True)


def compute_audit_digest(audit_record: AuditRecord) -> str:
    """Return SHA-256 hex over the canonical JSON of one record's content."""
    content = audit_record.model_dump(mode="json", exclude={"digest"})
    canonical = json.dumps(
        _canonical_numbers(content),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _canonical_numbers(value: Any) -> Any:
    """Write integral floats as ints, matching how JSONB hands numbers back.

    ``1e16`` stored in a JSONB column reads back as ``10000000000000000``.
    """
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {key: _canonical_numbers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_canonical_numbers(item) for item in value]
    return value


def _utc_now() -> datetime:
    return datetime.now(UTC)


@lru_cache(maxsize=1)
def _default_failure_counter() -> FailureCounter:
    """Create the OTel counter for failed audit appends."""
    meter = otel_metrics.get_meter(__name__)
    return meter.create_counter(
        name=AUDIT_WRITE_FAILURES_METRIC,
        description="Count of settings audit records that failed to persist.",
        unit="1",
    )

"""Concrete Settings Authority Service implementation."""

from __future__ import annotations

from typing import Any, Callable, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from packages.tenancy_shared.config import TenancySettings
from packages.tenancy_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    validate_meta,
)
from packages.tenancy_shared.errors import (
    ErrorDetail,
    codes,
    dependency_error,
    validation_error,
)
from packages.tenancy_shared.logging import get_logger, public_api_instrumented
from resources.substrates.postgres.errors import normalize_postgres_error
from services.state.settings_authority.audit import SettingsAuditLogger
from services.state.settings_authority.categories import categories_for
from services.state.settings_authority.component import SERVICE_COMPONENT_ID
from services.state.settings_authority.config import (
    SettingsAuthorityConfig,
    resolve_settings_authority_config,
)
from services.state.settings_authority.data import (
    PostgresAuditRepository,
    PostgresSettingsRepository,
    SettingsPostgresRuntime,
)
from services.state.settings_authority.domain import (
    AuditIntegrityReport,
    AuditRecord,
    CallerContext,
    ClientContext,
    ConfigurationEntry,
    HealthStatus,
    SettingUpdate,
    ValidationResult,
    ValidationSchema,
)
from services.state.settings_authority.errors import SettingsAuthorityError
from services.state.settings_authority.interfaces import (
    AuditRepository,
    SettingsRepository,
)
from services.state.settings_authority.schema_validation import validate_value
from services.state.settings_authority.service import SettingsAuthorityService
from services.state.settings_authority.store import SettingsStore
from services.state.settings_authority.validation import (
    AuditQueryRequest,
    CreateSettingRequest,
    EntryRequest,
    ListSettingsRequest,
    SettingLocatorRequest,
    UpdateSettingRequest,
)

_LOGGER = get_logger(__name__)

T = TypeVar("T")
TRequest = TypeVar("TRequest", bound=BaseModel)


class DefaultSettingsAuthorityService(SettingsAuthorityService):
    """Default implementation backed by the service-owned Postgres schema."""

    def __init__(
        self,
        *,
        config: SettingsAuthorityConfig,
        repository: SettingsRepository,
        audit_repository: AuditRepository,
        audit: SettingsAuditLogger | None = None,
    ) -> None:
        self._config = config
        self._repository = repository
        self._audit = audit or SettingsAuditLogger(
            repository=audit_repository, config=config
        )
        self._store = SettingsStore(
            repository=repository, audit=self._audit, config=config
        )

    @classmethod
    def from_settings(
        cls, settings: TenancySettings
    ) -> "DefaultSettingsAuthorityService":
        """Build the service from typed settings and owned resources."""
        runtime = SettingsPostgresRuntime.from_settings(settings)
        return cls(
            config=resolve_settings_authority_config(settings),
            repository=PostgresSettingsRepository(runtime.schema_sessions),
            audit_repository=PostgresAuditRepository(runtime.schema_sessions),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return readiness based on owned settings store availability."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            self._repository.ping()
        except Exception as exc:  # noqa: BLE001
            if _is_postgres_error(exc):
                return failure(meta=meta, errors=[normalize_postgres_error(exc)])
            return self._dependency_failure(meta=meta, operation="health", exc=exc)
        return success(
            meta=meta,
            payload=HealthStatus(service_ready=True, substrate_ready=True, detail="ok"),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("category",),
    )
    def list_settings(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        category: str | None = None,
    ) -> Envelope[list[ConfigurationEntry]]:
        """List active settings for the caller's scope and tenant."""
        request, errors = self._validate_request(
            meta=meta, model=ListSettingsRequest, payload={"category": category}
        )
        if request is None:
            return failure(meta=meta, errors=errors)

        return self._run(
            meta=meta,
            operation="list_settings",
            call=lambda: self._store.list_entries(
                context=context, category=request.category
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("category", "key"),
    )
    def get_setting(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        category: str,
        key: str,
        client: ClientContext | None = None,
    ) -> Envelope[ConfigurationEntry]:
        """Read one active setting by category and key."""
        request, errors = self._validate_request(
            meta=meta,
            model=SettingLocatorRequest,
            payload={"category": category, "key": key},
        )
        if request is None:
            return failure(meta=meta, errors=errors)

        return self._run(
            meta=meta,
            operation="get_setting",
            call=lambda: self._store.get_entry(
                context=context,
                category=request.category,
                key=request.key,
                client=client,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("category", "key"),
    )
    def create_setting(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        category: str,
        key: str,
        value: Any,
        validation_schema: ValidationSchema | Mapping[str, Any] | None = None,
        description: str | None = None,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> Envelope[ConfigurationEntry]:
        """Create one setting after category and schema validation."""
        request, errors = self._validate_request(
            meta=meta,
            model=CreateSettingRequest,
            payload={
                "category": category,
                "key": key,
                "value": value,
                "validation_schema": validation_schema,
                "description": description,
                "reason": reason,
            },
        )
        if request is None:
            return failure(meta=meta, errors=errors)

        return self._run(
            meta=meta,
            operation="create_setting",
            call=lambda: self._store.create_entry(
                context=context,
                category=request.category,
                key=request.key,
                value=request.value,
                validation_schema=request.validation_schema,
                description=request.description,
                reason=request.reason,
                client=client,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("entry_id",),
    )
    def update_setting(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        entry_id: str,
        update: SettingUpdate,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> Envelope[ConfigurationEntry]:
        """Apply a partial update to one owned setting."""
        request, errors = self._validate_request(
            meta=meta,
            model=UpdateSettingRequest,
            payload={"entry_id": entry_id, "update": update, "reason": reason},
        )
        if request is None:
            return failure(meta=meta, errors=errors)

        return self._run(
            meta=meta,
            operation="update_setting",
            call=lambda: self._store.update_entry(
                context=context,
                entry_id=request.entry_id,
                update=request.update,
                reason=request.reason,
                client=client,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("entry_id",),
    )
    def delete_setting(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        entry_id: str,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> Envelope[bool]:
        """Soft-delete one owned setting."""
        request, errors = self._validate_request(
            meta=meta,
            model=EntryRequest,
            payload={"entry_id": entry_id, "reason": reason},
        )
        if request is None:
            return failure(meta=meta, errors=errors)

        def _delete() -> bool:
            self._store.soft_delete(
                context=context,
                entry_id=request.entry_id,
                reason=request.reason,
                client=client,
            )
            return True

        return self._run(meta=meta, operation="delete_setting", call=_delete)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("entry_id",),
    )
    def query_audit(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        entry_id: str | None = None,
        limit: int | None = None,
    ) -> Envelope[list[AuditRecord]]:
        """Return the caller's audit records, most recent first."""
        request, errors = self._validate_request(
            meta=meta,
            model=AuditQueryRequest,
            payload={"entry_id": entry_id, "limit": limit},
        )
        if request is None:
            return failure(meta=meta, errors=errors)

        return self._run(
            meta=meta,
            operation="query_audit",
            call=lambda: self._audit.query(
                context=context, entry_id=request.entry_id, limit=request.limit
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("entry_id",),
    )
    def verify_audit(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        entry_id: str | None = None,
        limit: int | None = None,
    ) -> Envelope[AuditIntegrityReport]:
        """Recompute digests for the caller's recent audit records."""
        request, errors = self._validate_request(
            meta=meta,
            model=AuditQueryRequest,
            payload={"entry_id": entry_id, "limit": limit},
        )
        if request is None:
            return failure(meta=meta, errors=errors)

        return self._run(
            meta=meta,
            operation="verify_audit",
            call=lambda: self._audit.verify(
                context=context, entry_id=request.entry_id, limit=request.limit
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def seed_defaults(
        self,
        *,
        meta: EnvelopeMeta,
        context: CallerContext,
        client: ClientContext | None = None,
    ) -> Envelope[list[ConfigurationEntry]]:
        """Create missing built-in settings for the caller's scope."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="seed_defaults",
            call=lambda: self._store.seed_defaults(context=context, client=client),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def validate_value(
        self,
        *,
        meta: EnvelopeMeta,
        value: Any,
        validation_schema: ValidationSchema | Mapping[str, Any] | None,
    ) -> Envelope[ValidationResult]:
        """Validate a candidate value without persisting anything."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=validate_value(value, validation_schema))

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def list_categories(
        self, *, meta: EnvelopeMeta, context: CallerContext
    ) -> Envelope[list[str]]:
        """Return the categories allowed for the caller's scope."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        return success(meta=meta, payload=sorted(categories_for(context.scope)))

    def _run(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        call: Callable[[], T],
    ) -> Envelope[T]:
        """Run one store call and map its outcome into an envelope."""
        try:
            payload = call()
        except SettingsAuthorityError as exc:
            return failure(meta=meta, errors=exc.to_errors())
        except Exception as exc:  # noqa: BLE001
            if _is_postgres_error(exc):
                return failure(meta=meta, errors=[normalize_postgres_error(exc)])
            return self._dependency_failure(meta=meta, operation=operation, exc=exc)
        return success(meta=meta, payload=payload)

    def _validate_request(
        self,
        *,
        meta: EnvelopeMeta,
        model: type[TRequest],
        payload: dict[str, Any] | None,
    ) -> tuple[TRequest | None, list[ErrorDetail]]:
        """Validate envelope metadata and request payload model.

        The request is ``None`` exactly when errors are returned.
        """
        errors = validate_meta(meta)
        if errors:
            return None, errors

        data = payload or {}
        try:
            request = model.model_validate(data)
        except ValidationError as exc:
            return None, [
                validation_error(
                    f"request validation failed: {err['msg']}",
                    code=codes.INVALID_ARGUMENT,
                    metadata={"field": ".".join(str(p) for p in err["loc"])},
                )
                for err in exc.errors()
            ]

        return request, []

    def _dependency_failure(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        exc: Exception,
    ) -> Envelope[Any]:
        """Map one dependency/runtime exception into structured envelope errors."""
        _LOGGER.warning(
            "%s failed due to dependency error: exception_type=%s",
            operation,
            type(exc).__name__,
            exc_info=exc,
        )
        return failure(
            meta=meta,
            errors=[
                dependency_error(
                    f"{operation} failed",
                    code=codes.DEPENDENCY_FAILURE,
                    metadata={"exception_type": type(exc).__name__},
                )
            ],
        )


def _is_postgres_error(exc: Exception) -> bool:
    """Return whether one exception appears to originate from Postgres stack."""
    module = type(exc).__module__
    return module.startswith("sqlalchemy") or module.startswith("psycopg")

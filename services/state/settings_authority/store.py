"""Scoped settings store with validation, isolation, and audit hooks."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from packages.tenancy_shared.logging import get_logger
from resources.substrates.postgres.errors import is_unique_violation
from services.state.settings_authority.audit import SettingsAuditLogger
from services.state.settings_authority.categories import is_valid_category
from services.state.settings_authority.config import SettingsAuthorityConfig
from services.state.settings_authority.defaults import default_templates
from services.state.settings_authority.domain import (
    AuditAction,
    CallerContext,
    ClientContext,
    ConfigurationEntry,
    SettingUpdate,
    ValidationSchema,
)
from services.state.settings_authority.errors import (
    CategoryInvalid,
    ConcurrentModification,
    DuplicateKey,
    Forbidden,
    NotFound,
    StoreUnavailable,
    ValidationFailed,
)
from services.state.settings_authority.interfaces import SettingsRepository
from services.state.settings_authority.schema_validation import validate_value

_LOGGER = get_logger(__name__)

REASON_CREATED = "Setting created"
REASON_UPDATED = "Setting updated"
REASON_DELETED = "Setting deleted"
REASON_VIEWED = "Setting viewed"
REASON_SEEDED = "Default setting seeded"

# Conditional writes that keep losing to other writers give up after this.
WRITE_ATTEMPTS = 3


class SettingsStore:
    """CRUD over scoped entries; every mutation attempts one audit append."""

    def __init__(
        self,
        *,
        repository: SettingsRepository,
        audit: SettingsAuditLogger,
        config: SettingsAuthorityConfig,
    ) -> None:
        self._repository = repository
        self._audit = audit
        self._config = config

    def list_entries(
        self, *, context: CallerContext, category: str | None = None
    ) -> list[ConfigurationEntry]:
        """Return active entries visible to the caller."""
        with _store_call("list_settings"):
            return self._repository.list_entries(
                scope=context.scope,
                tenant_id=context.tenant_id,
                category=category,
            )

    def get_entry(
        self,
        *,
        context: CallerContext,
        category: str,
        key: str,
        client: ClientContext | None = None,
    ) -> ConfigurationEntry:
        """Return one active entry or raise ``NotFound``."""
        with _store_call("get_setting"):
            entry = self._repository.find_active(
                scope=context.scope,
                tenant_id=context.tenant_id,
                category=category,
                key=key,
            )
        if entry is None:
            raise NotFound(category=category, key=key)
        if self._config.record_views:
            self._audit.record(
                context=context,
                entry_id=entry.id,
                action=AuditAction.VIEW,
                reason=REASON_VIEWED,
                client=client,
            )
        return entry

    def create_entry(
        self,
        *,
        context: CallerContext,
        category: str,
        key: str,
        value: Any,
        validation_schema: ValidationSchema | None = None,
        description: str | None = None,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> ConfigurationEntry:
        """Validate, persist, and audit one new entry."""
        if not is_valid_category(context.scope, category):
            raise CategoryInvalid(scope=context.scope.value, category=category)

        if validation_schema is not None:
            result = validate_value(value, validation_schema)
            if not result.valid:
                raise ValidationFailed(result.errors)

        with _store_call("create_setting"):
            existing = self._repository.find_active(
                scope=context.scope,
                tenant_id=context.tenant_id,
                category=category,
                key=key,
            )
            if existing is not None:
                raise DuplicateKey(category=category, key=key)
            try:
                entry = self._repository.insert_entry(
                    scope=context.scope,
                    tenant_id=context.tenant_id,
                    category=category,
                    key=key,
                    value=value,
                    validation_schema=(
                        None
                        if validation_schema is None
                        else validation_schema.to_document()
                    ),
                    description=description,
                    actor=context.actor,
                )
            except IntegrityError as exc:
                if is_unique_violation(exc):
                    raise DuplicateKey(category=category, key=key) from exc
                raise

        self._audit.record(
            context=context,
            entry_id=entry.id,
            action=AuditAction.CREATE,
            after_value=entry.value,
            reason=reason or REASON_CREATED,
            client=client,
        )
        return entry

    def update_entry(
        self,
        *,
        context: CallerContext,
        entry_id: str,
        update: SettingUpdate,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> ConfigurationEntry:
        """Apply a partial update to one owned entry.

        The write is conditioned on the ``updated_at`` that was read, so the
        validated schema and the audited before-value always describe the row
        actually replaced. A lost race reloads and re-validates.
        """
        if not update.model_fields_set:
            raise ValidationFailed(["update must change at least one field"])

        for _ in range(WRITE_ATTEMPTS):
            current = self._load_owned(context=context, entry_id=entry_id)
            changes = self._checked_changes(current=current, update=update)
            with _store_call("update_setting"):
                updated = self._repository.update_entry(
                    scope=context.scope,
                    tenant_id=context.tenant_id,
                    entry_id=entry_id,
                    changes=changes,
                    actor=context.actor,
                    expected_updated_at=current.updated_at,
                )
            if updated is not None:
                break
            _LOGGER.info(
                "Setting changed during update, retrying: entry_id=%s", entry_id
            )
        else:
            raise ConcurrentModification(entry_id=entry_id)

        self._audit.record(
            context=context,
            entry_id=updated.id,
            action=AuditAction.UPDATE,
            before_value=current.value,
            after_value=updated.value,
            reason=reason or REASON_UPDATED,
            client=client,
        )
        return updated

    def soft_delete(
        self,
        *,
        context: CallerContext,
        entry_id: str,
        reason: str | None = None,
        client: ClientContext | None = None,
    ) -> None:
        """Deactivate one owned entry; history is kept."""
        for _ in range(WRITE_ATTEMPTS):
            current = self._load_owned(context=context, entry_id=entry_id)
            with _store_call("delete_setting"):
                deleted = self._repository.deactivate_entry(
                    scope=context.scope,
                    tenant_id=context.tenant_id,
                    entry_id=entry_id,
                    actor=context.actor,
                    expected_updated_at=current.updated_at,
                )
            if deleted is not None:
                break
            _LOGGER.info(
                "Setting changed during delete, retrying: entry_id=%s", entry_id
            )
        else:
            raise ConcurrentModification(entry_id=entry_id)

        self._audit.record(
            context=context,
            entry_id=current.id,
            action=AuditAction.DELETE,
            before_value=current.value,
            reason=reason or REASON_DELETED,
            client=client,
        )

    def seed_defaults(
        self,
        *,
        context: CallerContext,
        client: ClientContext | None = None,
    ) -> list[ConfigurationEntry]:
        """Create each built-in template the caller does not have yet."""
        created: list[ConfigurationEntry] = []
        for template in default_templates(context.scope):
            try:
                entry = self.create_entry(
                    context=context,
                    category=template.category,
                    key=template.key,
                    value=template.value,
                    validation_schema=template.validation_schema,
                    description=template.description,
                    reason=REASON_SEEDED,
                    client=client,
                )
            except DuplicateKey:
                _LOGGER.debug(
                    "Default setting already present: category=%s key=%s",
                    template.category,
                    template.key,
                )
                continue
            created.append(entry)
        return created

    @staticmethod
    def _checked_changes(
        *, current: ConfigurationEntry, update: SettingUpdate
    ) -> dict[str, Any]:
        """Merge ``update`` onto ``current`` and validate the resulting value."""
        changes: dict[str, Any] = {}
        new_value = update.value if update.supplied("value") else current.value
        new_schema = (
            update.validation_schema
            if update.supplied("validation_schema")
            else current.validation_schema
        )
        if update.supplied("value"):
            changes["value"] = new_value
        if update.supplied("validation_schema"):
            changes["schema"] = None if new_schema is None else new_schema.to_document()
        if update.supplied("description"):
            changes["description"] = update.description

        if new_schema is not None and (
            update.supplied("value") or update.supplied("validation_schema")
        ):
            result = validate_value(new_value, new_schema)
            if not result.valid:
                raise ValidationFailed(result.errors)
        return changes

    def _load_owned(
        self, *, context: CallerContext, entry_id: str
    ) -> ConfigurationEntry:
        """Load one active entry by id and enforce tenant ownership."""
        with _store_call("load_setting"):
            entry = self._repository.get_entry(scope=context.scope, entry_id=entry_id)
        if entry is None or not entry.active:
            raise NotFound(entry_id=entry_id)
        if entry.tenant_id != context.tenant_id:
            raise Forbidden(entry_id=entry_id)
        return entry


@contextmanager
def _store_call(operation: str) -> Iterator[None]:
    """Translate storage-layer exceptions into ``StoreUnavailable``."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreUnavailable(operation=operation) from exc

"""SQL repository tests against an in-memory SQLite database."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from packages.tenancy_shared.ids import generate_ulid_bytes, generate_ulid_str
from resources.substrates.postgres.errors import is_unique_violation
from resources.substrates.postgres.session import (
    create_session_factory,
    transactional_session,
)
from services.state.settings_authority.audit import compute_audit_digest
from services.state.settings_authority.data import (
    PostgresAuditRepository,
    PostgresSettingsRepository,
)
from services.state.settings_authority.data.schema import (
    metadata,
    platform_settings_audit,
)
from services.state.settings_authority.domain import (
    AuditAction,
    AuditRecord,
    SettingScope,
)


class _SqliteSessions:
    """Session provider without the Postgres-only ``search_path`` pin."""

    def __init__(self) -> None:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        metadata.create_all(engine)
        self._factory = create_session_factory(engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        with transactional_session(self._factory) as db:
            yield db


@pytest.fixture
def sessions() -> _SqliteSessions:
    return _SqliteSessions()


@pytest.fixture
def repository(sessions: _SqliteSessions) -> PostgresSettingsRepository:
    return PostgresSettingsRepository(sessions)  # type: ignore[arg-type]


@pytest.fixture
def audit_repository(sessions: _SqliteSessions) -> PostgresAuditRepository:
    return PostgresAuditRepository(sessions)  # type: ignore[arg-type]


def _insert(
    repository: PostgresSettingsRepository,
    *,
    scope: SettingScope = SettingScope.TENANT,
    tenant_id: str | None = "tenant-a",
    category: str = "complaint-rules",
    key: str = "auto-assignment",
    value: object = None,
    validation_schema: dict | None = None,
):
    return repository.insert_entry(
        scope=scope,
        tenant_id=tenant_id,
        category=category,
        key=key,
        value={"enabled": True} if value is None else value,
        validation_schema=validation_schema,
        description="auto assignment",
        actor="user-1",
    )


def _audit_record(
    *,
    entry_id: str,
    action: AuditAction,
    created_at: datetime,
    scope: SettingScope = SettingScope.TENANT,
    tenant_id: str | None = "tenant-a",
) -> AuditRecord:
    draft = AuditRecord(
        id=generate_ulid_str(),
        entry_id=entry_id,
        scope=scope,
        tenant_id=tenant_id,
        action=action,
        actor="user-1",
        before_value=None,
        after_value={"enabled": True},
        reason="test",
        client_ip="unknown",
        client_agent="unknown",
        created_at=created_at,
        digest="",
    )
    return draft.model_copy(update={"digest": compute_audit_digest(draft)})


def test_insert_round_trips_entry_fields(
    repository: PostgresSettingsRepository,
) -> None:
    """Inserted rows map back to complete domain entries."""
    entry = _insert(
        repository,
        validation_schema={"type": "object", "required": True},
    )

    loaded = repository.get_entry(scope=SettingScope.TENANT, entry_id=entry.id)

    assert loaded is not None
    assert loaded.id == entry.id
    assert loaded.tenant_id == "tenant-a"
    assert loaded.value == {"enabled": True}
    assert loaded.validation_schema is not None
    assert loaded.validation_schema.type == "object"
    assert loaded.validation_schema.required is True
    assert loaded.active is True
    assert loaded.created_at.tzinfo is not None


def test_entry_without_schema_reads_back_as_none(
    repository: PostgresSettingsRepository,
) -> None:
    """A missing schema is stored as SQL NULL."""
    entry = _insert(repository, value=42)

    loaded = repository.get_entry(scope=SettingScope.TENANT, entry_id=entry.id)

    assert loaded is not None
    assert loaded.validation_schema is None
    assert loaded.value == 42


def test_active_key_uniqueness_is_enforced_by_index(
    repository: PostgresSettingsRepository,
) -> None:
    """The partial unique index rejects a second active row."""
    _insert(repository)

    with pytest.raises(IntegrityError) as exc_info:
        _insert(repository)

    assert is_unique_violation(exc_info.value)


def test_deactivated_key_can_be_reused(
    repository: PostgresSettingsRepository,
) -> None:
    """Only active rows participate in key uniqueness."""
    first = _insert(repository)
    repository.deactivate_entry(
        scope=SettingScope.TENANT,
        tenant_id="tenant-a",
        entry_id=first.id,
        actor="user-1",
    )

    second = _insert(repository)
    found = repository.find_active(
        scope=SettingScope.TENANT,
        tenant_id="tenant-a",
        category="complaint-rules",
        key="auto-assignment",
    )

    assert found is not None
    assert found.id == second.id
    previous = repository.get_entry(scope=SettingScope.TENANT, entry_id=first.id)
    assert previous is not None
    assert previous.active is False


def test_same_key_in_two_tenants_and_platform_coexists(
    repository: PostgresSettingsRepository,
) -> None:
    """Scope and tenant are part of the uniqueness key."""
    _insert(repository, tenant_id="tenant-a")
    _insert(repository, tenant_id="tenant-b")
    _insert(
        repository,
        scope=SettingScope.PLATFORM,
        tenant_id=None,
        category="document-templates",
        key="auto-assignment",
    )

    tenant_a = repository.list_entries(
        scope=SettingScope.TENANT, tenant_id="tenant-a", category=None
    )
    platform = repository.list_entries(
        scope=SettingScope.PLATFORM, tenant_id=None, category=None
    )

    assert [e.tenant_id for e in tenant_a] == ["tenant-a"]
    assert [(e.category, e.tenant_id) for e in platform] == [
        ("document-templates", None)
    ]


def test_list_orders_and_filters_by_category(
    repository: PostgresSettingsRepository,
) -> None:
    """Listing is ordered by category then key."""
    _insert(repository, category="product-defaults", key="warranty")
    _insert(repository, category="complaint-rules", key="sla")
    _insert(repository, category="complaint-rules", key="escalation")

    listed = repository.list_entries(
        scope=SettingScope.TENANT, tenant_id="tenant-a", category=None
    )
    filtered = repository.list_entries(
        scope=SettingScope.TENANT, tenant_id="tenant-a", category="complaint-rules"
    )

    assert [(e.category, e.key) for e in listed] == [
        ("complaint-rules", "escalation"),
        ("complaint-rules", "sla"),
        ("product-defaults", "warranty"),
    ]
    assert [e.key for e in filtered] == ["escalation", "sla"]


def test_repeated_list_without_writes_is_identical(
    repository: PostgresSettingsRepository,
) -> None:
    """Two reads with no write between return equal, equally ordered rows."""
    _insert(repository, category="product-defaults", key="warranty")
    _insert(repository, category="complaint-rules", key="sla")
    _insert(repository, scope=SettingScope.PLATFORM, tenant_id=None, key="global")

    first = repository.list_entries(
        scope=SettingScope.TENANT, tenant_id="tenant-a", category=None
    )
    second = repository.list_entries(
        scope=SettingScope.TENANT, tenant_id="tenant-a", category=None
    )

    assert first == second
    assert [e.key for e in first] == ["sla", "warranty"]


def test_update_requires_owner_and_active_row(
    repository: PostgresSettingsRepository,
) -> None:
    """Updates only touch active rows owned by the given tenant."""
    entry = _insert(repository)

    foreign = repository.update_entry(
        scope=SettingScope.TENANT,
        tenant_id="tenant-b",
        entry_id=entry.id,
        changes={"value": {"enabled": False}},
        actor="intruder",
    )
    updated = repository.update_entry(
        scope=SettingScope.TENANT,
        tenant_id="tenant-a",
        entry_id=entry.id,
        changes={"value": {"enabled": False}, "schema": {"type": "object"}},
        actor="user-2",
    )

    assert foreign is None
    assert updated is not None
    assert updated.value == {"enabled": False}
    assert updated.validation_schema is not None
    assert updated.validation_schema.type == "object"
    assert updated.last_modified_by == "user-2"


def test_update_missing_entry_returns_none(
    repository: PostgresSettingsRepository,
) -> None:
    """Unknown ids affect no rows."""
    result = repository.update_entry(
        scope=SettingScope.PLATFORM,
        tenant_id=None,
        entry_id=generate_ulid_str(),
        changes={"description": "x"},
        actor="root",
    )

    assert result is None


def test_audit_records_list_newest_first_per_tenant(
    audit_repository: PostgresAuditRepository,
) -> None:
    """Audit listing is tenant-scoped, ordered, and limited."""
    entry_id = generate_ulid_str()
    base = datetime(2026, 3, 1, tzinfo=UTC)
    for offset, action in enumerate(
        (AuditAction.CREATE, AuditAction.UPDATE, AuditAction.DELETE)
    ):
        audit_repository.append(
            _audit_record(
                entry_id=entry_id,
                action=action,
                created_at=base + timedelta(minutes=offset),
            )
        )
    audit_repository.append(
        _audit_record(
            entry_id=entry_id,
            action=AuditAction.CREATE,
            created_at=base,
            tenant_id="tenant-b",
        )
    )

    records = audit_repository.list_records(
        scope=SettingScope.TENANT, tenant_id="tenant-a", entry_id=entry_id, limit=2
    )

    assert [r.action for r in records] == [AuditAction.DELETE, AuditAction.UPDATE]
    assert {r.tenant_id for r in records} == {"tenant-a"}


def test_audit_digest_survives_storage_round_trip(
    audit_repository: PostgresAuditRepository,
) -> None:
    """Stored records verify against their digest after reload."""
    record = _audit_record(
        entry_id=generate_ulid_str(),
        action=AuditAction.CREATE,
        created_at=datetime(2026, 3, 1, 12, 30, tzinfo=UTC),
        scope=SettingScope.PLATFORM,
        tenant_id=None,
    )
    audit_repository.append(record)

    (loaded,) = audit_repository.list_records(
        scope=SettingScope.PLATFORM, tenant_id=None, entry_id=None, limit=10
    )

    assert loaded == record
    assert compute_audit_digest(loaded) == loaded.digest


def test_audit_action_check_constraint(
    sessions: _SqliteSessions,
) -> None:
    """Unknown audit actions are rejected by the table constraint."""
    with pytest.raises(IntegrityError):
        with sessions.session() as session:
            session.execute(
                insert(platform_settings_audit).values(
                    id=generate_ulid_bytes(),
                    setting_id=generate_ulid_bytes(),
                    action="PURGE",
                    actor="root",
                    client_ip="unknown",
                    client_agent="unknown",
                    created_at=datetime.now(UTC),
                    digest="0" * 64,
                )
            )


def test_conditional_update_rejects_stale_stamp(
    repository: PostgresSettingsRepository,
) -> None:
    """A write based on an outdated read affects no rows."""
    entry = _insert(repository, value={"n": 1})
    first = repository.update_entry(
        scope=SettingScope.TENANT,
        tenant_id="tenant-a",
        entry_id=entry.id,
        changes={"value": {"n": 2}},
        actor="user-2",
        expected_updated_at=entry.updated_at,
    )
    assert first is not None
    assert first.updated_at > entry.updated_at

    stale = repository.update_entry(
        scope=SettingScope.TENANT,
        tenant_id="tenant-a",
        entry_id=entry.id,
        changes={"value": {"n": 3}},
        actor="user-3",
        expected_updated_at=entry.updated_at,
    )
    stale_delete = repository.deactivate_entry(
        scope=SettingScope.TENANT,
        tenant_id="tenant-a",
        entry_id=entry.id,
        actor="user-3",
        expected_updated_at=entry.updated_at,
    )
    current = repository.deactivate_entry(
        scope=SettingScope.TENANT,
        tenant_id="tenant-a",
        entry_id=entry.id,
        actor="user-3",
        expected_updated_at=first.updated_at,
    )

    assert stale is None
    assert stale_delete is None
    assert current is not None
    assert current.value == {"n": 2}
    assert current.active is False

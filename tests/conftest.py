"""
Pytest fixtures for the test suite.

Core tests (reconciliation, lookup, serializer) run against the in-memory
permission store. Data-layer tests use a throwaway SQLite file per test
(aiosqlite), so concurrent sessions see the same database.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest
import pytest_asyncio

from fieldguard.content.loader import parse_schema_config
from fieldguard.content.registry import SchemaRegistry
from fieldguard.db.init_db import init_db
from fieldguard.db.session import build_engine, build_session_factory
from fieldguard.permissions.lookup import PermissionLookup
from fieldguard.permissions.reconcile import ReconciliationEngine
from fieldguard.permissions.serializer import FilteringSerializer
from fieldguard.permissions.store import InMemoryPermissionStore
from fieldguard.schemas.permissions import PermissionRecord
from fieldguard.security.context import RoleContext


PUBLIC = RoleContext(id=1, name="Public", type="public")
READER = RoleContext(id=2, name="Reader", type="authenticated")

ARTICLE_SCHEMA: dict[str, Any] = {
    "models": {
        "Article": {
            "attributes": {
                "title": {"type": "string"},
                "secret": {"type": "text", "private": True},
                "author": {"model": "User", "via": "articles"},
            }
        },
        "User": {
            "attributes": {
                "username": {"type": "string"},
                "email": {"type": "email", "private": True},
                "articles": {"collection": "Article", "via": "author"},
            }
        },
    },
    "plugins": {
        "upload": {
            "File": {
                "attributes": {
                    "name": {"type": "string"},
                    "hash": {"type": "string", "private": True},
                }
            }
        }
    },
}


class FakeRoleSource:
    """In-memory RoleSource: the first role of type "public" is the public role."""

    def __init__(self, roles: list[RoleContext]) -> None:
        self._roles = roles

    async def public_role(self) -> RoleContext:
        return next(role for role in self._roles if role.is_public)

    async def list_roles(self) -> list[RoleContext]:
        return list(self._roles)


class RecordingStore(InMemoryPermissionStore):
    """Counts every write so tests can assert on store traffic."""

    def __init__(self, records: list[PermissionRecord] | None = None) -> None:
        super().__init__(records or [])
        self.writes: list[tuple[str, PermissionRecord]] = []

    async def create(self, record: PermissionRecord) -> PermissionRecord:
        self.writes.append(("create", record))
        return await super().create(record)

    async def update(self, record: PermissionRecord) -> PermissionRecord:
        self.writes.append(("update", record))
        return await super().update(record)

    async def delete(self, record: PermissionRecord) -> None:
        self.writes.append(("delete", record))
        await super().delete(record)


async def set_enabled(
    store: InMemoryPermissionStore,
    filters: Mapping[str, Any],
    enabled: bool,
) -> PermissionRecord:
    record = await store.find_one(filters)
    assert record is not None, f"no permission matching {dict(filters)}"
    return await store.update(record.model_copy(update={"enabled": enabled}))


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry(parse_schema_config(ARTICLE_SCHEMA))


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def roles() -> FakeRoleSource:
    return FakeRoleSource([PUBLIC, READER])


@pytest.fixture
def engine_under_test(registry, store) -> ReconciliationEngine:
    return ReconciliationEngine(registry, store)


@pytest.fixture
def lookup(registry, store, roles) -> PermissionLookup:
    return PermissionLookup(registry, store, roles)


@pytest.fixture
def serializer(registry, lookup) -> FilteringSerializer:
    return FilteringSerializer(registry, lookup)


@pytest_asyncio.fixture
async def reconciled(engine_under_test, store, roles) -> RecordingStore:
    """Store after one reconciliation pass for every role."""
    await engine_under_test.reconcile(await roles.list_roles())
    store.writes.clear()
    return store


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite file database for each test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'fieldguard-test.db'}")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    """Session factory bound to the test DB, with tables created and default roles seeded."""
    factory = build_session_factory(db_engine)
    await init_db(db_engine, factory)
    return factory

"""
Interfaces the permission core depends on.

The reconciliation engine, permission lookup and filtering serializer take
these as constructor arguments; nothing in the core reaches for a global
service registry.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol, TypeVar, runtime_checkable

from fieldguard.content.schema import AssociationDef, AttributeDef, ModelSchema
from fieldguard.schemas.permissions import PermissionRecord
from fieldguard.security.context import RoleContext

T = TypeVar("T")

# Keys accepted by PermissionStore filters.
FILTER_KEYS = frozenset({"id", "role", "type", "model", "scope", "attribute", "enabled"})


@runtime_checkable
class SchemaProvider(Protocol):
    async def get_model(self, name: str, plugin: str | None = None) -> ModelSchema:
        """Resolve a model; raises ``SchemaNotFound`` if it does not exist."""
        ...

    def attributes(self, model: ModelSchema) -> Mapping[str, AttributeDef]: ...

    def associations(self, model: ModelSchema) -> tuple[AssociationDef, ...]: ...

    def is_attribute_private(self, model: ModelSchema, attribute: str) -> bool: ...

    def for_each_model(self, fn: Callable[[ModelSchema], T]) -> list[T]:
        """Apply ``fn`` to every model across all namespaces."""
        ...


@runtime_checkable
class PermissionStore(Protocol):
    """
    Keyed record store for permission records.

    Filters are exact-match mappings over ``FILTER_KEYS``; a ``None`` value
    matches records where the field is unset. Implementations must tolerate
    concurrent calls from many asyncio tasks.
    """

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        start: int = 0,
        limit: int | None = None,
        sort: str | None = None,
    ) -> list[PermissionRecord]: ...

    async def find_one(self, filters: Mapping[str, Any]) -> PermissionRecord | None: ...

    async def count(self, filters: Mapping[str, Any] | None = None) -> int: ...

    async def create(self, record: PermissionRecord) -> PermissionRecord: ...

    async def update(self, record: PermissionRecord) -> PermissionRecord: ...

    async def delete(self, record: PermissionRecord) -> None: ...


@runtime_checkable
class RoleSource(Protocol):
    async def public_role(self) -> RoleContext: ...

    async def list_roles(self) -> list[RoleContext]: ...

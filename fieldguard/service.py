from __future__ import annotations

import logging
from typing import Any

from fieldguard.permissions.lookup import PermissionLookup
from fieldguard.permissions.protocols import PermissionStore, SchemaProvider
from fieldguard.permissions.reconcile import ReconciliationEngine, ReconciliationReport
from fieldguard.permissions.serializer import DEFAULT_MAX_DEPTH, FieldPolicy, FilteringSerializer, allow_field
from fieldguard.permissions.values import to_value
from fieldguard.security.auth import RoleResolver
from fieldguard.security.context import CallerContext

logger = logging.getLogger(__name__)


class FieldGuard:
    """
    Wires the permission core to its collaborators.

    One instance lives on ``app.state.guard`` for the lifetime of the process.
    """

    def __init__(
        self,
        *,
        schema: SchemaProvider,
        store: PermissionStore,
        roles: RoleResolver,
        field_policy: FieldPolicy = allow_field,
        max_depth: int = DEFAULT_MAX_DEPTH,
        timeout: float | None = None,
    ) -> None:
        self.schema = schema
        self.store = store
        self.roles = roles
        self.lookup = PermissionLookup(schema, store, roles)
        self.engine = ReconciliationEngine(schema, store)
        self.serializer = FilteringSerializer(
            schema,
            self.lookup,
            field_policy=field_policy,
            max_depth=max_depth,
            timeout=timeout,
        )

    async def reconcile(self) -> ReconciliationReport:
        """Reconcile permissions for every stored role."""
        roles = await self.roles.list_roles()
        logger.info("Reconciling attribute permissions for %d roles", len(roles))
        return await self.engine.reconcile(roles)

    async def serialize(self, ctx: CallerContext, raw: Any) -> Any | None:
        """
        Filter data-layer output for the caller described by ``ctx``.

        ``None`` means the caller may not see the resource at all; HTTP
        callers must answer 404, not an empty success.
        """

        role = await self.roles.resolve_caller_role(ctx)
        return await self.serializer.serialize(role, to_value(raw))

from __future__ import annotations

import logging

from fieldguard.content.schema import ModelSchema
from fieldguard.permissions.protocols import PermissionStore, RoleSource, SchemaProvider
from fieldguard.schemas.permissions import ATTRIBUTE_SCOPE, MODEL_SCOPE, PermissionRecord
from fieldguard.security.context import RoleContext

logger = logging.getLogger(__name__)


class PermissionLookup:
    """
    Resolve the single permission record for (role, model[, attribute]).

    Every call re-queries the store; records are never cached, so lookups
    always observe the latest reconciliation.
    """

    def __init__(self, schema: SchemaProvider, store: PermissionStore, roles: RoleSource) -> None:
        self._schema = schema
        self._store = store
        self._roles = roles

    async def effective_role(self, role: RoleContext | None) -> RoleContext:
        """Callers without a bound role act as the public role."""
        if role is not None:
            return role
        return await self._roles.public_role()

    async def lookup(
        self,
        role: RoleContext | None,
        model: ModelSchema | str,
        attribute: str | None = None,
    ) -> PermissionRecord | None:
        """
        Return the model-scope record (``attribute is None``) or the
        attribute-scope record for ``attribute``.

        ``None`` means no access. Internally two cases are distinguished for
        logging: the attribute is not declared on the model (schema-absent),
        or no record exists for it (permission-absent).
        """

        if isinstance(model, str):
            model = await self._schema.get_model(model)
        role = await self.effective_role(role)

        if attribute is not None and attribute not in self._schema.attributes(model):
            logger.debug("Attribute %s.%s not declared; denying", model.qualified_name, attribute)
            return None

        permission = await self._store.find_one(
            {
                "role": role.id,
                "type": model.namespace,
                "model": model.name,
                "scope": ATTRIBUTE_SCOPE if attribute is not None else MODEL_SCOPE,
                "attribute": attribute,
            }
        )
        if permission is None:
            logger.debug(
                "No permission record role=%s model=%s attribute=%s; denying",
                role.id,
                model.qualified_name,
                attribute,
            )
        return permission

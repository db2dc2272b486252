"""
Recursive filtering serializer.

Given a caller role and a value tree (see ``values.py``), produce a copy in
which every field the role may not see is removed:

- Plain containers are walked element by element.
- A ``ModelRecord`` needs an enabled model-scope permission, otherwise the
  whole node disappears. Structural fields (ids, timestamps) are kept, each
  declared attribute needs an enabled attribute-scope permission, and
  anything else is dropped.
- Association attributes recurse into the target model, so permission is
  enforced at every level of the graph.
- Any other field value is walked as well: a ``ModelRecord`` nested under a
  plain attribute or a structural field is checked as its own model.

Denial never raises; it only shapes the output. Recursion is bounded by a
depth cap and by tracking the nodes on the current path, so self-referencing
data cannot recurse forever.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from fieldguard.content.schema import AssociationDef, ModelSchema
from fieldguard.errors import SchemaNotFound, SerializationTimeout
from fieldguard.permissions.lookup import PermissionLookup
from fieldguard.permissions.protocols import SchemaProvider
from fieldguard.permissions.tasks import gather_settled
from fieldguard.permissions.values import HOUSEKEEPING_FIELDS, ModelRecord
from fieldguard.schemas.permissions import PermissionRecord
from fieldguard.security.context import RoleContext

logger = logging.getLogger(__name__)

STRUCTURAL_FIELDS = frozenset({"id", "_id", "createdAt", "updatedAt", "created_at", "updated_at"})

DEFAULT_MAX_DEPTH = 16


class _Drop:
    def __repr__(self) -> str:
        return "DROP"


DROP: Any = _Drop()
"""Marks a value that must not appear in the output. Field policies may return it."""


@dataclass(frozen=True)
class FieldContext:
    role: RoleContext
    model: ModelSchema
    attribute: str
    value: Any
    permission: PermissionRecord


FieldPolicy = Callable[[FieldContext], Any]


def allow_field(field: FieldContext) -> Any:
    """Default field policy: keep the value as-is."""
    return field.value


class FilteringSerializer:
    def __init__(
        self,
        schema: SchemaProvider,
        lookup: PermissionLookup,
        *,
        field_policy: FieldPolicy = allow_field,
        max_depth: int = DEFAULT_MAX_DEPTH,
        timeout: float | None = None,
    ) -> None:
        self._schema = schema
        self._lookup = lookup
        self._field_policy = field_policy
        self._max_depth = max_depth
        self._timeout = timeout

    async def serialize(self, role: RoleContext | None, value: Any, *, timeout: float | None = None) -> Any | None:
        """
        Filter ``value`` for ``role`` (``None`` means the public role).

        Returns ``None`` when the caller may not see the value at all.
        ``timeout`` (seconds) bounds this call only; outstanding lookups are
        cancelled and ``SerializationTimeout`` is raised.
        """

        timeout = timeout if timeout is not None else self._timeout
        if timeout is None:
            result = await self._serialize_root(role, value)
        else:
            try:
                result = await asyncio.wait_for(self._serialize_root(role, value), timeout)
            except asyncio.TimeoutError as exc:
                logger.warning("Serialization timed out after %ss", timeout)
                raise SerializationTimeout(f"Serialization exceeded {timeout}s", timeout=timeout) from exc

        return None if result is DROP else result

    async def _serialize_root(self, role: RoleContext | None, value: Any) -> Any:
        effective = await self._lookup.effective_role(role)
        return await self._walk(effective, value, frozenset(), 0)

    def _can_descend(self, node: Any, ancestors: frozenset[int], depth: int) -> bool:
        if depth > self._max_depth:
            logger.warning("Dropping branch deeper than %d levels", self._max_depth)
            return False
        if id(node) in ancestors:
            logger.warning("Dropping self-referencing branch")
            return False
        return True
    async def _walk(self, role: RoleContext, value: Any, ancestors: frozenset[int], depth: int) -> Any:
        if isinstance(value, ModelRecord):
            if not self._can_descend(value, ancestors, depth):
                return DROP
            # Unknown root models propagate SchemaNotFound.
            model = await self._schema.get_model(value.model, value.plugin)
            return await self._serialize_model(role, model, value.fields, ancestors | {id(value)}, depth + 1)

        if isinstance(value, Mapping):
            if not self._can_descend(value, ancestors, depth):
                return DROP
            inner = ancestors | {id(value)}
            keys = list(value)
            results = await gather_settled(*(self._walk(role, value[k], inner, depth + 1) for k in keys))
            return {k: r for k, r in zip(keys, results) if r is not DROP}

        if isinstance(value, (list, tuple)):
            if not self._can_descend(value, ancestors, depth):
                return DROP
            inner = ancestors | {id(value)}
            results = await gather_settled(*(self._walk(role, item, inner, depth + 1) for item in value))
            return [r for r in results if r is not DROP]

        return value

    async def _walk_nested(
        self,
        role: RoleContext,
        model: ModelSchema,
        name: str,
        value: Any,
        ancestors: frozenset[int],
        depth: int,
    ) -> Any:
        """
        Filter a value held by a field that is not an association.

        Model nodes inside it are checked as their own model, so a tagged
        object never reaches the output unfiltered.
        """

        if not isinstance(value, (Mapping, list, tuple, ModelRecord)):
            return value
        try:
            return await self._walk(role, value, ancestors, depth)
        except SchemaNotFound as exc:
            logger.warning(
                "Dropping %s.%s: nested model %s is not a known model",
                model.qualified_name,
                name,
                exc.model,
            )
            return DROP

    async def _serialize_model(
        self,
        role: RoleContext,
        model: ModelSchema,
        fields: Mapping[str, Any],
        ancestors: frozenset[int],
        depth: int,
    ) -> Any:
        permission = await self._lookup.lookup(role, model)
        if permission is None or not permission.enabled:
            logger.debug("Model %s hidden from role=%s", model.qualified_name, role.id)
            return DROP

        attributes = self._schema.attributes(model)
        kept = [
            name
            for name in fields
            if name in STRUCTURAL_FIELDS or (name in attributes and name not in HOUSEKEEPING_FIELDS)
        ]
        results = await gather_settled(
            *(
                self._walk_nested(role, model, name, fields[name], ancestors, depth)
                if name in STRUCTURAL_FIELDS
                else self._serialize_attribute(role, model, name, fields[name], ancestors, depth)
                for name in kept
            )
        )
        filtered = dict(zip(kept, results))

        output: dict[str, Any] = {}
        for name in fields:
            if name not in filtered:
                logger.debug("Dropping undeclared field %s.%s", model.qualified_name, name)
            elif filtered[name] is not DROP:
                output[name] = filtered[name]
        return output

    async def _serialize_attribute(
        self,
        role: RoleContext,
        model: ModelSchema,
        name: str,
        value: Any,
        ancestors: frozenset[int],
        depth: int,
    ) -> Any:
        permission = await self._lookup.lookup(role, model, name)
        if permission is None or not permission.enabled:
            logger.debug("Attribute %s.%s hidden from role=%s", model.qualified_name, name, role.id)
            return DROP

        association = model.association(name)
        if association is None:
            value = await self._walk_nested(role, model, name, value, ancestors, depth)
        elif isinstance(value, (Mapping, list, tuple, ModelRecord)):
            try:
                value = await self._serialize_association(role, association, value, ancestors, depth)
            except SchemaNotFound as exc:
                logger.warning(
                    "Dropping %s.%s: association target %s is not a known model",
                    model.qualified_name,
                    name,
                    exc.model,
                )
                return DROP
        if value is DROP:
            return DROP

        return self._field_policy(FieldContext(role=role, model=model, attribute=name, value=value, permission=permission))

    async def _serialize_association(
        self,
        role: RoleContext,
        association: AssociationDef,
        value: Any,
        ancestors: frozenset[int],
        depth: int,
    ) -> Any:
        if isinstance(value, (list, tuple)):
            if not self._can_descend(value, ancestors, depth):
                return DROP
            inner = ancestors | {id(value)}
            results = await gather_settled(
                *(self._serialize_association(role, association, item, inner, depth + 1) for item in value)
            )
            return [r for r in results if r is not DROP]

        if isinstance(value, ModelRecord):
            fields: Mapping[str, Any] = value.fields
        elif isinstance(value, Mapping):
            fields = value
        else:
            # Unpopulated reference (an id) or an empty value.
            return value

        if not self._can_descend(value, ancestors, depth):
            return DROP
        # The association decides the model, whatever the nested node was tagged with.
        target = await self._schema.get_model(association.target_model, association.target_plugin)
        return await self._serialize_model(role, target, fields, ancestors | {id(value)}, depth + 1)

"""
Reconciliation of stored permission records with the content schema.

For every (role, model) pair the engine diffs the model's declared
attributes against the stored records and applies deletes, updates and
creates so that the store ends up with exactly:

- one model-scope record (created enabled when missing), and
- one attribute-scope record per declared attribute, whose ``enabled`` flag
  follows the attribute's privacy flag.

Pairs are independent and reconciled concurrently. Within a pair the
delete/update pass finishes before the create pass, because new attribute
records inherit the ``enabled`` value of the model-scope record found in the
first pass. Running the engine twice with an unchanged schema writes
nothing the second time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from fieldguard.content.schema import ModelSchema
from fieldguard.permissions.protocols import PermissionStore, SchemaProvider
from fieldguard.permissions.tasks import gather_settled
from fieldguard.schemas.permissions import ATTRIBUTE_SCOPE, MODEL_SCOPE, PermissionRecord
from fieldguard.security.context import RoleContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitError:
    """Failure of one (role, model) unit."""

    role_id: int
    model: str
    error: BaseException


@dataclass
class ReconciliationReport:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: list[UnitError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def writes(self) -> int:
        return self.created + self.updated + self.deleted


class ReconciliationEngine:
    def __init__(self, schema: SchemaProvider, store: PermissionStore) -> None:
        self._schema = schema
        self._store = store

    async def reconcile(self, roles: Iterable[RoleContext]) -> ReconciliationReport:
        """
        Reconcile every role against every model.

        A failing (role, model) unit never aborts its siblings; failures are
        collected on the report and logged once all units have finished.
        """

        report = ReconciliationReport()
        units = []
        for role in roles:
            units.extend(self._schema.for_each_model(lambda model, role=role: self._run_unit(role, model, report)))

        await asyncio.gather(*units)

        for unit_error in report.errors:
            logger.error(
                "Permission reconciliation failed role=%s model=%s: %r",
                unit_error.role_id,
                unit_error.model,
                unit_error.error,
            )
        logger.info(
            "Permission reconciliation finished units=%d created=%d updated=%d deleted=%d failed=%d",
            len(units),
            report.created,
            report.updated,
            report.deleted,
            len(report.errors),
        )
        return report

    async def _run_unit(self, role: RoleContext, model: ModelSchema, report: ReconciliationReport) -> None:
        try:
            await self.reconcile_model(role, model, report)
        except Exception as exc:  # collected on the report, see reconcile()
            report.errors.append(UnitError(role_id=role.id, model=model.qualified_name, error=exc))

    async def reconcile_model(
        self,
        role: RoleContext,
        model: ModelSchema,
        report: ReconciliationReport | None = None,
    ) -> ReconciliationReport:
        """Reconcile a single (role, model) unit."""

        report = report if report is not None else ReconciliationReport()
        attributes = self._schema.attributes(model)
        common = {"role": role.id, "type": model.namespace, "model": model.name}
        current = await self._store.find(common)

        to_update = list(attributes)
        model_enabled_default: bool | None = None
        stale: list[PermissionRecord] = []
        changed: list[PermissionRecord] = []

        for permission in current:
            if permission.scope == MODEL_SCOPE:
                if model_enabled_default is None:
                    model_enabled_default = permission.enabled
                else:
                    stale.append(permission)
                continue

            # Not in to_update: removed from the schema, or a duplicate of an
            # attribute already accounted for.
            if permission.attribute not in to_update or permission.attribute not in attributes:
                stale.append(permission)
                continue
            to_update.remove(permission.attribute)

            should_be_enabled = not self._schema.is_attribute_private(model, permission.attribute)
            if should_be_enabled != permission.enabled:
                changed.append(permission.model_copy(update={"enabled": should_be_enabled}))

        await gather_settled(
            *(self._delete(model, permission, report) for permission in stale),
            *(self._update(model, permission, report) for permission in changed),
        )

        creates: list[PermissionRecord] = []
        if model_enabled_default is None:
            model_enabled_default = True
            creates.append(PermissionRecord(**common, scope=MODEL_SCOPE, enabled=True))

        for attribute in to_update:
            # Private attributes start disabled whatever the model default is.
            enabled = model_enabled_default and not self._schema.is_attribute_private(model, attribute)
            creates.append(PermissionRecord(**common, scope=ATTRIBUTE_SCOPE, attribute=attribute, enabled=enabled))

        await gather_settled(*(self._create(model, permission, report) for permission in creates))
        return report

    async def _delete(self, model: ModelSchema, permission: PermissionRecord, report: ReconciliationReport) -> None:
        logger.info(
            "Removing %s permission role=%s %s.%s",
            permission.scope,
            permission.role,
            model.qualified_name,
            permission.attribute,
        )
        await self._store.delete(permission)
        report.deleted += 1

    async def _update(self, model: ModelSchema, permission: PermissionRecord, report: ReconciliationReport) -> None:
        logger.info(
            "Updating permission role=%s %s.%s enabled=%s",
            permission.role,
            model.qualified_name,
            permission.attribute,
            permission.enabled,
        )
        await self._store.update(permission)
        report.updated += 1

    async def _create(self, model: ModelSchema, permission: PermissionRecord, report: ReconciliationReport) -> None:
        logger.info(
            "Adding %s permission role=%s %s.%s enabled=%s",
            permission.scope,
            permission.role,
            model.qualified_name,
            permission.attribute,
            permission.enabled,
        )
        await self._store.create(permission)
        report.created += 1

"""
Field-level permission core.

Reconciles stored permission records with the content schema and filters
outbound data for a caller role. Depends only on the protocols in
``protocols.py``; storage, schema and role resolution are injected.
"""

from .lookup import PermissionLookup
from .protocols import PermissionStore, RoleSource, SchemaProvider
from .reconcile import ReconciliationEngine, ReconciliationReport, UnitError
from .serializer import DROP, FieldContext, FieldPolicy, FilteringSerializer, allow_field
from .store import InMemoryPermissionStore, SqlPermissionStore
from .values import MODEL_MARKER, PLUGIN_MARKER, ModelRecord, to_value

__all__ = [
    "DROP",
    "MODEL_MARKER",
    "PLUGIN_MARKER",
    "FieldContext",
    "FieldPolicy",
    "FilteringSerializer",
    "InMemoryPermissionStore",
    "ModelRecord",
    "PermissionLookup",
    "PermissionStore",
    "ReconciliationEngine",
    "ReconciliationReport",
    "RoleSource",
    "SchemaProvider",
    "SqlPermissionStore",
    "UnitError",
    "allow_field",
    "to_value",
]

"""
Value layer for the filtering serializer.

Data entering the serializer is a tree of scalars, lists, plain mappings and
``ModelRecord`` nodes. Whether a node is a model record is decided here, at
the boundary where data leaves the data layer, never inferred mid-tree.
The data layer marks model objects with ``MODEL_MARKER`` (and optionally
``PLUGIN_MARKER``); ``to_value`` turns those into ``ModelRecord`` and strips
the markers so they cannot leak into the filtered output.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

MODEL_MARKER = "__model__"
PLUGIN_MARKER = "__plugin__"

# Storage housekeeping keys never exposed to callers.
HOUSEKEEPING_FIELDS = frozenset({"__v"})

_MARKERS = frozenset({MODEL_MARKER, PLUGIN_MARKER}) | HOUSEKEEPING_FIELDS


@dataclass(frozen=True, eq=False)
class ModelRecord:
    """A node that represents an instance of content model ``model``."""

    model: str
    fields: dict[str, Any]
    plugin: str | None = None


def to_value(raw: Any) -> Any:
    """
    Convert raw data-layer output into serializer values.

    - pydantic models are dumped to dicts first
    - mappings carrying ``MODEL_MARKER`` become ``ModelRecord``
    - other mappings become dicts, tuples and lists become lists
    - scalars are returned unchanged

    Shared and cyclic references are preserved (each raw container converts
    to exactly one value), so the serializer's cycle guard still sees them.
    """

    return _convert(raw, {})


def _convert(raw: Any, memo: dict[int, tuple[Any, Any]]) -> Any:
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()

    key = id(raw)
    if key in memo:
        return memo[key][1]

    if isinstance(raw, ModelRecord):
        record = ModelRecord(model=raw.model, fields={}, plugin=raw.plugin)
        memo[key] = (raw, record)
        record.fields.update(_convert_fields(raw.fields, memo))
        return record

    if isinstance(raw, Mapping):
        if MODEL_MARKER in raw:
            record = ModelRecord(model=str(raw[MODEL_MARKER]), fields={}, plugin=raw.get(PLUGIN_MARKER))
            memo[key] = (raw, record)
            record.fields.update(_convert_fields(raw, memo))
            return record
        converted: dict[str, Any] = {}
        memo[key] = (raw, converted)
        converted.update({k: _convert(v, memo) for k, v in raw.items()})
        return converted

    if isinstance(raw, (list, tuple)):
        items: list[Any] = []
        memo[key] = (raw, items)
        items.extend(_convert(item, memo) for item in raw)
        return items

    return raw


def _convert_fields(raw: Mapping[str, Any], memo: dict[int, tuple[Any, Any]]) -> dict[str, Any]:
    return {k: _convert(v, memo) for k, v in raw.items() if k not in _MARKERS}

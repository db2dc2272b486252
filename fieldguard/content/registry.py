"""In-memory schema provider built from the content schema YAML."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import TypeVar

from fieldguard.content.loader import load_schema_config
from fieldguard.content.schema import AssociationDef, AttributeDef, ModelSchema
from fieldguard.errors import SchemaNotFound

T = TypeVar("T")


class SchemaRegistry:
    """
    Models keyed by (plugin, name). ``plugin=None`` is the application namespace.

    Usage:
        registry = SchemaRegistry.from_yaml(Path("config/content_schema.yaml"))
        article = await registry.get_model("Article")
    """

    def __init__(self, models: Iterable[ModelSchema]) -> None:
        self._models: dict[tuple[str | None, str], ModelSchema] = {}
        for model in models:
            self._models[(model.plugin, model.name)] = model

    @classmethod
    def from_yaml(cls, path: Path) -> SchemaRegistry:
        return cls(load_schema_config(path))

    async def get_model(self, name: str, plugin: str | None = None) -> ModelSchema:
        model = self._models.get((plugin, name))
        if model is None:
            raise SchemaNotFound(name, plugin)
        return model

    def attributes(self, model: ModelSchema) -> Mapping[str, AttributeDef]:
        return model.attributes

    def associations(self, model: ModelSchema) -> tuple[AssociationDef, ...]:
        return model.associations

    def is_attribute_private(self, model: ModelSchema, attribute: str) -> bool:
        return model.is_attribute_private(attribute)

    def for_each_model(self, fn: Callable[[ModelSchema], T]) -> list[T]:
        """Apply ``fn`` to every model, application models first, then plugin models."""
        ordered = sorted(self._models.values(), key=lambda m: (m.plugin is not None, m.plugin or "", m.name))
        return [fn(model) for model in ordered]

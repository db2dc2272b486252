"""
Content schema YAML loader.

Expected shape (simplified):

    content:
      models:
        Article:
          attributes:
            title: {type: string}
            secret: {type: text, private: true}
            author: {model: User, plugin: users-permissions, via: articles}
      plugins:
        users-permissions:
          User:
            attributes:
              username: {type: string}
              articles: {collection: Article, via: author}

An attribute with ``model`` (to-one) or ``collection`` (to-many) is an
association; ``plugin`` qualifies the target, ``via`` names the
back-reference attribute on the target. The association nature
(oneToOne, manyToOne, ...) is derived from both sides.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from fieldguard.content.schema import AssociationDef, AssociationNature, AttributeDef, ModelSchema
from fieldguard.errors import SchemaConfigError

logger = logging.getLogger(__name__)


class AttributeSpec(BaseModel):
    type: str | None = None
    private: bool = False
    model: str | None = None
    collection: str | None = None
    plugin: str | None = None
    via: str | None = None

    @model_validator(mode="after")
    def _single_target(self) -> AttributeSpec:
        if self.model and self.collection:
            raise ValueError("an attribute cannot declare both 'model' and 'collection'")
        if (self.via or self.plugin) and not (self.model or self.collection):
            raise ValueError("'via' and 'plugin' are only valid on associations")
        return self

    @property
    def target(self) -> str | None:
        return self.model or self.collection


class ModelSpec(BaseModel):
    attributes: dict[str, AttributeSpec] = Field(default_factory=dict)


class ContentSchemaSpec(BaseModel):
    models: dict[str, ModelSpec] = Field(default_factory=dict)
    plugins: dict[str, dict[str, ModelSpec]] = Field(default_factory=dict)


ModelKey = tuple[str | None, str]


def load_schema_config(path: Path) -> list[ModelSchema]:
    """Load and validate content schema YAML from disk."""

    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "content" not in raw:
        raise SchemaConfigError(f"Missing top-level 'content' key in schema config: {path}")

    return parse_schema_config(raw["content"] or {})


def parse_schema_config(raw: dict[str, Any]) -> list[ModelSchema]:
    try:
        spec = ContentSchemaSpec.model_validate(raw)
    except ValidationError as exc:
        raise SchemaConfigError(f"Invalid content schema: {exc}") from exc

    specs: dict[ModelKey, ModelSpec] = {(None, name): model for name, model in spec.models.items()}
    for plugin, models in spec.plugins.items():
        for name, model in models.items():
            specs[(plugin, name)] = model

    schemas = [_build_model(key, model, specs) for key, model in specs.items()]
    logger.debug("Loaded %d content models", len(schemas))
    return schemas


def _build_model(key: ModelKey, spec: ModelSpec, specs: dict[ModelKey, ModelSpec]) -> ModelSchema:
    plugin, name = key
    attributes: dict[str, AttributeDef] = {}
    associations: list[AssociationDef] = []

    for attr_name, attr in spec.attributes.items():
        attributes[attr_name] = AttributeDef(name=attr_name, type=attr.type, private=attr.private)
        if attr.target is None:
            continue

        target_key = (attr.plugin, attr.target)
        if target_key not in specs:
            raise SchemaConfigError(
                f"{_qualified(key)}.{attr_name} references unknown model {_qualified(target_key)!r}"
            )
        associations.append(
            AssociationDef(
                alias=attr_name,
                target_model=attr.target,
                target_plugin=attr.plugin,
                via=attr.via,
                nature=_derive_nature(key, attr_name, attr, specs[target_key]),
            )
        )

    return ModelSchema(name=name, plugin=plugin, attributes=attributes, associations=tuple(associations))


def _derive_nature(key: ModelKey, attr_name: str, attr: AttributeSpec, target: ModelSpec) -> AssociationNature:
    to_many = attr.collection is not None
    if attr.via is None:
        return "manyWay" if to_many else "oneWay"

    reverse = target.attributes.get(attr.via)
    if reverse is None or reverse.target is None:
        raise SchemaConfigError(
            f"{_qualified(key)}.{attr_name} declares via={attr.via!r} but the target has no such association"
        )

    reverse_many = reverse.collection is not None
    if to_many:
        return "manyToMany" if reverse_many else "oneToMany"
    return "manyToOne" if reverse_many else "oneToOne"


def _qualified(key: ModelKey) -> str:
    plugin, name = key
    return f"{plugin}.{name}" if plugin else name

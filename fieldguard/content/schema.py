"""
Content schema data structures.

A ``ModelSchema`` describes one content model: its declared attributes (each
with a privacy flag) and its association edges to other models. Plugin-owned
models carry the plugin name, which doubles as the permission ``type``
namespace; application models live in the ``"application"`` namespace.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

from fieldguard.schemas.permissions import APPLICATION_TYPE

AssociationNature = Literal["oneToOne", "oneToMany", "manyToOne", "manyToMany", "oneWay", "manyWay"]


@dataclass(frozen=True)
class AttributeDef:
    name: str
    type: str | None = None
    private: bool = False


@dataclass(frozen=True)
class AssociationDef:
    """Relationship declared on the owning model under ``alias``."""

    alias: str
    target_model: str
    nature: AssociationNature
    target_plugin: str | None = None
    via: str | None = None

    @property
    def is_collection(self) -> bool:
        return self.nature in ("oneToMany", "manyToMany", "manyWay")


@dataclass(frozen=True)
class ModelSchema:
    name: str
    attributes: Mapping[str, AttributeDef] = field(default_factory=dict)
    associations: tuple[AssociationDef, ...] = ()
    plugin: str | None = None

    @property
    def namespace(self) -> str:
        """Permission ``type`` for records of this model."""
        return self.plugin or APPLICATION_TYPE

    @property
    def qualified_name(self) -> str:
        return f"{self.plugin}.{self.name}" if self.plugin else self.name

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def is_attribute_private(self, name: str) -> bool:
        attribute = self.attributes.get(name)
        return bool(attribute and attribute.private)

    def association(self, alias: str) -> AssociationDef | None:
        for association in self.associations:
            if association.alias == alias:
                return association
        return None

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

MODEL_SCOPE = "model"
ATTRIBUTE_SCOPE = "attribute"
APPLICATION_TYPE = "application"

PermissionScope = Literal["model", "attribute"]


class PermissionRecord(BaseModel):
    """
    The unit of access control, as returned by every permission store.

    ``attribute`` is set iff ``scope == "attribute"``.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    role: int
    type: str = APPLICATION_TYPE
    model: str
    scope: PermissionScope
    attribute: str | None = None
    enabled: bool

    @model_validator(mode="after")
    def _attribute_matches_scope(self) -> PermissionRecord:
        if self.scope == ATTRIBUTE_SCOPE and not self.attribute:
            raise ValueError("attribute-scope permissions require an attribute name")
        if self.scope == MODEL_SCOPE and self.attribute is not None:
            raise ValueError("model-scope permissions must not name an attribute")
        return self


class PermissionCreate(BaseModel):
    role: int
    type: str = APPLICATION_TYPE
    model: str
    scope: PermissionScope
    attribute: str | None = None
    enabled: bool = True


class PermissionUpdate(BaseModel):
    enabled: bool | None = None
    attribute: str | None = None


class UnitErrorOut(BaseModel):
    role: int
    model: str
    error: str


class ReconciliationOut(BaseModel):
    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: list[UnitErrorOut] = Field(default_factory=list)

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fieldguard.db.base import Base


class AttributePermission(Base):
    """
    One permission record.

    ``scope == "model"`` governs a whole model and has no attribute;
    ``scope == "attribute"`` governs a single attribute. Uniqueness per
    (role, type, model[, attribute]) is restored by reconciliation rather
    than enforced by a constraint, so legacy duplicates can be cleaned up.
    """

    __tablename__ = "attribute_permissions"
    __table_args__ = (Index("ix_attribute_permissions_partition", "role_id", "type", "model"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    role: Mapped[int] = mapped_column("role_id", ForeignKey("roles.id"), nullable=False)
    type: Mapped[str] = mapped_column(String(100), default="application", nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    scope: Mapped[str] = mapped_column(String(20), nullable=False)
    attribute: Mapped[str | None] = mapped_column(String(100), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

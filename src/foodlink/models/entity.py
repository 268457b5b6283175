"""Canonical entity model."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Index, String, func, text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from foodlink.models.base import Base
from foodlink.models.enums import EntityType


class CanonicalEntity(Base):
    """The single authoritative record a set of text mentions resolves to.

    Aliases are case-insensitively unique; the casing of the first occurrence
    is kept. Rows are created by resolution and mutated by alias operations,
    never deleted here.
    """

    __tablename__ = "canonical_entities"
    __table_args__ = (
        Index("ix_canonical_entities_type_lower_name", "entity_type", text("lower(trim(name))")),
    )

    entity_id: Mapped[UUID] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    entity_type: Mapped[EntityType] = mapped_column(index=True)
    aliases: Mapped[list[str]] = mapped_column(ARRAY(String(255)), default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

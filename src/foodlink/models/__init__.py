"""Database models for FoodLink."""

from foodlink.models.base import Base
from foodlink.models.entity import CanonicalEntity
from foodlink.models.enums import (
    SCOPE_ENTITY_TYPES,
    AttributeScope,
    DishAttributeKind,
    EntityType,
    ResolutionTier,
)

__all__ = [
    "SCOPE_ENTITY_TYPES",
    "AttributeScope",
    "Base",
    "CanonicalEntity",
    "DishAttributeKind",
    "EntityType",
    "ResolutionTier",
]

"""Enumerations for FoodLink data model."""

from enum import Enum


class EntityType(str, Enum):
    """Partition a canonical entity belongs to. Matching never crosses types."""

    RESTAURANT = "restaurant"
    DISH_OR_CATEGORY = "dish_or_category"
    DISH_ATTRIBUTE = "dish_attribute"
    RESTAURANT_ATTRIBUTE = "restaurant_attribute"


class ResolutionTier(str, Enum):
    """Pipeline stage that produced a resolution result."""

    EXACT = "exact"  # Name match, confidence 1.0
    ALIAS = "alias"  # Alias overlap, confidence 0.95
    FUZZY = "fuzzy"  # Similarity + edit distance, confidence = similarity
    NEW = "new"  # Created (or failed to create) a canonical entity
    UNMATCHED = "unmatched"  # Creation deferred to the caller


class AttributeScope(str, Enum):
    """Which kind of entity an attribute describes."""

    DISH = "dish"
    RESTAURANT = "restaurant"


class DishAttributeKind(str, Enum):
    """How an extracted dish attribute relates to the dish."""

    SELECTIVE = "selective"  # Narrows the dish ("spicy ramen")
    DESCRIPTIVE = "descriptive"  # Describes it ("the ramen was spicy")


# Scope → attribute entity type
SCOPE_ENTITY_TYPES: dict[AttributeScope, EntityType] = {
    AttributeScope.DISH: EntityType.DISH_ATTRIBUTE,
    AttributeScope.RESTAURANT: EntityType.RESTAURANT_ATTRIBUTE,
}

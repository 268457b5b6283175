"""Pydantic schemas for extraction output.

The upstream extraction step reads unstructured posts and comments and
emits mention records. Each mention names a restaurant, optionally a dish or
category, and attributes of either. Temp ids are assigned upstream and are
the only link between a mention and its resolved entities.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from foodlink.models.enums import DishAttributeKind


class EntityRef(BaseModel):
    """A reference to a restaurant or dish as it appeared in the text."""

    temp_id: str
    normalized_name: str | None = Field(
        default=None, description="Cleaned-up name (e.g., 'Franklin Barbecue')"
    )
    original_text: str | None = Field(
        default=None, description="Text as written (e.g., 'franklins bbq')"
    )

    @property
    def name(self) -> str | None:
        """Normalized name, falling back to the original text."""
        for value in (self.normalized_name, self.original_text):
            if value and value.strip():
                return value.strip()
        return None


class DishAttribute(BaseModel):
    attribute: str
    type: DishAttributeKind = DishAttributeKind.DESCRIPTIVE


class MentionRecord(BaseModel):
    """One restaurant (and optionally dish) mention extracted from content."""

    temp_id: str
    restaurant: EntityRef
    restaurant_attributes: list[str] | None = None
    dish_or_category: EntityRef | None = None
    dish_attributes: list[DishAttribute] | None = None
    is_menu_item: bool = False
    general_praise: bool = False


class ExtractionOutput(BaseModel):
    mentions: list[MentionRecord] = Field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]

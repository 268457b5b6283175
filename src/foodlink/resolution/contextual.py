"""Mapping of extraction output and scoped attributes into resolution inputs.

Attribute temp ids are composed from the parent mention id, the scope and the
attribute text, so re-running over the same output yields the same keys:

    "{mention}_restaurant_attr_{attribute}"
    "{mention}_dish_attr_{selective|descriptive}_{attribute}"
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from foodlink.models.enums import (
    SCOPE_ENTITY_TYPES,
    AttributeScope,
    DishAttributeKind,
    EntityType,
)
from foodlink.resolution.schemas import (
    BatchResolutionResult,
    ContextualAttributeInput,
    ResolutionInput,
)

if TYPE_CHECKING:
    from foodlink.extraction.schemas import EntityRef, ExtractionOutput
    from foodlink.resolution.config import ResolutionConfig
    from foodlink.resolution.resolver import EntityResolver

logger = logging.getLogger(__name__)


def contextual_attribute_to_input(attribute: ContextualAttributeInput) -> ResolutionInput:
    """Map a scoped attribute 1:1 onto a resolution input."""
    return ResolutionInput(
        temp_id=attribute.temp_id,
        normalized_name=attribute.attribute_name,
        original_text=attribute.original_text,
        entity_type=SCOPE_ENTITY_TYPES[attribute.scope],
        aliases=list(attribute.aliases),
    )


def attribute_temp_id(
    mention_temp_id: str,
    scope: AttributeScope,
    attribute: str,
    kind: DishAttributeKind | None = None,
) -> str:
    if scope == AttributeScope.RESTAURANT:
        return f"{mention_temp_id}_restaurant_attr_{attribute}"
    kind = kind or DishAttributeKind.DESCRIPTIVE
    return f"{mention_temp_id}_dish_attr_{kind.value}_{attribute}"


def entity_ref_to_input(
    ref: EntityRef,
    entity_type: EntityType,
    aliases: Sequence[str] = (),
) -> ResolutionInput | None:
    """Resolution input for a restaurant/dish reference; None if it has no name."""
    name = ref.name
    if name is None:
        return None

    original = ref.original_text.strip() if ref.original_text and ref.original_text.strip() else name
    return ResolutionInput(
        temp_id=ref.temp_id,
        normalized_name=name,
        original_text=original,
        entity_type=entity_type,
        aliases=[a for a in (*aliases, original) if a and a.strip()],
    )


def entity_inputs_from_extraction(output: ExtractionOutput) -> list[ResolutionInput]:
    """Restaurant and dish/category inputs; the first occurrence of a temp id wins."""
    inputs: dict[str, ResolutionInput] = {}

    for mention in output.mentions:
        refs: list[tuple[EntityRef, EntityType]] = [(mention.restaurant, EntityType.RESTAURANT)]
        if mention.dish_or_category is not None:
            refs.append((mention.dish_or_category, EntityType.DISH_OR_CATEGORY))

        for ref, entity_type in refs:
            item = entity_ref_to_input(ref, entity_type)
            if item is None or item.temp_id in inputs:
                continue
            inputs[item.temp_id] = item

    return list(inputs.values())


def contextual_attributes_from_extraction(output: ExtractionOutput) -> list[ContextualAttributeInput]:
    """Scoped attribute inputs for every mention; repeats within a mention are dropped."""
    attributes: dict[str, ContextualAttributeInput] = {}

    def add(mention_id: str, scope: AttributeScope, text: str, kind: DishAttributeKind | None) -> None:
        text = text.strip()
        if not text:
            return
        temp_id = attribute_temp_id(mention_id, scope, text, kind)
        attributes.setdefault(
            temp_id,
            ContextualAttributeInput(
                temp_id=temp_id,
                attribute_name=text,
                original_text=text,
                scope=scope,
            ),
        )

    for mention in output.mentions:
        for attr in mention.restaurant_attributes or []:
            add(mention.temp_id, AttributeScope.RESTAURANT, attr, None)
        for dish_attr in mention.dish_attributes or []:
            add(mention.temp_id, AttributeScope.DISH, dish_attr.attribute, dish_attr.type)

    return list(attributes.values())


class AttributeContextResolver:
    """Resolves the scoped attributes of an extraction output.

    Usage:
        contexts = AttributeContextResolver(resolver)
        result = await contexts.process_extraction_output(output)
    """

    def __init__(self, resolver: EntityResolver) -> None:
        self._resolver = resolver

    async def process_extraction_output(
        self,
        output: ExtractionOutput,
        config: ResolutionConfig | Mapping[str, Any] | None = None,
    ) -> BatchResolutionResult:
        attributes = contextual_attributes_from_extraction(output)
        dish_count = sum(1 for a in attributes if a.scope == AttributeScope.DISH)
        logger.debug(
            "Extracted %d contextual attributes (%d dish, %d restaurant) from %d mentions",
            len(attributes),
            dish_count,
            len(attributes) - dish_count,
            len(output.mentions),
        )

        if not attributes:
            logger.info("No contextual attributes found in extraction output")
            return BatchResolutionResult.empty()

        return await self._resolver.resolve_contextual_attributes(attributes, config)

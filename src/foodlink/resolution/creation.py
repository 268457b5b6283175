"""Creation of new canonical entities for inputs no tier could match.

Each entity type maps to an ``EntityKind`` carrying the same ``create``
capability; the resolver dispatches through ``ENTITY_KINDS``. Creation of one
item returns a ``CreationOutcome`` value instead of raising, so a failing item
never aborts its batch.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from types import MappingProxyType

from foodlink.exceptions import EntityCreationError, ValidationError
from foodlink.models.enums import EntityType
from foodlink.store.base import EntityRecord, EntityStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityKind:
    """A creatable entity type."""

    entity_type: EntityType
    label: str

    async def create(self, store: EntityStore, name: str, aliases: Sequence[str]) -> EntityRecord:
        return await store.create_entity(self.entity_type, name, list(aliases))


RESTAURANT = EntityKind(EntityType.RESTAURANT, "restaurant")
DISH_OR_CATEGORY = EntityKind(EntityType.DISH_OR_CATEGORY, "dish or category")
DISH_ATTRIBUTE = EntityKind(EntityType.DISH_ATTRIBUTE, "dish attribute")
RESTAURANT_ATTRIBUTE = EntityKind(EntityType.RESTAURANT_ATTRIBUTE, "restaurant attribute")

ENTITY_KINDS: MappingProxyType[EntityType, EntityKind] = MappingProxyType(
    {kind.entity_type: kind for kind in (RESTAURANT, DISH_OR_CATEGORY, DISH_ATTRIBUTE, RESTAURANT_ATTRIBUTE)}
)


def entity_kind_for(entity_type: EntityType | str) -> EntityKind:
    """Look up the kind for ``entity_type``.

    Raises:
        ValidationError: No kind is registered for the type.
    """
    try:
        return ENTITY_KINDS[EntityType(entity_type)]
    except (KeyError, ValueError):
        raise ValidationError(f"Unsupported entity type: {entity_type}") from None


@dataclass(frozen=True)
class Created:
    temp_id: str
    entity: EntityRecord


@dataclass(frozen=True)
class CreationFailed:
    temp_id: str
    error: EntityCreationError


CreationOutcome = Created | CreationFailed


async def create_entity(
    store: EntityStore,
    *,
    temp_id: str,
    entity_type: EntityType,
    name: str,
    aliases: Sequence[str],
) -> CreationOutcome:
    """Create one entity, capturing any failure as ``CreationFailed``."""
    kind = entity_kind_for(entity_type)
    try:
        entity = await kind.create(store, name, aliases)
    except Exception as e:
        logger.error("Failed to create %s %r (%s): %s", kind.label, name, temp_id, e)
        error = EntityCreationError(
            f"Failed to create {kind.label} {name!r}: {e}",
            temp_id=temp_id,
            entity_type=entity_type,
            name=name,
        )
        error.__cause__ = e
        return CreationFailed(temp_id=temp_id, error=error)

    logger.debug("Created %s %s %r", kind.label, entity.entity_id, entity.name)
    return Created(temp_id=temp_id, entity=entity)

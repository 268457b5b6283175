"""Entity store interface consumed by resolution and merge operations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from foodlink.models.enums import EntityType


@dataclass
class EntityRecord:
    """A canonical entity as seen by the resolution core."""

    entity_id: UUID
    name: str
    entity_type: EntityType
    aliases: list[str] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]


class EntityStore(Protocol):
    """Persistent store of canonical entities.

    Lookups are bulk and scoped to one entity type. Implementations raise
    ``StoreQueryError`` when a lookup cannot be served.
    """

    async def find_by_type_and_names(
        self, entity_type: EntityType, names: Sequence[str]
    ) -> list[EntityRecord]:
        """Entities whose trimmed name equals any of ``names``, ignoring case."""
        ...

    async def find_by_type_with_any_alias(
        self, entity_type: EntityType, candidates: Sequence[str]
    ) -> list[EntityRecord]:
        """Entities having at least one alias equal to a candidate, ignoring case."""
        ...

    async def find_all_by_type(self, entity_type: EntityType) -> list[EntityRecord]:
        """Every entity of ``entity_type``."""
        ...

    async def create_entity(
        self, entity_type: EntityType, name: str, aliases: Sequence[str]
    ) -> EntityRecord: ...

    async def fetch_entity(self, entity_id: UUID) -> EntityRecord | None: ...

    async def update_entity_aliases(
        self, entity_id: UUID, aliases: Sequence[str]
    ) -> EntityRecord: ...

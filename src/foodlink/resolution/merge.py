"""Alias consolidation for entity merges and incremental alias additions.

Both operations are single-entity read-modify-write against the store and
are not synchronized; concurrent calls on one entity race, last write wins.
Deleting the merged-away source entity is left to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from foodlink.exceptions import EntityNotFoundError, TypeMismatchError, ValidationError
from foodlink.models.enums import EntityType
from foodlink.resolution.aliases import AliasManager, alias_key, coerce_entity_type
from foodlink.store.base import EntityRecord, EntityStore

logger = logging.getLogger(__name__)


@dataclass
class EntityMergeResult:
    source_entity_id: UUID
    target_entity_id: UUID
    merged_aliases: list[str]
    aliases_added: int
    """Aliases on the target now that it did not have before (ignoring case)."""

    duplicates_removed: int
    violations: list[str] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]


@dataclass
class EntityAliasResult:
    entity_id: UUID
    aliases: list[str]
    added: bool
    violations: list[str] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]


class MergeCoordinator:
    """Consolidates aliases between entities and onto single entities.

    Usage:
        coordinator = MergeCoordinator(SqlEntityStore(session))
        result = await coordinator.merge_entities(dup_id, canonical_id, EntityType.RESTAURANT)
    """

    def __init__(self, store: EntityStore, alias_manager: AliasManager | None = None) -> None:
        self._store = store
        self._aliases = alias_manager or AliasManager()

    async def _fetch(self, entity_id: UUID) -> EntityRecord:
        entity = await self._store.fetch_entity(entity_id)
        if entity is None:
            raise EntityNotFoundError(entity_id)
        return entity

    async def merge_entities(
        self,
        source_id: UUID,
        target_id: UUID,
        entity_type: EntityType | str,
    ) -> EntityMergeResult:
        """Fold the source's aliases into the target.

        Only the target is written. Scope violations are dropped from the
        persisted list and reported.

        Raises:
            ValidationError: Source and target are the same entity, or unknown type.
            EntityNotFoundError: Either entity is missing.
            TypeMismatchError: The entities' types differ from each other or
                from ``entity_type``.
        """
        entity_type = coerce_entity_type(entity_type)
        if source_id == target_id:
            raise ValidationError(f"Cannot merge entity {source_id} into itself")

        source = await self._fetch(source_id)
        target = await self._fetch(target_id)
        if source.entity_type != target.entity_type:
            raise TypeMismatchError(source_id, source.entity_type, target_id, target.entity_type)
        if target.entity_type != entity_type:
            raise TypeMismatchError(source_id, entity_type, target_id, target.entity_type)

        prepared = self._aliases.prepare_aliases_for_merge(
            source.aliases,
            target.aliases,
            entity_type,
            source_entity_id=source_id,
            target_entity_id=target_id,
        )
        existing = {alias_key(a) for a in target.aliases}
        await self._store.update_entity_aliases(target_id, prepared.merged_aliases)

        added = sum(1 for a in prepared.merged_aliases if alias_key(a) not in existing)
        logger.info(
            "Merged aliases of %s into %s: %d added, %d duplicates removed, %d violations",
            source_id,
            target_id,
            added,
            prepared.duplicates_removed,
            len(prepared.violations),
        )

        return EntityMergeResult(
            source_entity_id=source_id,
            target_entity_id=target_id,
            merged_aliases=prepared.merged_aliases,
            aliases_added=added,
            duplicates_removed=prepared.duplicates_removed,
            violations=prepared.violations,
        )

    async def add_alias_to_entity(self, entity_id: UUID, new_alias: str) -> EntityAliasResult:
        """Add ``new_alias`` unless present (ignoring case) or out of scope.

        Raises:
            EntityNotFoundError: The entity is missing.
        """
        entity = await self._fetch(entity_id)

        addition = self._aliases.add_original_text_as_alias(entity.aliases, new_alias)
        if not addition.added:
            return EntityAliasResult(entity_id=entity_id, aliases=list(entity.aliases), added=False)

        scoped = self._aliases.validate_scope_constraints(
            entity.entity_type, addition.updated_aliases
        )
        if scoped.valid_aliases == list(entity.aliases):
            return EntityAliasResult(
                entity_id=entity_id,
                aliases=list(entity.aliases),
                added=False,
                violations=scoped.violations,
            )

        updated = await self._store.update_entity_aliases(entity_id, scoped.valid_aliases)
        added = alias_key(new_alias) in {alias_key(a) for a in scoped.valid_aliases}
        logger.debug("Added alias %r to %s: %s", new_alias, entity_id, added)
        return EntityAliasResult(
            entity_id=entity_id,
            aliases=list(updated.aliases),
            added=added,
            violations=scoped.violations,
        )

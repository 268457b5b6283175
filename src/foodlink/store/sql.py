"""PostgreSQL entity store backed by SQLAlchemy async sessions."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import UUID, uuid4

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from foodlink.exceptions import EntityNotFoundError, StoreQueryError
from foodlink.models.entity import CanonicalEntity
from foodlink.models.enums import EntityType
from foodlink.store.base import EntityRecord

logger = logging.getLogger(__name__)


def _to_record(row: CanonicalEntity) -> EntityRecord:
    return EntityRecord(
        entity_id=row.entity_id,
        name=row.name,
        entity_type=row.entity_type,
        aliases=list(row.aliases or []),
    )


def _lowered(values: Sequence[str]) -> list[str]:
    """Lowercased, trimmed, non-blank, first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        if value and value.strip():
            seen.setdefault(value.strip().lower(), None)
    return list(seen)


def _by_creation(stmt: Select[tuple[CanonicalEntity]]) -> Select[tuple[CanonicalEntity]]:
    return stmt.order_by(CanonicalEntity.created_at, CanonicalEntity.entity_id)


def names_query(entity_type: EntityType, lowered: Sequence[str]) -> Select[tuple[CanonicalEntity]]:
    """Entities of ``entity_type`` whose ``lower(trim(name))`` is in ``lowered``."""
    return _by_creation(
        select(CanonicalEntity).where(
            CanonicalEntity.entity_type == entity_type,
            func.lower(func.trim(CanonicalEntity.name)).in_(lowered),
        )
    )


def alias_query(entity_type: EntityType, lowered: Sequence[str]) -> Select[tuple[CanonicalEntity]]:
    """Entities of ``entity_type`` with an alias whose ``lower(trim(...))`` is in ``lowered``.

    Renders as a correlated ``EXISTS`` over
    ``unnest(canonical_entities.aliases) AS alias_value``; a scalar unnest
    names its single column after the alias.
    """
    alias_value = func.unnest(CanonicalEntity.aliases).column_valued("alias_value")
    has_alias = select(1).where(func.lower(func.trim(alias_value)).in_(lowered)).exists()
    return _by_creation(
        select(CanonicalEntity).where(CanonicalEntity.entity_type == entity_type, has_alias)
    )


def type_query(entity_type: EntityType) -> Select[tuple[CanonicalEntity]]:
    return _by_creation(select(CanonicalEntity).where(CanonicalEntity.entity_type == entity_type))


class SqlEntityStore:
    """Entity store over the ``canonical_entities`` table.

    Usage:
        async with async_session_factory() as session:
            store = SqlEntityStore(session)
            resolver = EntityResolver(store)
            result = await resolver.resolve_batch(inputs)
            await session.commit()

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_type_and_names(
        self, entity_type: EntityType, names: Sequence[str]
    ) -> list[EntityRecord]:
        lowered = _lowered(names)
        if not lowered:
            return []
        return await self._select(
            names_query(entity_type, lowered), "find_by_type_and_names", entity_type
        )

    async def find_by_type_with_any_alias(
        self, entity_type: EntityType, candidates: Sequence[str]
    ) -> list[EntityRecord]:
        lowered = _lowered(candidates)
        if not lowered:
            return []
        return await self._select(
            alias_query(entity_type, lowered), "find_by_type_with_any_alias", entity_type
        )

    async def find_all_by_type(self, entity_type: EntityType) -> list[EntityRecord]:
        return await self._select(type_query(entity_type), "find_all_by_type", entity_type)

    async def create_entity(
        self, entity_type: EntityType, name: str, aliases: Sequence[str]
    ) -> EntityRecord:
        row = CanonicalEntity(
            entity_id=uuid4(),
            name=name,
            entity_type=entity_type,
            aliases=list(aliases),
        )
        # Savepoint so one failed insert leaves the outer transaction usable
        async with self._session.begin_nested():
            self._session.add(row)
        return _to_record(row)

    async def fetch_entity(self, entity_id: UUID) -> EntityRecord | None:
        row = await self._session.get(CanonicalEntity, entity_id)
        return _to_record(row) if row is not None else None

    async def update_entity_aliases(
        self, entity_id: UUID, aliases: Sequence[str]
    ) -> EntityRecord:
        row = await self._session.get(CanonicalEntity, entity_id)
        if row is None:
            raise EntityNotFoundError(entity_id)

        row.aliases = list(aliases)
        await self._session.flush()
        return _to_record(row)

    async def _select(
        self,
        stmt: Select[tuple[CanonicalEntity]],
        operation: str,
        entity_type: EntityType,
    ) -> list[EntityRecord]:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("%s failed for %s: %s", operation, entity_type.value, e)
            raise StoreQueryError(f"{operation} failed for {entity_type.value}") from e
        return [_to_record(row) for row in result.scalars().all()]

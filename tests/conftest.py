"""Shared pytest fixtures for FoodLink tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from foodlink.config import settings
from foodlink.exceptions import StoreQueryError
from foodlink.models import Base, EntityType
from foodlink.resolution.schemas import ResolutionInput
from foodlink.store.base import EntityRecord

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


# Use a separate test database to avoid polluting development data
TEST_DATABASE_URL = settings.database_url.replace("/foodlink", "/foodlink_test")


class FakeEntityStore:
    """In-memory entity store with call recording and failure injection.

    Set ``fail_on`` to a method name to make that lookup raise, and
    ``fail_create_names`` to make creation of specific names raise.
    """

    def __init__(self) -> None:
        self.entities: dict[UUID, EntityRecord] = {}
        self.calls: list[tuple[str, EntityType | UUID | None]] = []
        self.fail_on: set[str] = set()
        self.fail_create_names: set[str] = set()

    def add(
        self,
        name: str,
        entity_type: EntityType = EntityType.RESTAURANT,
        aliases: Sequence[str] = (),
    ) -> EntityRecord:
        record = EntityRecord(
            entity_id=uuid4(), name=name, entity_type=entity_type, aliases=list(aliases)
        )
        self.entities[record.entity_id] = record
        return record

    def of_type(self, entity_type: EntityType) -> list[EntityRecord]:
        return [e for e in self.entities.values() if e.entity_type == entity_type]

    def _record(self, method: str, arg: EntityType | UUID | None) -> None:
        self.calls.append((method, arg))
        if method in self.fail_on:
            raise ConnectionError(f"{method}: store unreachable")

    def call_count(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)

    async def find_by_type_and_names(
        self, entity_type: EntityType, names: Sequence[str]
    ) -> list[EntityRecord]:
        self._record("find_by_type_and_names", entity_type)
        wanted = {n.strip().lower() for n in names}
        return [e for e in self.of_type(entity_type) if e.name.strip().lower() in wanted]

    async def find_by_type_with_any_alias(
        self, entity_type: EntityType, candidates: Sequence[str]
    ) -> list[EntityRecord]:
        self._record("find_by_type_with_any_alias", entity_type)
        wanted = {c.strip().lower() for c in candidates}
        return [
            e
            for e in self.of_type(entity_type)
            if any(a.strip().lower() in wanted for a in e.aliases)
        ]

    async def find_all_by_type(self, entity_type: EntityType) -> list[EntityRecord]:
        self._record("find_all_by_type", entity_type)
        return self.of_type(entity_type)

    async def create_entity(
        self, entity_type: EntityType, name: str, aliases: Sequence[str]
    ) -> EntityRecord:
        self._record("create_entity", entity_type)
        if name in self.fail_create_names:
            raise RuntimeError(f"unique constraint violated for {name}")
        return self.add(name, entity_type, aliases)

    async def fetch_entity(self, entity_id: UUID) -> EntityRecord | None:
        self._record("fetch_entity", entity_id)
        record = self.entities.get(entity_id)
        return replace(record, aliases=list(record.aliases)) if record is not None else None

    async def update_entity_aliases(
        self, entity_id: UUID, aliases: Sequence[str]
    ) -> EntityRecord:
        self._record("update_entity_aliases", entity_id)
        record = self.entities[entity_id]
        record.aliases = list(aliases)
        return record


class BrokenLookupStore(FakeEntityStore):
    """Store whose lookups fail with the store's own error type."""

    async def find_by_type_and_names(
        self, entity_type: EntityType, names: Sequence[str]
    ) -> list[EntityRecord]:
        raise StoreQueryError("find_by_type_and_names failed")


@pytest.fixture
def store() -> FakeEntityStore:
    return FakeEntityStore()


@pytest.fixture
def broken_store() -> BrokenLookupStore:
    return BrokenLookupStore()


MakeInput = Callable[..., ResolutionInput]


@pytest.fixture
def make_input() -> MakeInput:
    """Factory fixture for ResolutionInput instances."""
    counter = iter(range(1, 1_000_000))

    def _make(
        name: str,
        *,
        entity_type: EntityType = EntityType.RESTAURANT,
        temp_id: str | None = None,
        original_text: str | None = None,
        aliases: list[str] | None = None,
    ) -> ResolutionInput:
        return ResolutionInput(
            temp_id=temp_id or f"t{next(counter)}",
            normalized_name=name,
            original_text=original_text if original_text is not None else name,
            entity_type=entity_type,
            aliases=aliases or [],
        )

    return _make


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine; tables are created and dropped around it."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Database session whose transaction is rolled back after the test."""
    async_session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        async with session.begin():
            yield session
            await session.rollback()

"""Integration tests for SqlEntityStore against PostgreSQL.

Run with: pytest -m integration
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from foodlink.exceptions import EntityNotFoundError
from foodlink.models.enums import EntityType, ResolutionTier
from foodlink.resolution.merge import MergeCoordinator
from foodlink.resolution.resolver import EntityResolver
from foodlink.resolution.schemas import ResolutionInput
from foodlink.store.sql import SqlEntityStore

# Mark all tests in this module as integration tests
pytestmark = pytest.mark.integration


@pytest.fixture
def sql_store(db_session):
    return SqlEntityStore(db_session)


class TestLookups:
    """Bulk lookups are type scoped and ignore case."""

    async def test_find_by_names(self, sql_store):
        created = await sql_store.create_entity(EntityType.RESTAURANT, "Franklin BBQ", [])
        await sql_store.create_entity(EntityType.DISH_OR_CATEGORY, "Franklin BBQ", [])

        rows = await sql_store.find_by_type_and_names(EntityType.RESTAURANT, [" franklin bbq"])

        assert [r.entity_id for r in rows] == [created.entity_id]

    async def test_find_by_alias(self, sql_store):
        created = await sql_store.create_entity(
            EntityType.RESTAURANT, "Franklin's BBQ", ["Franklin Barbecue"]
        )

        rows = await sql_store.find_by_type_with_any_alias(
            EntityType.RESTAURANT, ["FRANKLIN BARBECUE", "nope"]
        )

        assert [r.entity_id for r in rows] == [created.entity_id]

    async def test_blank_candidates_skip_query(self, sql_store):
        assert await sql_store.find_by_type_and_names(EntityType.RESTAURANT, ["", "  "]) == []
        assert await sql_store.find_by_type_with_any_alias(EntityType.RESTAURANT, []) == []

    async def test_find_all_by_type(self, sql_store):
        await sql_store.create_entity(EntityType.DISH_ATTRIBUTE, "smoky", [])
        await sql_store.create_entity(EntityType.DISH_ATTRIBUTE, "crispy", [])
        await sql_store.create_entity(EntityType.RESTAURANT_ATTRIBUTE, "cozy", [])

        rows = await sql_store.find_all_by_type(EntityType.DISH_ATTRIBUTE)

        assert {r.name for r in rows} == {"smoky", "crispy"}


class TestWrites:
    """Entity creation and alias updates."""

    async def test_fetch_missing(self, sql_store):
        assert await sql_store.fetch_entity(uuid4()) is None

    async def test_update_aliases(self, sql_store):
        created = await sql_store.create_entity(EntityType.RESTAURANT, "Uchi", ["Uchi"])

        updated = await sql_store.update_entity_aliases(created.entity_id, ["Uchi", "Uchi Austin"])

        assert updated.aliases == ["Uchi", "Uchi Austin"]
        fetched = await sql_store.fetch_entity(created.entity_id)
        assert fetched is not None
        assert fetched.aliases == ["Uchi", "Uchi Austin"]

    async def test_update_missing(self, sql_store):
        with pytest.raises(EntityNotFoundError):
            await sql_store.update_entity_aliases(uuid4(), ["x"])


class TestResolutionAgainstDatabase:
    """The tier pipeline over the SQL store."""

    async def test_all_tiers(self, sql_store):
        exact = await sql_store.create_entity(EntityType.RESTAURANT, "Uchi", [])
        alias = await sql_store.create_entity(EntityType.RESTAURANT, "Suerte ATX", ["Suerte"])
        fuzzy = await sql_store.create_entity(EntityType.RESTAURANT, "Franklin's BBQ", [])
        inputs = [
            ResolutionInput(
                temp_id=f"t{n}", normalized_name=name, original_text=name,
                entity_type=EntityType.RESTAURANT,
            )
            for n, name in enumerate(["uchi", "Suerte", "Franklins BBQ", "Dai Due"])
        ]

        result = await EntityResolver(sql_store).resolve_batch(inputs)

        tiers = [(r.resolution_tier, r.entity_id) for r in result.resolution_results]
        assert tiers[:3] == [
            (ResolutionTier.EXACT, exact.entity_id),
            (ResolutionTier.ALIAS, alias.entity_id),
            (ResolutionTier.FUZZY, fuzzy.entity_id),
        ]
        assert tiers[3][0] == ResolutionTier.NEW
        created = await sql_store.fetch_entity(tiers[3][1])
        assert created is not None
        assert created.aliases == ["Dai Due"]

    async def test_alias_tier_scenario(self, sql_store):
        entity = await sql_store.create_entity(
            EntityType.RESTAURANT, "Franklin's BBQ", ["Franklin Barbecue"]
        )
        item = ResolutionInput(
            temp_id="t1", normalized_name="Franklin Barbecue", original_text="Franklin Barbecue",
            entity_type=EntityType.RESTAURANT,
        )

        result = await EntityResolver(sql_store).resolve_batch([item])

        [r] = result.resolution_results
        assert r.resolution_tier == ResolutionTier.ALIAS
        assert r.confidence == 0.95
        assert r.entity_id == entity.entity_id
        assert result.performance_metrics.alias_matches == 1

    async def test_merge(self, sql_store):
        source = await sql_store.create_entity(EntityType.RESTAURANT, "Franklins", ["Franklins"])
        target = await sql_store.create_entity(EntityType.RESTAURANT, "Franklin BBQ", ["Franklin BBQ"])

        result = await MergeCoordinator(sql_store).merge_entities(
            source.entity_id, target.entity_id, EntityType.RESTAURANT
        )

        assert result.aliases_added == 1
        fetched = await sql_store.fetch_entity(target.entity_id)
        assert fetched is not None
        assert fetched.aliases == ["Franklins", "Franklin BBQ"]

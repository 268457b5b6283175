"""Tests for EntityResolver batch resolution.

Uses the in-memory FakeEntityStore from conftest; no database required.
"""

import pytest

from foodlink.exceptions import StoreQueryError, ValidationError
from foodlink.models.enums import AttributeScope, EntityType, ResolutionTier
from foodlink.resolution.aliases import AliasManager
from foodlink.resolution.config import DEFAULT_RESOLUTION_CONFIG, AliasConfig, ResolutionConfig
from foodlink.resolution.resolver import EntityResolver, chunked, compute_metrics
from foodlink.resolution.schemas import ContextualAttributeInput, ResolutionResult


@pytest.fixture
def resolver(store):
    return EntityResolver(store)


class TestTiers:
    """Each tier end to end through resolve_batch."""

    async def test_exact(self, store, resolver, make_input):
        entity = store.add("Franklin BBQ")
        item = make_input("Franklin BBQ")

        result = await resolver.resolve_batch([item])

        [r] = result.resolution_results
        assert r.resolution_tier == ResolutionTier.EXACT
        assert r.confidence == 1.0
        assert r.entity_id == entity.entity_id
        assert result.temp_id_to_entity_id == {item.temp_id: entity.entity_id}
        assert result.new_entities_created == 0

    async def test_alias(self, store, resolver, make_input):
        entity = store.add("Franklin's BBQ", aliases=["Franklin Barbecue"])

        result = await resolver.resolve_batch([make_input("Franklin Barbecue")])

        [r] = result.resolution_results
        assert r.resolution_tier == ResolutionTier.ALIAS
        assert r.confidence == 0.95
        assert r.entity_id == entity.entity_id

    async def test_fuzzy(self, store, resolver, make_input):
        entity = store.add("Franklin's BBQ")

        result = await resolver.resolve_batch(
            [make_input("Franklins BBQ")], {"fuzzy_match_threshold": 0.7}
        )

        [r] = result.resolution_results
        assert r.resolution_tier == ResolutionTier.FUZZY
        assert r.confidence > 0.7
        assert r.entity_id == entity.entity_id
        assert r.matched_name == "Franklin's BBQ"

    async def test_new(self, store, resolver, make_input):
        item = make_input("Veracruz All Natural", original_text="veracruz tacos")

        result = await resolver.resolve_batch([item])

        [r] = result.resolution_results
        assert r.resolution_tier == ResolutionTier.NEW
        assert r.confidence == 1.0
        created = store.entities[r.entity_id]
        assert created.name == "Veracruz All Natural"
        assert created.entity_type == EntityType.RESTAURANT
        assert created.aliases == ["veracruz tacos"]
        assert r.validated_aliases == ["veracruz tacos"]
        assert result.new_entities_created == 1

    async def test_new_entity_aliases_merge_input_aliases(self, store, resolver, make_input):
        item = make_input(
            "Tonkotsu Ramen",
            entity_type=EntityType.DISH_OR_CATEGORY,
            original_text="tonkotsu",
            aliases=["Tonkotsu", "pork bone ramen"],
        )

        result = await resolver.resolve_batch([item])

        created = store.entities[result.resolution_results[0].entity_id]
        assert created.aliases == ["Tonkotsu", "pork bone ramen"]

    async def test_exact_wins_over_alias(self, store, resolver, make_input):
        """An input matching one entity by name and another by alias resolves exactly."""
        by_name = store.add("Suerte")
        store.add("Suerte ATX", aliases=["Suerte"])

        result = await resolver.resolve_batch([make_input("Suerte")])

        [r] = result.resolution_results
        assert r.resolution_tier == ResolutionTier.EXACT
        assert r.entity_id == by_name.entity_id

    async def test_fuzzy_disabled_creates(self, store, resolver, make_input):
        store.add("Franklin's BBQ")

        result = await resolver.resolve_batch(
            [make_input("Franklins BBQ")], {"enable_fuzzy_matching": False}
        )

        assert result.resolution_results[0].resolution_tier == ResolutionTier.NEW
        assert store.call_count("find_all_by_type") == 0

    async def test_fuzzy_edit_distance_gate(self, store, resolver, make_input):
        store.add("Franklin's BBQ")

        result = await resolver.resolve_batch(
            [make_input("Franklin BBQ")],
            {"fuzzy_match_threshold": 0.5, "max_edit_distance": 1},
        )

        assert result.resolution_results[0].resolution_tier == ResolutionTier.NEW

    async def test_fuzzy_matches_respect_gates(self, store, resolver, make_input):
        store.add("Franklin's BBQ")
        store.add("Micklethwait Craft Meats")
        store.add("La Barbecue")
        inputs = [
            make_input("Franklins BBQ"),
            make_input("Micklethwait Craft Meat"),
            make_input("La Barbeque"),
            make_input("Kemuri Tatsu-Ya"),
        ]
        config = ResolutionConfig(fuzzy_match_threshold=0.8, max_edit_distance=2)

        result = await resolver.resolve_batch(inputs, config)

        fuzzy = result.results_by_tier(ResolutionTier.FUZZY)
        assert len(fuzzy) == 3
        for r in fuzzy:
            assert r.confidence >= 0.8


class TestBatchInvariants:
    """Result shape, ordering, chunking and partitioning."""

    async def test_one_result_per_input_in_order(self, store, resolver, make_input):
        store.add("Ramen", EntityType.DISH_OR_CATEGORY)
        store.add("Uchi")
        inputs = [
            make_input("Ramen", entity_type=EntityType.DISH_OR_CATEGORY),
            make_input("Uchi"),
            make_input("Spicy", entity_type=EntityType.DISH_ATTRIBUTE),
            make_input("Uchiko"),
            make_input("Cozy", entity_type=EntityType.RESTAURANT_ATTRIBUTE),
        ]

        result = await resolver.resolve_batch(inputs)

        assert [r.temp_id for r in result.resolution_results] == [i.temp_id for i in inputs]
        assert result.performance_metrics.total_processed == len(inputs)

    async def test_types_never_cross(self, store, resolver, make_input):
        store.add("Ramen", EntityType.RESTAURANT)

        result = await resolver.resolve_batch(
            [make_input("Ramen", entity_type=EntityType.DISH_OR_CATEGORY)]
        )

        [r] = result.resolution_results
        assert r.resolution_tier == ResolutionTier.NEW
        assert store.entities[r.entity_id].entity_type == EntityType.DISH_OR_CATEGORY

    async def test_chunks_processed_separately(self, store, resolver, make_input):
        inputs = [make_input(f"Taqueria {n}") for n in range(5)]

        result = await resolver.resolve_batch(
            inputs, {"batch_size": 2, "enable_fuzzy_matching": False}
        )

        assert store.call_count("find_by_type_and_names") == 3
        assert len(result.resolution_results) == 5
        assert result.new_entities_created == 5

    async def test_empty_batch(self, store, resolver):
        result = await resolver.resolve_batch([])

        assert result.resolution_results == []
        assert result.temp_id_to_entity_id == {}
        assert result.performance_metrics.total_processed == 0
        assert result.performance_metrics.processing_time_ms >= 1
        assert store.calls == []

    async def test_duplicate_temp_id_rejected(self, store, resolver, make_input):
        inputs = [make_input("Uchi", temp_id="r1"), make_input("Uchiko", temp_id="r1")]

        with pytest.raises(ValidationError, match="r1"):
            await resolver.resolve_batch(inputs)
        assert store.calls == []

    async def test_duplicate_new_names_each_create(self, store, resolver, make_input):
        """Within one batch, unmatched inputs are not matched against each other."""
        result = await resolver.resolve_batch([make_input("Odd Duck"), make_input("Odd Duck")])

        ids = {r.entity_id for r in result.resolution_results}
        assert len(ids) == 2
        assert result.new_entities_created == 2


class TestFailures:
    """Lookup failures abort; creation failures are reported inline."""

    async def test_lookup_failure_aborts(self, store, resolver, make_input):
        store.fail_on.add("find_by_type_with_any_alias")

        with pytest.raises(StoreQueryError):
            await resolver.resolve_batch([make_input("Uchi"), make_input("Uchiko")])
        assert store.call_count("create_entity") == 0

    async def test_store_error_propagates_unchanged(self, broken_store, make_input):
        resolver = EntityResolver(broken_store)

        with pytest.raises(StoreQueryError, match="find_by_type_and_names failed"):
            await resolver.resolve_batch([make_input("Uchi")])

    async def test_creation_failure_isolated(self, store, resolver, make_input):
        store.fail_create_names.add("Bad Place")
        bad = make_input("Bad Place")
        good = make_input("Good Place")

        result = await resolver.resolve_batch([bad, good])

        failed, created = result.resolution_results
        assert failed.resolution_tier == ResolutionTier.NEW
        assert failed.entity_id is None
        assert failed.confidence == 0.0
        assert "Bad Place" in failed.error
        assert created.entity_id is not None
        assert result.temp_id_to_entity_id == {good.temp_id: created.entity_id}
        assert result.new_entities_created == 1
        assert result.performance_metrics.new_entities_created == 1
        assert result.performance_metrics.creation_failures == 1


class TestDeferredCreation:
    """create_missing=False reports unmatched inputs without writing."""

    async def test_unmatched(self, store, resolver, make_input):
        existing = store.add("Uchi")
        item = make_input("Patio Place", entity_type=EntityType.DISH_ATTRIBUTE)

        result = await resolver.resolve_batch(
            [make_input("Uchi"), item], {"create_missing": False}
        )

        matched, deferred = result.resolution_results
        assert matched.entity_id == existing.entity_id
        assert deferred.resolution_tier == ResolutionTier.UNMATCHED
        assert deferred.entity_id is None
        assert deferred.confidence == 0.0
        # "patio" is a restaurant-scoped term
        assert deferred.validated_aliases == []
        assert store.call_count("create_entity") == 0
        assert result.performance_metrics.unmatched == 1
        assert result.new_entities_created == 0


class TestConfig:
    """Per-call overrides against resolver defaults."""

    async def test_overrides_do_not_mutate_defaults(self, store, make_input):
        resolver = EntityResolver(store)

        await resolver.resolve_batch(
            [make_input("Uchi")], {"batch_size": 1, "enable_fuzzy_matching": False}
        )

        assert DEFAULT_RESOLUTION_CONFIG.batch_size == 100
        assert DEFAULT_RESOLUTION_CONFIG.enable_fuzzy_matching is True

    async def test_resolver_default_config(self, store, make_input):
        store.add("Franklin's BBQ")
        resolver = EntityResolver(
            store, default_config=ResolutionConfig(enable_fuzzy_matching=False)
        )

        result = await resolver.resolve_batch([make_input("Franklins BBQ")])

        assert result.resolution_results[0].resolution_tier == ResolutionTier.NEW

    async def test_unknown_override_rejected(self, resolver, make_input):
        with pytest.raises(ValidationError, match="fuzzy"):
            await resolver.resolve_batch([make_input("Uchi")], {"fuzzy": False})

    async def test_default_alias_manager_drops_cross_scope_alias(self, resolver, make_input):
        result = await resolver.resolve_batch(
            [make_input("patio", entity_type=EntityType.DISH_ATTRIBUTE)]
        )

        assert result.resolution_results[0].validated_aliases == []

    async def test_alias_manager_config_applies_to_new_entities(self, store, make_input):
        resolver = EntityResolver(
            store, alias_manager=AliasManager(AliasConfig(prevent_cross_scope=False))
        )

        result = await resolver.resolve_batch(
            [make_input("patio", entity_type=EntityType.DISH_ATTRIBUTE)]
        )

        [r] = result.resolution_results
        assert r.validated_aliases == ["patio"]
        assert store.entities[r.entity_id].aliases == ["patio"]

    async def test_alias_manager_max_length(self, store, make_input):
        resolver = EntityResolver(
            store, alias_manager=AliasManager(AliasConfig(max_alias_length=5))
        )

        result = await resolver.resolve_batch(
            [make_input("Veracruz All Natural", original_text="veracruz tacos")]
        )

        assert store.entities[result.resolution_results[0].entity_id].aliases == []


class TestContextualAttributes:
    """resolve_contextual_attributes maps scope to attribute entity type."""

    async def test_scope_to_type(self, store, resolver):
        spicy = store.add("spicy", EntityType.DISH_ATTRIBUTE)
        attributes = [
            ContextualAttributeInput(
                temp_id="m1_dish_attr_selective_spicy",
                attribute_name="spicy",
                original_text="spicy",
                scope=AttributeScope.DISH,
            ),
            ContextualAttributeInput(
                temp_id="m1_restaurant_attr_patio",
                attribute_name="patio",
                original_text="patio",
                scope=AttributeScope.RESTAURANT,
            ),
        ]

        result = await resolver.resolve_contextual_attributes(attributes)

        dish, restaurant = result.resolution_results
        assert dish.resolution_tier == ResolutionTier.EXACT
        assert dish.entity_id == spicy.entity_id
        assert restaurant.resolution_tier == ResolutionTier.NEW
        created = store.entities[restaurant.entity_id]
        assert created.entity_type == EntityType.RESTAURANT_ATTRIBUTE
        assert created.aliases == ["patio"]


class TestMetrics:
    """Test compute_metrics and chunked helpers."""

    async def test_metrics_from_batch(self, store, resolver, make_input):
        store.add("Uchi")
        store.add("Suerte ATX", aliases=["Suerte"])

        result = await resolver.resolve_batch(
            [make_input("Uchi"), make_input("Suerte"), make_input("Dai Due")]
        )

        m = result.performance_metrics
        assert m.total_processed == 3
        assert m.exact_matches == 1
        assert m.alias_matches == 1
        assert m.fuzzy_matches == 0
        assert m.new_entities_created == 1
        assert m.average_confidence == 0.98

    def test_empty_metrics(self):
        m = compute_metrics([], 0)
        assert m.total_processed == 0
        assert m.average_confidence == 0.0
        assert m.processing_time_ms == 1

    def test_failed_creation_counts_zero_confidence(self, make_input):
        item = make_input("Bad Place")
        results = [
            ResolutionResult(
                temp_id=item.temp_id,
                entity_id=None,
                confidence=0.0,
                resolution_tier=ResolutionTier.NEW,
                original_input=item,
            )
        ]
        m = compute_metrics(results, 12)
        assert m.new_entities_created == 0
        assert m.creation_failures == 1
        assert m.processing_time_ms == 12

    def test_chunked(self, make_input):
        items = [make_input(str(n)) for n in range(5)]
        assert [len(c) for c in chunked(items, 2)] == [2, 2, 1]

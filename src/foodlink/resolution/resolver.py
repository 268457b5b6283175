"""Batch entity resolution.

Algorithm overview:
1. Merge per-call overrides onto the resolver's default config
2. Split inputs into chunks of ``batch_size``; process chunks sequentially
3. Within a chunk, partition by entity type (tiers never compare across types)
   and run per partition:
   a. Exact: name equality                      → confidence 1.0
   b. Alias: any input string is an alias       → confidence 0.95
   c. Fuzzy: similarity + edit distance gates   → confidence = similarity
   d. New: create the entity                    → confidence 1.0
      (creation failure → entity_id None, confidence 0.0, still tier new)
4. Assemble one result per temp_id, tier priority exact > alias > fuzzy > new
5. Aggregate metrics across chunks

Failure semantics:
- A bulk lookup failure (tiers a-c) raises StoreQueryError for the whole call
- A creation failure (tier d) is reported inline and never raises

Concurrency: calls are not serialized against each other. Two concurrent
batches resolving the same new name can both create an entity.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from foodlink.exceptions import ValidationError
from foodlink.models.enums import EntityType, ResolutionTier
from foodlink.resolution.aliases import AliasManager
from foodlink.resolution.config import DEFAULT_RESOLUTION_CONFIG, ResolutionConfig
from foodlink.resolution.contextual import contextual_attribute_to_input
from foodlink.resolution.creation import Created, create_entity, entity_kind_for
from foodlink.resolution.matchers import AliasMatcher, ExactMatcher, FuzzyMatcher, TierMatch
from foodlink.resolution.schemas import (
    BatchResolutionResult,
    ContextualAttributeInput,
    ResolutionInput,
    ResolutionMetrics,
    ResolutionResult,
)
from foodlink.store.base import EntityStore

logger = logging.getLogger(__name__)

ConfigOverrides = ResolutionConfig | Mapping[str, Any] | None


def chunked(items: Sequence[ResolutionInput], size: int) -> Iterator[Sequence[ResolutionInput]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def group_by_entity_type(
    inputs: Sequence[ResolutionInput],
) -> dict[EntityType, list[ResolutionInput]]:
    """Partition inputs by type, keeping first-seen type order and input order."""
    grouped: dict[EntityType, list[ResolutionInput]] = {}
    for item in inputs:
        grouped.setdefault(item.entity_type, []).append(item)
    return grouped


def _check_batch(inputs: Sequence[ResolutionInput]) -> None:
    duplicates = sorted(t for t, n in Counter(i.temp_id for i in inputs).items() if n > 1)
    if duplicates:
        raise ValidationError(f"Duplicate temp_id(s) in batch: {', '.join(duplicates)}")
    for entity_type in {i.entity_type for i in inputs}:
        entity_kind_for(entity_type)


def compute_metrics(results: Sequence[ResolutionResult], elapsed_ms: int) -> ResolutionMetrics:
    """Per-tier counts, elapsed time (at least 1 ms) and mean confidence."""
    resolved = Counter(r.resolution_tier for r in results if r.entity_id is not None)
    total_confidence = sum(r.confidence for r in results)
    average = total_confidence / len(results) if results else 0.0

    return ResolutionMetrics(
        total_processed=len(results),
        exact_matches=resolved[ResolutionTier.EXACT],
        alias_matches=resolved[ResolutionTier.ALIAS],
        fuzzy_matches=resolved[ResolutionTier.FUZZY],
        new_entities_created=resolved[ResolutionTier.NEW],
        creation_failures=sum(
            1 for r in results if r.resolution_tier == ResolutionTier.NEW and r.entity_id is None
        ),
        unmatched=sum(1 for r in results if r.resolution_tier == ResolutionTier.UNMATCHED),
        processing_time_ms=max(elapsed_ms, 1),
        average_confidence=round(average, 2),
    )


class EntityResolver:
    """Tiered batch resolver over an entity store.

    Usage:
        async with async_session_factory() as session:
            resolver = EntityResolver(SqlEntityStore(session))
            result = await resolver.resolve_batch(inputs, {"fuzzy_match_threshold": 0.8})
            await session.commit()
    """

    def __init__(
        self,
        store: EntityStore,
        *,
        alias_manager: AliasManager | None = None,
        default_config: ResolutionConfig = DEFAULT_RESOLUTION_CONFIG,
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Entity store to read from and create entities in.
            alias_manager: Alias service for new-entity aliases.
            default_config: Config that per-call overrides are merged onto.
        """
        self._store = store
        self._aliases = alias_manager or AliasManager()
        self._default_config = default_config

    async def resolve_batch(
        self,
        inputs: Sequence[ResolutionInput],
        config: ConfigOverrides = None,
    ) -> BatchResolutionResult:
        """Resolve every input to a canonical entity id.

        Returns:
            BatchResolutionResult with exactly one result per input, in input order.

        Raises:
            ValidationError: Duplicate temp ids or an unsupported entity type.
            StoreQueryError: A bulk tier lookup failed.
        """
        started = time.perf_counter()
        resolve_config = self._default_config.merged(config)
        _check_batch(inputs)

        logger.info(
            "Starting batch entity resolution: %d inputs, batch_size=%d",
            len(inputs),
            resolve_config.batch_size,
        )

        results: list[ResolutionResult] = []
        new_entities = 0
        try:
            for chunk in chunked(inputs, resolve_config.batch_size):
                chunk_results = await self._process_chunk(chunk, resolve_config)
                results.extend(chunk_results)
                new_entities += sum(
                    1
                    for r in chunk_results
                    if r.resolution_tier == ResolutionTier.NEW and r.entity_id is not None
                )
        except Exception as e:
            logger.error(
                "Batch entity resolution failed after %.0f ms (%d inputs): %s",
                (time.perf_counter() - started) * 1000,
                len(inputs),
                e,
            )
            raise

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        metrics = compute_metrics(results, elapsed_ms)
        logger.info(
            "Batch entity resolution completed in %d ms: exact=%d alias=%d fuzzy=%d new=%d "
            "failed=%d unmatched=%d avg_confidence=%.2f",
            metrics.processing_time_ms,
            metrics.exact_matches,
            metrics.alias_matches,
            metrics.fuzzy_matches,
            metrics.new_entities_created,
            metrics.creation_failures,
            metrics.unmatched,
            metrics.average_confidence,
        )

        return BatchResolutionResult(
            temp_id_to_entity_id={
                r.temp_id: r.entity_id for r in results if r.entity_id is not None
            },
            resolution_results=results,
            new_entities_created=new_entities,
            performance_metrics=metrics,
        )

    async def resolve_contextual_attributes(
        self,
        attributes: Sequence[ContextualAttributeInput],
        config: ConfigOverrides = None,
    ) -> BatchResolutionResult:
        """Resolve scope-tagged attributes as dish or restaurant attributes."""
        logger.info("Resolving %d contextual attributes", len(attributes))
        inputs = [contextual_attribute_to_input(attr) for attr in attributes]
        return await self.resolve_batch(inputs, config)

    async def _process_chunk(
        self, chunk: Sequence[ResolutionInput], config: ResolutionConfig
    ) -> list[ResolutionResult]:
        by_temp_id: dict[str, ResolutionResult] = {}
        # Partitions run sequentially to bound concurrent store load
        for entity_type, partition in group_by_entity_type(chunk).items():
            by_temp_id.update(await self._resolve_partition(partition, entity_type, config))
        return [by_temp_id[item.temp_id] for item in chunk]

    async def _resolve_partition(
        self,
        inputs: list[ResolutionInput],
        entity_type: EntityType,
        config: ResolutionConfig,
    ) -> dict[str, ResolutionResult]:
        """Run the tier pipeline for one entity type.

        Results are inserted in tier priority order and never overwritten, so
        each temp id appears exactly once.
        """
        results: dict[str, ResolutionResult] = {}

        def record(matches: dict[str, TierMatch], tier: ResolutionTier) -> list[ResolutionInput]:
            for item in inputs:
                match = matches.get(item.temp_id)
                if match is not None and item.temp_id not in results:
                    results[item.temp_id] = ResolutionResult(
                        temp_id=item.temp_id,
                        entity_id=match.entity_id,
                        confidence=match.confidence,
                        resolution_tier=tier,
                        original_input=item,
                        matched_name=match.matched_name,
                    )
            remaining = [item for item in inputs if item.temp_id not in results]
            logger.debug(
                "%s tier (%s): %d matched, %d remaining",
                tier.value,
                entity_type.value,
                len(matches),
                len(remaining),
            )
            return remaining

        unmatched = record(
            await ExactMatcher(self._store).match(inputs, entity_type), ResolutionTier.EXACT
        )
        unmatched = record(
            await AliasMatcher(self._store).match(unmatched, entity_type), ResolutionTier.ALIAS
        )
        if config.enable_fuzzy_matching:
            fuzzy = FuzzyMatcher(
                self._store,
                threshold=config.fuzzy_match_threshold,
                max_edit_distance=config.max_edit_distance,
            )
            unmatched = record(await fuzzy.match(unmatched, entity_type), ResolutionTier.FUZZY)

        for result in await self._resolve_unmatched(unmatched, entity_type, config):
            results.setdefault(result.temp_id, result)

        return results

    async def _resolve_unmatched(
        self,
        inputs: list[ResolutionInput],
        entity_type: EntityType,
        config: ResolutionConfig,
    ) -> list[ResolutionResult]:
        """Create entities for inputs no tier matched (or defer them)."""
        results: list[ResolutionResult] = []
        for item in inputs:
            aliases = self._aliases.prepare_new_entity_aliases(
                item.aliases, item.original_text, entity_type
            ).valid_aliases

            if not config.create_missing:
                results.append(
                    ResolutionResult(
                        temp_id=item.temp_id,
                        entity_id=None,
                        confidence=0.0,
                        resolution_tier=ResolutionTier.UNMATCHED,
                        original_input=item,
                        validated_aliases=aliases,
                    )
                )
                continue

            outcome = await create_entity(
                self._store,
                temp_id=item.temp_id,
                entity_type=entity_type,
                name=item.normalized_name,
                aliases=aliases,
            )
            if isinstance(outcome, Created):
                results.append(
                    ResolutionResult(
                        temp_id=item.temp_id,
                        entity_id=outcome.entity.entity_id,
                        confidence=1.0,
                        resolution_tier=ResolutionTier.NEW,
                        original_input=item,
                        matched_name=outcome.entity.name,
                        validated_aliases=aliases,
                    )
                )
            else:
                results.append(
                    ResolutionResult(
                        temp_id=item.temp_id,
                        entity_id=None,
                        confidence=0.0,
                        resolution_tier=ResolutionTier.NEW,
                        original_input=item,
                        validated_aliases=aliases,
                        error=str(outcome.error),
                    )
                )
        return results

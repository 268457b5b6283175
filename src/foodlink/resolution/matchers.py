"""Matching tiers: exact name, alias overlap, fuzzy similarity.

Every matcher takes the still-unmatched inputs of one entity type and
returns ``{temp_id: TierMatch}`` for the inputs it matched. Inputs without a
match are simply absent. A failed bulk lookup is logged and raised as
``StoreQueryError``; it aborts the whole batch.

Fuzzy scoring (rapidfuzz, on lowercased trimmed strings):
- similarity: ``fuzz.ratio / 100``, normalized Indel similarity, symmetric
- edit distance: Levenshtein distance
A term pair qualifies when ``similarity >= threshold`` and
``edit_distance <= max_edit_distance``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from uuid import UUID

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

from foodlink.exceptions import StoreQueryError
from foodlink.models.enums import EntityType, ResolutionTier
from foodlink.resolution.aliases import alias_key
from foodlink.resolution.schemas import ResolutionInput
from foodlink.store.base import EntityRecord, EntityStore

logger = logging.getLogger(__name__)

EXACT_CONFIDENCE = 1.0
ALIAS_CONFIDENCE = 0.95


@dataclass
class TierMatch:
    """A single input matched to an existing entity."""

    temp_id: str
    entity_id: UUID
    confidence: float
    matched_name: str
    edit_distance: int | None = None
    """Set by the fuzzy tier only."""


def normalize_term(term: str) -> str:
    return term.strip().lower()


def similarity(a: str, b: str) -> float:
    """Normalized, symmetric string similarity in [0, 1]."""
    return fuzz.ratio(normalize_term(a), normalize_term(b)) / 100.0


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance between the normalized strings."""
    return Levenshtein.distance(normalize_term(a), normalize_term(b))


def find_best_fuzzy_match(
    search_terms: Sequence[str],
    candidates: Sequence[EntityRecord],
    *,
    threshold: float,
    max_edit_distance: int,
) -> tuple[EntityRecord, str, float, int] | None:
    """Best qualifying (entity, matched term, similarity, distance).

    Highest similarity wins; ties keep the first pair encountered.
    """
    searches = [normalize_term(term) for term in search_terms if term and term.strip()]
    best: tuple[EntityRecord, str, float, int] | None = None

    for candidate in candidates:
        for search in searches:
            for term in (candidate.name, *candidate.aliases):
                if not term:
                    continue
                normalized = normalize_term(term)
                score = fuzz.ratio(search, normalized) / 100.0
                if score < threshold:
                    continue
                # score_cutoff: anything above the cutoff comes back as cutoff + 1
                distance = Levenshtein.distance(search, normalized, score_cutoff=max_edit_distance)
                if distance > max_edit_distance:
                    continue
                if best is None or score > best[2]:
                    best = (candidate, term, score, distance)

    return best


class _StoreMatcher:
    """Shared lookup handling for matchers that query the store."""

    tier: ResolutionTier

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    async def _lookup(
        self,
        query: Awaitable[list[EntityRecord]],
        entity_type: EntityType,
        count: int,
    ) -> list[EntityRecord]:
        try:
            return await query
        except StoreQueryError:
            logger.error(
                "%s lookup failed for %d %s inputs", self.tier.value, count, entity_type.value
            )
            raise
        except Exception as e:
            logger.error(
                "%s lookup failed for %d %s inputs: %s",
                self.tier.value,
                count,
                entity_type.value,
                e,
            )
            raise StoreQueryError(f"{self.tier.value} lookup failed for {entity_type.value}") from e


class ExactMatcher(_StoreMatcher):
    """Tier 1: canonical name equality, ignoring case and surrounding whitespace.

    Punctuation is significant: "Franklin's BBQ" does not exact-match
    "Franklins BBQ".
    """

    tier = ResolutionTier.EXACT

    async def match(
        self, inputs: Sequence[ResolutionInput], entity_type: EntityType
    ) -> dict[str, TierMatch]:
        names = [i.normalized_name for i in inputs if i.normalized_name.strip()]
        if not names:
            return {}

        rows = await self._lookup(
            self._store.find_by_type_and_names(entity_type, names), entity_type, len(inputs)
        )

        by_name: dict[str, EntityRecord] = {}
        for row in rows:
            by_name.setdefault(alias_key(row.name), row)

        matches: dict[str, TierMatch] = {}
        for item in inputs:
            row = by_name.get(alias_key(item.normalized_name))
            if row is not None:
                matches[item.temp_id] = TierMatch(
                    temp_id=item.temp_id,
                    entity_id=row.entity_id,
                    confidence=EXACT_CONFIDENCE,
                    matched_name=row.name,
                )
        return matches


class AliasMatcher(_StoreMatcher):
    """Tier 2: any of an input's strings equals an entity alias, ignoring case."""

    tier = ResolutionTier.ALIAS

    async def match(
        self, inputs: Sequence[ResolutionInput], entity_type: EntityType
    ) -> dict[str, TierMatch]:
        candidates_by_input = {i.temp_id: i.candidate_strings() for i in inputs}
        all_candidates = [c for terms in candidates_by_input.values() for c in terms]
        if not all_candidates:
            return {}

        rows = await self._lookup(
            self._store.find_by_type_with_any_alias(entity_type, all_candidates),
            entity_type,
            len(inputs),
        )

        matches: dict[str, TierMatch] = {}
        for item in inputs:
            keys = {alias_key(c) for c in candidates_by_input[item.temp_id]}
            for row in rows:
                if any(alias_key(a) in keys for a in row.aliases):
                    matches[item.temp_id] = TierMatch(
                        temp_id=item.temp_id,
                        entity_id=row.entity_id,
                        confidence=ALIAS_CONFIDENCE,
                        matched_name=row.name,
                    )
                    break
        return matches


class FuzzyMatcher(_StoreMatcher):
    """Tier 3: best similarity over every entity of the type.

    Scans the full type partition. Cost is inputs × entities × term pairs, so
    it is meant for the small residue left by the first two tiers.
    """

    tier = ResolutionTier.FUZZY

    def __init__(self, store: EntityStore, *, threshold: float, max_edit_distance: int) -> None:
        super().__init__(store)
        self._threshold = threshold
        self._max_edit_distance = max_edit_distance

    async def match(
        self, inputs: Sequence[ResolutionInput], entity_type: EntityType
    ) -> dict[str, TierMatch]:
        if not inputs:
            return {}

        candidates = await self._lookup(
            self._store.find_all_by_type(entity_type), entity_type, len(inputs)
        )
        if not candidates:
            return {}

        matches: dict[str, TierMatch] = {}
        for item in inputs:
            best = find_best_fuzzy_match(
                item.candidate_strings(),
                candidates,
                threshold=self._threshold,
                max_edit_distance=self._max_edit_distance,
            )
            if best is None:
                continue
            entity, term, score, distance = best
            matches[item.temp_id] = TierMatch(
                temp_id=item.temp_id,
                entity_id=entity.entity_id,
                confidence=score,
                matched_name=term,
                edit_distance=distance,
            )
        return matches

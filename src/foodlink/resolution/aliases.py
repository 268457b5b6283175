"""Alias normalization, deduplication and scope validation.

The module-level functions are pure. ``AliasManager`` composes them for
merge preparation and incremental alias addition, adding logging.

Rules:
- Entries are trimmed; blank and over-length entries are dropped
- Duplicates compare on ``lower(trim(alias))``; the first-seen casing is kept
- Attribute entities reject aliases containing a term from the other scope.
  Matching is substring based, so "crispy-edged patio seating" is rejected
  for a dish attribute because it contains "patio".
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from foodlink.exceptions import ValidationError
from foodlink.models.enums import EntityType
from foodlink.resolution.config import DEFAULT_ALIAS_CONFIG, AliasConfig

logger = logging.getLogger(__name__)

# Restaurant-scoped terms that must not appear in dish attributes
RESTAURANT_SCOPED_TERMS: tuple[str, ...] = (
    "patio",
    "romantic",
    "family-friendly",
    "casual",
    "upscale",
    "dive bar",
    "food truck",
    "fine dining",
    "fast casual",
)

# Dish-scoped terms that must not appear in restaurant attributes
DISH_SCOPED_TERMS: tuple[str, ...] = (
    "spicy",
    "mild",
    "crispy",
    "tender",
    "juicy",
    "flaky",
    "house-made",
    "gluten-free",
    "dairy-free",
)

# Entity type → terms its aliases may not contain
BLOCKED_TERMS: dict[EntityType, tuple[str, ...]] = {
    EntityType.RESTAURANT: (),
    EntityType.DISH_OR_CATEGORY: (),
    EntityType.DISH_ATTRIBUTE: RESTAURANT_SCOPED_TERMS,
    EntityType.RESTAURANT_ATTRIBUTE: DISH_SCOPED_TERMS,
}


@dataclass
class DeduplicationResult:
    unique_aliases: list[str]
    duplicates_removed: int


@dataclass
class ScopeValidationResult:
    valid_aliases: list[str]
    violations: list[str]


@dataclass
class AliasMergeResult:
    """Outcome of merging alias lists."""

    merged_aliases: list[str]
    duplicates_removed: int
    violations: list[str] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]
    """Aliases dropped by scope validation (empty for a plain merge)."""


@dataclass
class AliasAddResult:
    updated_aliases: list[str]
    added: bool


def alias_key(alias: str) -> str:
    """Comparison key for case-insensitive alias identity."""
    return alias.strip().lower()


def coerce_entity_type(entity_type: EntityType | str) -> EntityType:
    """Return ``entity_type`` as an EntityType or raise ValidationError."""
    try:
        return EntityType(entity_type)
    except ValueError:
        raise ValidationError(f"Unknown entity type: {entity_type}") from None


def normalize_aliases(aliases: Iterable[str | None], max_alias_length: int) -> list[str]:
    """Trim entries and drop null, blank and over-length ones."""
    normalized: list[str] = []
    for alias in aliases:
        if not isinstance(alias, str):
            continue
        trimmed = alias.strip()
        if trimmed and len(trimmed) <= max_alias_length:
            normalized.append(trimmed)
    return normalized


def remove_duplicates(aliases: Sequence[str]) -> DeduplicationResult:
    """Drop case-insensitive repeats, keeping the first-seen casing.

    Idempotent: applying it to its own output removes nothing.
    """
    seen: set[str] = set()
    unique: list[str] = []
    duplicates = 0

    for alias in aliases:
        key = alias_key(alias)
        if key in seen:
            duplicates += 1
            continue
        seen.add(key)
        unique.append(alias)

    return DeduplicationResult(unique_aliases=unique, duplicates_removed=duplicates)


def merge_aliases(
    source_aliases: Sequence[str | None],
    target_aliases: Sequence[str | None],
    original_texts: Sequence[str | None] = (),
    config: AliasConfig = DEFAULT_ALIAS_CONFIG,
) -> AliasMergeResult:
    """Concatenate, normalize and (unless disabled) deduplicate alias lists."""
    combined = [*source_aliases, *target_aliases, *original_texts]
    normalized = normalize_aliases(combined, config.max_alias_length)

    if not config.deduplication_enabled:
        return AliasMergeResult(merged_aliases=normalized, duplicates_removed=0)

    dedup = remove_duplicates(normalized)
    return AliasMergeResult(
        merged_aliases=dedup.unique_aliases,
        duplicates_removed=dedup.duplicates_removed,
    )


def find_scope_violation(alias: str, entity_type: EntityType) -> str | None:
    """Return the blocked term ``alias`` contains for ``entity_type``, if any."""
    lowered = alias_key(alias)
    for term in BLOCKED_TERMS[entity_type]:
        if term in lowered:
            return term
    return None


def validate_scope_constraints(
    entity_type: EntityType | str,
    aliases: Sequence[str],
    config: AliasConfig = DEFAULT_ALIAS_CONFIG,
) -> ScopeValidationResult:
    """Split ``aliases`` into scope-valid aliases and violations.

    Raises:
        ValidationError: ``entity_type`` is not a known entity type.
    """
    entity_type = coerce_entity_type(entity_type)

    if not config.prevent_cross_scope or not BLOCKED_TERMS[entity_type]:
        return ScopeValidationResult(valid_aliases=list(aliases), violations=[])

    valid: list[str] = []
    violations: list[str] = []
    for alias in aliases:
        term = find_scope_violation(alias, entity_type)
        if term is None:
            valid.append(alias)
            continue
        violations.append(alias)
        logger.warning(
            "Scope violation: alias %r contains %r, not allowed for %s",
            alias,
            term,
            entity_type.value,
        )

    return ScopeValidationResult(valid_aliases=valid, violations=violations)


class AliasManager:
    """Stateless alias service used by resolution and merge operations.

    Usage:
        manager = AliasManager()
        result = manager.prepare_aliases_for_merge(
            source_aliases=["ramen"],
            target_aliases=["Ramen", "tonkotsu ramen"],
            entity_type=EntityType.DISH_OR_CATEGORY,
        )
    """

    def __init__(self, config: AliasConfig = DEFAULT_ALIAS_CONFIG) -> None:
        self._config = config

    @property
    def config(self) -> AliasConfig:
        return self._config

    def _effective(self, overrides: AliasConfig | Mapping[str, Any] | None) -> AliasConfig:
        return self._config.merged(overrides)

    def merge_aliases(
        self,
        source_aliases: Sequence[str | None],
        target_aliases: Sequence[str | None],
        original_texts: Sequence[str | None] = (),
        config: AliasConfig | Mapping[str, Any] | None = None,
    ) -> AliasMergeResult:
        result = merge_aliases(
            source_aliases, target_aliases, original_texts, self._effective(config)
        )
        logger.debug(
            "Merged aliases: %d in, %d out, %d duplicates removed",
            len(source_aliases) + len(target_aliases) + len(original_texts),
            len(result.merged_aliases),
            result.duplicates_removed,
        )
        return result

    def remove_duplicates(self, aliases: Sequence[str]) -> DeduplicationResult:
        return remove_duplicates(aliases)

    def validate_scope_constraints(
        self,
        entity_type: EntityType | str,
        aliases: Sequence[str],
        config: AliasConfig | Mapping[str, Any] | None = None,
    ) -> ScopeValidationResult:
        return validate_scope_constraints(entity_type, aliases, self._effective(config))

    def prepare_aliases_for_merge(
        self,
        source_aliases: Sequence[str | None],
        target_aliases: Sequence[str | None],
        entity_type: EntityType | str,
        *,
        source_entity_id: UUID | None = None,
        target_entity_id: UUID | None = None,
        config: AliasConfig | Mapping[str, Any] | None = None,
    ) -> AliasMergeResult:
        """Merge two entities' aliases, then drop scope violations."""
        effective = self._effective(config)
        logger.info(
            "Preparing aliases for merge %s -> %s (%s)",
            source_entity_id,
            target_entity_id,
            entity_type,
        )

        merged = merge_aliases(source_aliases, target_aliases, (), effective)
        scoped = validate_scope_constraints(entity_type, merged.merged_aliases, effective)

        logger.info(
            "Alias merge prepared for %s: %d aliases, %d duplicates removed, %d violations",
            target_entity_id,
            len(scoped.valid_aliases),
            merged.duplicates_removed,
            len(scoped.violations),
        )
        return AliasMergeResult(
            merged_aliases=scoped.valid_aliases,
            duplicates_removed=merged.duplicates_removed,
            violations=scoped.violations,
        )

    def add_original_text_as_alias(
        self,
        existing_aliases: Sequence[str],
        original_text: str | None,
        config: AliasConfig | Mapping[str, Any] | None = None,
    ) -> AliasAddResult:
        """Merge ``original_text`` into ``existing_aliases``.

        ``added`` is True only when the merged list grew, i.e. the text was
        not already present ignoring case.
        """
        if not original_text or not original_text.strip():
            return AliasAddResult(updated_aliases=list(existing_aliases), added=False)

        merged = merge_aliases(existing_aliases, (), (original_text,), self._effective(config))
        return AliasAddResult(
            updated_aliases=merged.merged_aliases,
            added=len(merged.merged_aliases) > len(existing_aliases),
        )

    def prepare_new_entity_aliases(
        self,
        aliases: Sequence[str | None],
        original_text: str | None,
        entity_type: EntityType | str,
    ) -> ScopeValidationResult:
        """Aliases for a newly created entity: its aliases plus the original text."""
        merged = merge_aliases(aliases, (), (original_text,), self._config)
        return validate_scope_constraints(entity_type, merged.merged_aliases, self._config)

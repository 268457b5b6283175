"""Inputs and results of batch entity resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from foodlink.models.enums import AttributeScope, EntityType, ResolutionTier


class ResolutionInput(BaseModel):
    """One text reference to resolve.

    ``temp_id`` is the caller's correlation key and must be unique within a
    batch.
    """

    model_config = ConfigDict(frozen=True)

    temp_id: str = Field(min_length=1)
    normalized_name: str
    original_text: str
    entity_type: EntityType
    aliases: list[str] = Field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]

    def candidate_strings(self) -> list[str]:
        """Name, original text and aliases, blanks removed."""
        terms = [self.normalized_name, self.original_text, *self.aliases]
        return [term for term in terms if term and term.strip()]


class ContextualAttributeInput(BaseModel):
    """An attribute mention tagged with the scope it describes."""

    model_config = ConfigDict(frozen=True)

    temp_id: str = Field(min_length=1)
    attribute_name: str
    original_text: str
    scope: AttributeScope
    aliases: list[str] = Field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]


@dataclass
class ResolutionResult:
    """Outcome for exactly one input of a batch."""

    temp_id: str
    entity_id: UUID | None
    confidence: float
    """In [0, 1]. 1.0 for exact/new, 0.95 for alias, similarity for fuzzy."""

    resolution_tier: ResolutionTier
    original_input: ResolutionInput
    matched_name: str | None = None

    validated_aliases: list[str] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]
    """Scope-validated aliases prepared for a new (or deferred) entity."""

    error: str | None = None
    """Why creating a new entity failed."""

    @property
    def is_resolved(self) -> bool:
        return self.entity_id is not None


@dataclass
class ResolutionMetrics:
    total_processed: int = 0
    exact_matches: int = 0
    alias_matches: int = 0
    fuzzy_matches: int = 0
    new_entities_created: int = 0
    creation_failures: int = 0
    unmatched: int = 0
    processing_time_ms: int = 0
    average_confidence: float = 0.0


@dataclass
class BatchResolutionResult:
    """Aggregated outcome of one ``resolve_batch`` call."""

    temp_id_to_entity_id: dict[str, UUID]
    """Only inputs that resolved to an entity."""

    resolution_results: list[ResolutionResult]
    """One result per input, in input order."""

    new_entities_created: int
    performance_metrics: ResolutionMetrics

    @classmethod
    def empty(cls) -> BatchResolutionResult:
        return cls(
            temp_id_to_entity_id={},
            resolution_results=[],
            new_entities_created=0,
            performance_metrics=ResolutionMetrics(),
        )

    def results_by_tier(self, tier: ResolutionTier) -> list[ResolutionResult]:
        return [r for r in self.resolution_results if r.resolution_tier == tier]

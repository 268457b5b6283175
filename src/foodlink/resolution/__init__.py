"""Entity resolution for FoodLink.

Submodules:
- aliases: alias normalization, deduplication and scope validation
- matchers: exact, alias and fuzzy matching tiers
- creation: per-type creation of new canonical entities
- resolver: batch coordinator running the tier pipeline
- contextual: scoped attribute and extraction-output adapters
- merge: alias consolidation for merges and alias additions
"""

from foodlink.resolution.aliases import AliasManager
from foodlink.resolution.config import (
    DEFAULT_ALIAS_CONFIG,
    DEFAULT_RESOLUTION_CONFIG,
    AliasConfig,
    ConfidenceThresholds,
    ResolutionConfig,
)
from foodlink.resolution.contextual import AttributeContextResolver
from foodlink.resolution.merge import MergeCoordinator
from foodlink.resolution.resolver import EntityResolver
from foodlink.resolution.schemas import (
    BatchResolutionResult,
    ContextualAttributeInput,
    ResolutionInput,
    ResolutionMetrics,
    ResolutionResult,
)

__all__ = [
    "DEFAULT_ALIAS_CONFIG",
    "DEFAULT_RESOLUTION_CONFIG",
    "AliasConfig",
    "AliasManager",
    "AttributeContextResolver",
    "BatchResolutionResult",
    "ConfidenceThresholds",
    "ContextualAttributeInput",
    "EntityResolver",
    "MergeCoordinator",
    "ResolutionConfig",
    "ResolutionInput",
    "ResolutionMetrics",
    "ResolutionResult",
]

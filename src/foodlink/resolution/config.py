"""Immutable configuration for resolution and alias handling.

Defaults are module-level constants that are never mutated; per-call
overrides produce new values via ``merged``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from foodlink.exceptions import ValidationError

if TYPE_CHECKING:
    from foodlink.config import Settings

ConfidenceBand = Literal["high", "medium", "low"]


def _replace_known(value: Any, overrides: Mapping[str, Any]) -> Any:
    known = {f.name for f in dataclasses.fields(value)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        msg = f"Unknown {type(value).__name__} option(s): {', '.join(unknown)}"
        raise ValidationError(msg)
    return dataclasses.replace(value, **overrides)


@dataclass(frozen=True)
class ConfidenceThresholds:
    """Informational confidence bands. The tiers do not enforce them."""

    high: float = 0.85
    medium: float = 0.70
    low: float = 0.70

    def __post_init__(self) -> None:
        for name in ("high", "medium", "low"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValidationError(f"confidence_thresholds.{name} must be in [0, 1], got {value}")

    def band(self, confidence: float) -> ConfidenceBand:
        """Label a confidence for reporting."""
        if confidence > self.high:
            return "high"
        if confidence >= self.medium:
            return "medium"
        return "low"


@dataclass(frozen=True)
class ResolutionConfig:
    """Options for one ``resolve_batch`` call."""

    batch_size: int = 100
    enable_fuzzy_matching: bool = True
    fuzzy_match_threshold: float = 0.75
    max_edit_distance: int = 3
    confidence_thresholds: ConfidenceThresholds = field(default_factory=ConfidenceThresholds)
    create_missing: bool = True
    """When False, unmatched inputs are reported as ``unmatched`` instead of created."""

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValidationError(f"batch_size must be >= 1, got {self.batch_size}")
        if not 0.0 <= self.fuzzy_match_threshold <= 1.0:
            raise ValidationError(
                f"fuzzy_match_threshold must be in [0, 1], got {self.fuzzy_match_threshold}"
            )
        if self.max_edit_distance < 0:
            raise ValidationError(f"max_edit_distance must be >= 0, got {self.max_edit_distance}")

    def merged(self, overrides: ResolutionConfig | Mapping[str, Any] | None) -> ResolutionConfig:
        """Return a copy with ``overrides`` applied.

        ``confidence_thresholds`` may be given as a partial mapping.
        """
        if overrides is None:
            return self
        if isinstance(overrides, ResolutionConfig):
            return overrides

        values = dict(overrides)
        thresholds = values.get("confidence_thresholds")
        if isinstance(thresholds, Mapping):
            values["confidence_thresholds"] = _replace_known(self.confidence_thresholds, thresholds)
        return _replace_known(self, values)

    @classmethod
    def from_settings(cls, settings: Settings) -> ResolutionConfig:
        return cls(
            batch_size=settings.resolution_batch_size,
            enable_fuzzy_matching=settings.resolution_enable_fuzzy,
            fuzzy_match_threshold=settings.resolution_fuzzy_threshold,
            max_edit_distance=settings.resolution_max_edit_distance,
            confidence_thresholds=ConfidenceThresholds(
                high=settings.confidence_high,
                medium=settings.confidence_medium,
                low=settings.confidence_low,
            ),
        )


@dataclass(frozen=True)
class AliasConfig:
    """Options for alias normalization and scope validation."""

    max_alias_length: int = 255
    prevent_cross_scope: bool = True
    deduplication_enabled: bool = True

    def merged(self, overrides: AliasConfig | Mapping[str, Any] | None) -> AliasConfig:
        if overrides is None:
            return self
        if isinstance(overrides, AliasConfig):
            return overrides
        return _replace_known(self, overrides)

    @classmethod
    def from_settings(cls, settings: Settings) -> AliasConfig:
        return cls(
            max_alias_length=settings.alias_max_length,
            prevent_cross_scope=settings.alias_prevent_cross_scope,
            deduplication_enabled=settings.alias_deduplication,
        )


DEFAULT_RESOLUTION_CONFIG = ResolutionConfig()
DEFAULT_ALIAS_CONFIG = AliasConfig()

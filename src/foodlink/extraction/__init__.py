"""Extraction output consumed by resolution."""

from foodlink.extraction.schemas import DishAttribute, EntityRef, ExtractionOutput, MentionRecord

__all__ = [
    "DishAttribute",
    "EntityRef",
    "ExtractionOutput",
    "MentionRecord",
]

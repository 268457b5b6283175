"""Exceptions raised by FoodLink.

Two failure modes are kept apart: operation-wide faults are raised, per-item
creation failures are reported inline in the batch result.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class FoodLinkError(Exception):
    """Base exception for FoodLink."""


class ValidationError(FoodLinkError, ValueError):
    """Invalid input: unsupported entity type, bad config, duplicate temp ids."""


class StoreQueryError(FoodLinkError):
    """A bulk lookup against the entity store failed.

    Fatal to the whole ``resolve_batch`` call.
    """


class EntityCreationError(FoodLinkError):
    """Creating a single canonical entity failed. Never fatal to a batch."""

    def __init__(self, message: str, *, temp_id: str, entity_type: Any, name: str) -> None:
        super().__init__(message)
        self.temp_id = temp_id
        self.entity_type = entity_type
        self.name = name


class EntityNotFoundError(FoodLinkError):
    """A merge or alias operation referenced a missing entity."""

    def __init__(self, entity_id: UUID) -> None:
        super().__init__(f"Entity {entity_id} not found")
        self.entity_id = entity_id


class TypeMismatchError(FoodLinkError):
    """Two entities of different types were asked to merge."""

    def __init__(
        self,
        source_id: UUID,
        source_type: Any,
        target_id: UUID,
        target_type: Any,
    ) -> None:
        super().__init__(
            f"Cannot merge {source_id} ({source_type}) into {target_id} ({target_type})"
        )
        self.source_id = source_id
        self.source_type = source_type
        self.target_id = target_id
        self.target_type = target_type

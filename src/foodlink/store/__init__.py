"""Entity store interface and implementations."""

from foodlink.store.base import EntityRecord, EntityStore
from foodlink.store.sql import SqlEntityStore

__all__ = [
    "EntityRecord",
    "EntityStore",
    "SqlEntityStore",
]

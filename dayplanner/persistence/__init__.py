"""Durable storage adapters for serialized planner state."""
from dayplanner.persistence.adapter import (
    InMemoryPersistenceAdapter,
    PersistenceAdapter,
    SqlPersistenceAdapter,
)

__all__ = ["InMemoryPersistenceAdapter", "PersistenceAdapter", "SqlPersistenceAdapter"]

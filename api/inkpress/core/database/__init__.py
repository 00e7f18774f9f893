"""Document store backends."""

from inkpress.core.database.memory import InMemoryStore
from inkpress.core.database.resilience import ResilientStore
from inkpress.core.database.store import DocumentStore, StoreError


__all__ = ["DocumentStore", "InMemoryStore", "ResilientStore", "StoreError"]

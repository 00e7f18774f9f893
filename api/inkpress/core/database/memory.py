"""In-process document store.

Every operation runs under one asyncio lock and never awaits while holding
it, so each call is atomic with respect to other tasks on the loop. Stored
documents are deep-copied on the way in and out.
"""

import asyncio
import copy
from typing import Any

import structlog

from inkpress.core.database.store import (
    Document,
    DuplicateKeyError,
    Mutator,
    apply_delta,
    matches,
)


logger = structlog.get_logger(__name__)


class InMemoryStore:
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}
        self._unique: dict[tuple[str, str], str] = {}
        self._lock = asyncio.Lock()

    def _bucket(self, collection: str) -> dict[str, Document]:
        return self._collections.setdefault(collection, {})

    async def find_by_key(self, collection: str, key: str) -> Document | None:
        async with self._lock:
            document = self._bucket(collection).get(key)
            return copy.deepcopy(document) if document is not None else None

    async def find_many(
        self, collection: str, where: dict[str, Any] | None = None
    ) -> list[Document]:
        async with self._lock:
            return [
                copy.deepcopy(document)
                for document in self._bucket(collection).values()
                if matches(document, where)
            ]

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        async with self._lock:
            return sum(
                1 for document in self._bucket(collection).values()
                if matches(document, where)
            )

    async def insert(self, collection: str, document: Document) -> Document:
        key = document["id"]
        async with self._lock:
            bucket = self._bucket(collection)
            if key in bucket:
                raise DuplicateKeyError(f"{collection}/{key} already exists")
            bucket[key] = copy.deepcopy(document)
            return copy.deepcopy(document)

    async def insert_unique(self, namespace: str, value: str, owner_id: str) -> bool:
        async with self._lock:
            current = self._unique.setdefault((namespace, value), owner_id)
            return current == owner_id

    async def lookup_unique(self, namespace: str, value: str) -> str | None:
        async with self._lock:
            return self._unique.get((namespace, value))

    async def release_unique(self, namespace: str, value: str, owner_id: str) -> bool:
        async with self._lock:
            if self._unique.get((namespace, value)) != owner_id:
                return False
            del self._unique[(namespace, value)]
            return True

    async def atomic_delta(
        self,
        collection: str,
        key: str,
        field: str,
        delta: int,
        floor: int | None = 0,
    ) -> int | None:
        async with self._lock:
            document = self._bucket(collection).get(key)
            if document is None:
                return None
            document[field] = apply_delta(document.get(field), delta, floor)
            return document[field]

    async def transactional_update(
        self, collection: str, key: str, mutate: Mutator
    ) -> Document | None:
        async with self._lock:
            bucket = self._bucket(collection)
            current = bucket.get(key)
            if current is None:
                return None
            updated = mutate(copy.deepcopy(current))
            updated["id"] = key
            bucket[key] = copy.deepcopy(updated)
            return updated

    async def delete(self, collection: str, key: str) -> Document | None:
        async with self._lock:
            return self._bucket(collection).pop(key, None)

    async def close(self) -> None:
        logger.debug("memory_store_closed", collections=len(self._collections))

"""Timeouts and retries around a document store backend.

Each call gets a deadline. Reads and reservation calls are idempotent and
retried with exponential backoff; inserts, counter deltas and
read-modify-write updates are not, since a timed-out attempt may already
have been applied. Failures surface as ``ServiceUnavailableError``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from inkpress.core.database.store import (
    ContentionError,
    Document,
    DocumentStore,
    DuplicateKeyError,
    Mutator,
    StoreError,
    StoreTimeoutError,
)
from inkpress.core.errors import ConflictError, ServiceUnavailableError


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ResilientStore:
    def __init__(
        self,
        inner: DocumentStore,
        timeout_seconds: float = 5.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.05,
    ) -> None:
        self.inner = inner
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds

    async def _call(
        self,
        operation: str,
        factory: Callable[[], Awaitable[T]],
        idempotent: bool,
    ) -> T:
        attempts = self.max_retries + 1 if idempotent else 1
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(factory(), timeout=self.timeout_seconds)
            except (TimeoutError, StoreTimeoutError) as e:
                logger.warning(
                    "store_call_timed_out",
                    operation=operation,
                    attempt=attempt,
                    max_attempts=attempts,
                )
                if attempt == attempts:
                    raise ServiceUnavailableError(
                        "Storage did not respond in time", "store_timeout"
                    ) from e
                await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))
            except DuplicateKeyError as e:
                raise ConflictError(str(e), "duplicate_key") from e
            except ContentionError as e:
                logger.warning("store_contention", operation=operation, error=str(e))
                raise ServiceUnavailableError(
                    "Storage is busy, try again", "store_contention"
                ) from e
            except StoreError as e:
                logger.error("store_call_failed", operation=operation, error=str(e))
                raise ServiceUnavailableError(
                    "Storage is unavailable", "store_unavailable"
                ) from e
        raise AssertionError("unreachable")

    async def find_by_key(self, collection: str, key: str) -> Document | None:
        return await self._call(
            "find_by_key", lambda: self.inner.find_by_key(collection, key), True
        )

    async def find_many(
        self, collection: str, where: dict[str, Any] | None = None
    ) -> list[Document]:
        return await self._call(
            "find_many", lambda: self.inner.find_many(collection, where), True
        )

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        return await self._call(
            "count", lambda: self.inner.count(collection, where), True
        )

    async def insert(self, collection: str, document: Document) -> Document:
        return await self._call(
            "insert", lambda: self.inner.insert(collection, document), False
        )

    async def insert_unique(self, namespace: str, value: str, owner_id: str) -> bool:
        return await self._call(
            "insert_unique",
            lambda: self.inner.insert_unique(namespace, value, owner_id),
            True,
        )

    async def lookup_unique(self, namespace: str, value: str) -> str | None:
        return await self._call(
            "lookup_unique", lambda: self.inner.lookup_unique(namespace, value), True
        )

    async def release_unique(self, namespace: str, value: str, owner_id: str) -> bool:
        return await self._call(
            "release_unique",
            lambda: self.inner.release_unique(namespace, value, owner_id),
            True,
        )

    async def atomic_delta(
        self,
        collection: str,
        key: str,
        field: str,
        delta: int,
        floor: int | None = 0,
    ) -> int | None:
        return await self._call(
            "atomic_delta",
            lambda: self.inner.atomic_delta(collection, key, field, delta, floor),
            False,
        )

    async def transactional_update(
        self, collection: str, key: str, mutate: Mutator
    ) -> Document | None:
        return await self._call(
            "transactional_update",
            lambda: self.inner.transactional_update(collection, key, mutate),
            False,
        )

    async def delete(self, collection: str, key: str) -> Document | None:
        return await self._call(
            "delete", lambda: self.inner.delete(collection, key), True
        )

    async def close(self) -> None:
        await self.inner.close()

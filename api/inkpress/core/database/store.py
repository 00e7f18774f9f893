"""Document store contract shared by the in-memory and Cassandra backends.

Documents are JSON-native dicts (strings, numbers, bools, lists, nested
dicts) keyed by their ``id`` field. Services convert their entities to and
from documents; the store never sees UUID or datetime objects.

Atomic primitives:

- ``insert_unique`` / ``release_unique``: claim a value in a namespace
  (emails, slugs, tag names) for exactly one owner.
- ``atomic_delta``: add to an integer field without lost updates, clamped
  at a floor.
- ``transactional_update``: read-modify-write retried until no concurrent
  writer interleaved.
"""

from collections.abc import Callable
from typing import Any, Protocol


Document = dict[str, Any]
Mutator = Callable[[Document], Document]

USERS = "users"
POSTS = "posts"
TAGS = "tags"
COMMENTS = "comments"

USER_EMAIL = "user_email"
POST_SLUG = "post_slug"
TAG_NAME = "tag_name"
TAG_SLUG = "tag_slug"


class StoreError(Exception):
    """Raised by a backend when an operation cannot complete."""


class StoreTimeoutError(StoreError):
    """A single store call exceeded its deadline."""


class DuplicateKeyError(StoreError):
    """Insert of a document whose id already exists."""


class ContentionError(StoreError):
    """Compare-and-set kept losing to concurrent writers."""


class DocumentStore(Protocol):
    async def find_by_key(self, collection: str, key: str) -> Document | None: ...

    async def find_many(
        self, collection: str, where: dict[str, Any] | None = None
    ) -> list[Document]: ...

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int: ...

    async def insert(self, collection: str, document: Document) -> Document: ...

    async def insert_unique(self, namespace: str, value: str, owner_id: str) -> bool: ...

    async def lookup_unique(self, namespace: str, value: str) -> str | None: ...

    async def release_unique(self, namespace: str, value: str, owner_id: str) -> bool: ...

    async def atomic_delta(
        self,
        collection: str,
        key: str,
        field: str,
        delta: int,
        floor: int | None = 0,
    ) -> int | None: ...

    async def transactional_update(
        self, collection: str, key: str, mutate: Mutator
    ) -> Document | None: ...

    async def delete(self, collection: str, key: str) -> Document | None: ...

    async def close(self) -> None: ...


def matches(document: Document, where: dict[str, Any] | None) -> bool:
    """Equality filter; a list-valued field matches if it contains the value."""
    if not where:
        return True
    for field, expected in where.items():
        actual = document.get(field)
        if isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


def apply_delta(current: Any, delta: int, floor: int | None) -> int:
    value = int(current or 0) + delta
    if floor is not None and value < floor:
        return floor
    return value
